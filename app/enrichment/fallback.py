from datetime import UTC, datetime

from app.processor.models import EnrichmentResult, ProcessingStatus, UploadEvent

FALLBACK_ERROR_MESSAGE = "AI service unavailable, using basic metadata"
FALLBACK_TAGS = ("basic",)
FALLBACK_CATEGORIES = ("general",)
FALLBACK_SUMMARY = "Basic file metadata"


def build_basic_metadata(
    event: UploadEvent,
    processing_version: str | None = None,
) -> EnrichmentResult:
    """Metadata recorded when AI enrichment is unavailable.

    Losing enrichment degrades quality but still counts as COMPLETED.
    """
    return EnrichmentResult(
        content_id=event.content_id,
        processing_status=ProcessingStatus.COMPLETED,
        processed_at=datetime.now(UTC),
        processing_error=FALLBACK_ERROR_MESSAGE,
        tags=list(FALLBACK_TAGS),
        categories=list(FALLBACK_CATEGORIES),
        summary=FALLBACK_SUMMARY,
        processing_version=processing_version,
    )
