import time
from datetime import UTC, datetime

from app.enrichment.base import BaseEnrichmentClient
from app.enrichment.fallback import build_basic_metadata
from app.logging.logger import Log
from app.metadata.exceptions import WriteError
from app.metadata.writer import MetadataWriter
from app.processor.models import EnrichmentRequest, EnrichmentResult, ProcessingStatus
from app.processor.pipeline import OrchestrationState, PipelineContext, PipelineStep
from app.resilience.circuit_breaker import CircuitBreaker


class EnrichStep(PipelineStep):
    def __init__(
        self,
        client: BaseEnrichmentClient,
        breaker: CircuitBreaker,
        processing_version: str | None = None,
    ) -> None:
        self._client = client
        self._breaker = breaker
        self._processing_version = processing_version

    def run(self, context: PipelineContext) -> PipelineContext:
        context.advance(OrchestrationState.ENRICHING)
        request = EnrichmentRequest.from_event(context.event)
        started = time.monotonic()

        def enrich() -> EnrichmentResult:
            result = self._client.enrich(request)
            result.content_id = context.content_id
            result.processing_status = ProcessingStatus.COMPLETED
            result.processed_at = datetime.now(UTC)
            result.processing_error = None
            result.processing_time_ms = int((time.monotonic() - started) * 1000)
            result.ai_provider = result.ai_provider or self._client.provider_name
            result.processing_version = self._processing_version
            return result

        def fallback(exc: Exception) -> EnrichmentResult:
            Log.warning(
                f"Enrichment unavailable, using basic metadata: {exc}",
                content_id=context.content_id,
            )
            context.enrichment_error = str(exc)
            return build_basic_metadata(context.event, self._processing_version)

        context.result = self._breaker.guard(enrich, fallback)
        context.final_status = ProcessingStatus.COMPLETED
        context.error_message = context.result.processing_error
        if context.enrichment_error is None:
            context.advance(OrchestrationState.ENRICHED)
            Log.info("Enriched", content_id=context.content_id)
        else:
            context.advance(OrchestrationState.ENRICHMENT_FALLBACK)
        return context


class PersistMetadataStep(PipelineStep):
    def __init__(self, writer: MetadataWriter) -> None:
        self._writer = writer

    def run(self, context: PipelineContext) -> PipelineContext:
        if context.result is None:
            raise ValueError("PipelineContext.result must be set before persisting metadata")
        try:
            self._writer.replace_metadata(context.content_id, context.result)
            context.metadata_written = True
        except WriteError as exc:
            Log.error(f"Metadata write failed: {exc}", content_id=context.content_id)
            context.final_status = ProcessingStatus.FAILED
            context.error_message = str(exc)
        context.advance(OrchestrationState.METADATA_WRITTEN)
        return context


class PersistStatusStep(PipelineStep):
    def __init__(self, writer: MetadataWriter) -> None:
        self._writer = writer

    def run(self, context: PipelineContext) -> PipelineContext:
        if not context.final_status.is_terminal:
            raise ValueError(
                f"Refusing to persist non-terminal status {context.final_status.value}"
            )
        try:
            self._writer.set_status(
                context.content_id, context.final_status, context.error_message
            )
            context.status_written = True
        except WriteError as exc:
            # Not critical: the decided status stands.
            Log.error(
                f"Status write failed: {exc}",
                content_id=context.content_id,
                status=context.final_status.value,
            )
        context.advance(OrchestrationState.STATUS_WRITTEN)
        return context
