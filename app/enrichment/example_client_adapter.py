"""Offline provider selected with ENRICHMENT_PROVIDER=example.

Builds metadata from the request alone so the worker can run end to end
without the AI service or an LLM key.
"""

from typing import ClassVar

from app.enrichment.base import BaseEnrichmentClient
from app.enrichment.validator import build_enrichment_result
from app.processor.models import EnrichmentRequest, EnrichmentResult


class ExampleClientAdapter(BaseEnrichmentClient):
    """Fixed tags and categories plus a summary built from the file name."""

    provider_name = "example"

    DEFAULT_RESPONSE: ClassVar[dict[str, object]] = {
        "tags": ["example"],
        "categories": ["uncategorized"],
        "keywords": [],
        "entities": [],
        "detectedLanguage": ["en"],
    }

    def enrich(self, request: EnrichmentRequest) -> EnrichmentResult:
        result = build_enrichment_result(self.DEFAULT_RESPONSE)
        result.summary = f"Example metadata for {request.file_name or request.content_id}"
        result.document_type = request.content_type or None
        result.ai_provider = self.provider_name
        return result
