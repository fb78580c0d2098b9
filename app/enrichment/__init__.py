from app.enrichment.base import BaseEnrichmentClient
from app.enrichment.factory import EnrichmentClientFactory
from app.enrichment.fallback import build_basic_metadata

__all__ = ["BaseEnrichmentClient", "EnrichmentClientFactory", "build_basic_metadata"]
