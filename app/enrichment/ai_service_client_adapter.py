from app.enrichment.base import BaseEnrichmentClient
from app.enrichment.validator import build_enrichment_result
from app.logging.logger import Log
from app.processor.models import EnrichmentRequest, EnrichmentResult
from app.remote.client import RemoteClient


class AiServiceClientAdapter(BaseEnrichmentClient):
    """Enrichment adapter for the internal AI metadata service."""

    provider_name = "ai_service"
    GENERATE_PATH = "/api/v1/metadata/generate"

    def __init__(self, remote_client: RemoteClient, base_url: str) -> None:
        self._remote = remote_client
        self._endpoint = f"{base_url.rstrip('/')}{self.GENERATE_PATH}"

    def enrich(self, request: EnrichmentRequest) -> EnrichmentResult:
        Log.info(f"Requesting AI metadata for contentId {request.content_id}")
        response = self._remote.call(self._endpoint, "POST", request.to_payload())
        result = build_enrichment_result(response)
        Log.debug(
            f"AI metadata for contentId {request.content_id}: "
            f"{len(result.tags)} tags, {len(result.categories)} categories"
        )
        return result
