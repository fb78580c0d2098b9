from app.config.settings import Settings
from app.enrichment.ai_service_client_adapter import AiServiceClientAdapter
from app.enrichment.base import BaseEnrichmentClient
from app.enrichment.example_client_adapter import ExampleClientAdapter
from app.enrichment.openai_client_adapter import OpenAIClientAdapter
from app.remote.client import RemoteClient


class EnrichmentClientFactory:
    """Creates the configured enrichment adapter."""

    PROVIDERS = ("ai_service", "openai", "example")

    @classmethod
    def create(cls, settings: Settings, remote_client: RemoteClient) -> BaseEnrichmentClient:
        """Create a configured enrichment client from application settings."""
        provider = settings.enrichment_provider.lower()
        if provider == "ai_service":
            return AiServiceClientAdapter(remote_client, settings.ai_service_url)
        if provider == "example":
            return ExampleClientAdapter()
        if provider == "openai":
            if not settings.enrichment_openai_model_name:
                raise ValueError(
                    "enrichment_openai_model_name is required for enrichment_provider=openai"
                )
            return OpenAIClientAdapter(
                api_key=settings.enrichment_openai_api_key,
                model=settings.enrichment_openai_model_name,
                timeout_seconds=settings.enrichment_openai_timeout_seconds,
                base_url=settings.enrichment_openai_base_url,
            )
        raise ValueError(
            f"Unknown enrichment provider '{provider}'. Choose from: {list(cls.PROVIDERS)}"
        )
