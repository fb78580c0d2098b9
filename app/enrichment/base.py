from abc import ABC, abstractmethod

from app.processor.models import EnrichmentRequest, EnrichmentResult


class BaseEnrichmentClient(ABC):
    """Contract for all AI enrichment adapters."""

    provider_name: str = ""

    @abstractmethod
    def enrich(self, request: EnrichmentRequest) -> EnrichmentResult:
        """Generate metadata for one uploaded file.

        Args:
            request: Identity and file attributes of the upload.

        Returns:
            EnrichmentResult holding the provider's content fields. Bookkeeping
            fields (status, timestamps) are left for the caller to fill in.

        Raises:
            RemoteError: if the provider cannot be reached or answers with an error.
            EnrichmentError: if the provider response is unusable.
        """
