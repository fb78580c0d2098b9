class EnrichmentError(Exception):
    """Raised when enrichment fails."""


class EnrichmentValidationError(EnrichmentError):
    """Raised when the provider response does not match the metadata contract."""


class EnrichmentNetworkError(EnrichmentError):
    """Raised when the AI provider call fails due to network/infrastructure issues."""
