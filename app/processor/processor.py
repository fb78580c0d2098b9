from app.config.settings import Settings
from app.enrichment.factory import EnrichmentClientFactory
from app.logging.logger import Log
from app.metadata.writer import MetadataWriter
from app.processor.exceptions import InvalidEventError
from app.processor.models import UploadEvent
from app.processor.pipeline import OrchestrationState, PipelineContext, PipelineStep
from app.processor.steps import EnrichStep, PersistMetadataStep, PersistStatusStep
from app.remote.client import RemoteClient
from app.resilience.circuit_breaker import CircuitBreaker, CircuitBreakerConfig


class Processor:
    """Orchestrates enrichment of one upload event.

    Pipeline: enrich (or fall back) -> persist metadata -> persist status.
    Failures of the enrichment dependency and of the metadata store are
    absorbed and only show up in the stored status. Anything else, such as a
    malformed event, propagates to the caller.
    """

    def __init__(self, steps: list[PipelineStep]) -> None:
        self._steps = steps

    def process_file(self, event: UploadEvent) -> PipelineContext:
        """Run the pipeline for one event and return its final context."""
        if not isinstance(event, UploadEvent) or not event.content_id:
            raise InvalidEventError(f"Cannot process malformed upload event: {event!r}")

        Log.info("Processing file", content_id=event.content_id)
        context = PipelineContext(event=event)
        for step in self._steps:
            context = step.run(context)
        context.advance(OrchestrationState.DONE)

        Log.info(
            f"File processing finished: {context.final_status.value}"
            + (f" ({context.error_message})" if context.error_message else ""),
            content_id=event.content_id,
        )
        return context


def build_breaker(settings: Settings) -> CircuitBreaker:
    """Build the process-wide breaker guarding the enrichment dependency."""
    return CircuitBreaker(
        "ai-service",
        CircuitBreakerConfig(
            failure_rate_threshold=settings.breaker_failure_rate_threshold,
            window_size=settings.breaker_window_size,
            minimum_calls=settings.breaker_minimum_calls,
            open_duration_seconds=settings.breaker_open_duration_seconds,
            half_open_max_calls=settings.breaker_half_open_max_calls,
        ),
    )


def build_processor(
    settings: Settings,
    *,
    remote_client: RemoteClient,
    breaker: CircuitBreaker,
) -> Processor:
    """Build a Processor with all required adapters."""
    client = EnrichmentClientFactory.create(settings, remote_client)
    writer = MetadataWriter(remote_client, settings.metadata_service_url)
    return Processor(
        steps=[
            EnrichStep(client, breaker, processing_version=settings.processing_version),
            PersistMetadataStep(writer),
            PersistStatusStep(writer),
        ]
    )
