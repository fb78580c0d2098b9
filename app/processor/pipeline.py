from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum

from app.logging.logger import Log
from app.processor.models import EnrichmentResult, ProcessingStatus, UploadEvent


class OrchestrationState(str, Enum):
    START = "START"
    ENRICHING = "ENRICHING"
    ENRICHED = "ENRICHED"
    ENRICHMENT_FALLBACK = "ENRICHMENT_FALLBACK"
    METADATA_WRITTEN = "METADATA_WRITTEN"
    STATUS_WRITTEN = "STATUS_WRITTEN"
    DONE = "DONE"


@dataclass(slots=True)
class PipelineContext:
    event: UploadEvent
    state: OrchestrationState = OrchestrationState.START
    history: list[OrchestrationState] = field(
        default_factory=lambda: [OrchestrationState.START]
    )
    result: EnrichmentResult | None = None
    enrichment_error: str | None = None
    metadata_written: bool = False
    status_written: bool = False
    final_status: ProcessingStatus = ProcessingStatus.PROCESSING
    error_message: str | None = None

    @property
    def content_id(self) -> str:
        return self.event.content_id

    def advance(self, state: OrchestrationState) -> None:
        Log.debug(f"contentId {self.content_id}: {self.state.value} -> {state.value}")
        self.state = state
        self.history.append(state)


class PipelineStep(ABC):
    @abstractmethod
    def run(self, context: PipelineContext) -> PipelineContext:
        raise NotImplementedError
