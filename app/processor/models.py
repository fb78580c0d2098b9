from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Union

from app.processor.exceptions import InvalidEventError

JsonValue = Union[
    None, bool, int, float, str, list["JsonValue"], dict[str, "JsonValue"]
]


class EventType(str, Enum):
    UPLOADED = "UPLOADED"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class ProcessingStatus(str, Enum):
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"

    @property
    def is_terminal(self) -> bool:
        return self in (ProcessingStatus.COMPLETED, ProcessingStatus.FAILED)


@dataclass(frozen=True)
class UploadEvent:
    """One completed file upload that needs enrichment."""

    content_id: str
    s3_key: str = ""
    file_name: str = ""
    content_type: str = ""
    size: int = 0
    user_id: str | None = None
    workspace_id: str | None = None
    bucket_name: str | None = None
    uploaded_at: datetime | None = None
    event_id: str | None = None
    event_type: EventType = EventType.UPLOADED

    @classmethod
    def from_dict(cls, payload: Any) -> "UploadEvent":
        """Build an event from its camelCase wire representation.

        Raises:
            InvalidEventError: if the payload is not an object, contentId is
                missing, or a field has the wrong shape.
        """
        if not isinstance(payload, dict):
            raise InvalidEventError("Upload event must be a JSON object")

        content_id = payload.get("contentId")
        if not content_id or not isinstance(content_id, str):
            raise InvalidEventError("'contentId' must be a non-empty string")

        size = payload.get("size", 0)
        if size is None:
            size = 0
        if isinstance(size, bool) or not isinstance(size, int) or size < 0:
            raise InvalidEventError("'size' must be a non-negative integer")

        raw_type = payload.get("eventType") or EventType.UPLOADED.value
        try:
            event_type = EventType(raw_type)
        except ValueError as exc:
            raise InvalidEventError(f"Unknown eventType '{raw_type}'") from exc

        return cls(
            content_id=content_id,
            s3_key=_optional_str(payload, "s3Key") or "",
            file_name=_optional_str(payload, "fileName") or "",
            content_type=_optional_str(payload, "contentType") or "",
            size=size,
            user_id=_optional_str(payload, "userId"),
            workspace_id=_optional_str(payload, "workspaceId"),
            bucket_name=_optional_str(payload, "bucketName"),
            uploaded_at=_parse_timestamp(payload.get("uploadedAt")),
            event_id=_optional_str(payload, "eventId"),
            event_type=event_type,
        )


@dataclass(frozen=True)
class EnrichmentRequest:
    """Body sent to the AI enrichment dependency."""

    content_id: str
    s3_key: str
    file_name: str
    content_type: str
    size: int

    @classmethod
    def from_event(cls, event: UploadEvent) -> "EnrichmentRequest":
        return cls(
            content_id=event.content_id,
            s3_key=event.s3_key,
            file_name=event.file_name,
            content_type=event.content_type,
            size=event.size,
        )

    def to_payload(self) -> dict[str, object]:
        return {
            "contentId": self.content_id,
            "s3Key": self.s3_key,
            "fileName": self.file_name,
            "contentType": self.content_type,
            "size": self.size,
        }


@dataclass
class EnrichmentResult:
    """AI-derived or fallback metadata for one content id.

    Built fresh for every orchestration attempt and written once.
    """

    content_id: str = ""
    processing_status: ProcessingStatus = ProcessingStatus.PENDING
    processed_at: datetime | None = None
    processing_error: str | None = None

    extracted_text: str | None = None
    detected_language: list[str] = field(default_factory=list)
    tags: list[str] = field(default_factory=list)
    categories: list[str] = field(default_factory=list)
    summary: str | None = None
    keywords: list[str] = field(default_factory=list)
    entities: list[str] = field(default_factory=list)
    document_type: str | None = None

    image_labels: list[str] = field(default_factory=list)
    image_objects: list[str] = field(default_factory=list)
    image_colors: list[str] = field(default_factory=list)
    image_faces: list[str] = field(default_factory=list)
    image_text: list[str] = field(default_factory=list)
    image_embedding: list[float] = field(default_factory=list)

    custom_metadata: dict[str, JsonValue] = field(default_factory=dict)

    processing_time_ms: int | None = None
    ai_provider: str | None = None
    processing_version: str | None = None

    def to_payload(self) -> dict[str, object]:
        """Render the full replace body for the metadata store.

        Unset scalar fields are omitted; list and mapping fields are always sent.
        """
        payload: dict[str, object] = {
            "contentId": self.content_id,
            "processingStatus": self.processing_status.value,
            "processedAt": _format_timestamp(self.processed_at),
            "processingError": self.processing_error,
            "extractedText": self.extracted_text,
            "detectedLanguage": list(self.detected_language),
            "tags": list(self.tags),
            "categories": list(self.categories),
            "summary": self.summary,
            "keywords": list(self.keywords),
            "entities": list(self.entities),
            "documentType": self.document_type,
            "imageLabels": list(self.image_labels),
            "imageObjects": list(self.image_objects),
            "imageColors": list(self.image_colors),
            "imageFaces": list(self.image_faces),
            "imageText": list(self.image_text),
            "imageEmbedding": list(self.image_embedding),
            "customMetadata": dict(self.custom_metadata),
            "processingTimeMs": self.processing_time_ms,
            "aiProvider": self.ai_provider,
            "processingVersion": self.processing_version,
        }
        return {key: value for key, value in payload.items() if value is not None}


def _optional_str(payload: dict[str, Any], key: str) -> str | None:
    value = payload.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise InvalidEventError(f"'{key}' must be a string")
    return value


def _parse_timestamp(raw: Any) -> datetime | None:
    if raw is None:
        return None
    if not isinstance(raw, str):
        raise InvalidEventError("'uploadedAt' must be an ISO-8601 string")
    try:
        return datetime.fromisoformat(raw.replace("Z", "+00:00"))
    except ValueError as exc:
        raise InvalidEventError(f"Invalid 'uploadedAt' timestamp: {raw}") from exc


def _format_timestamp(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None
