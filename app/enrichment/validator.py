"""Validates a provider's metadata JSON and builds an EnrichmentResult."""

import math
from typing import Any

from app.enrichment.exceptions import EnrichmentValidationError
from app.processor.models import EnrichmentResult

_MAX_EMBEDDING_DIMENSIONS = 8192

_STRING_FIELDS = {
    "extractedText": "extracted_text",
    "summary": "summary",
    "documentType": "document_type",
    "aiProvider": "ai_provider",
    "processingVersion": "processing_version",
}

_STRING_LIST_FIELDS = {
    "detectedLanguage": "detected_language",
    "tags": "tags",
    "categories": "categories",
    "keywords": "keywords",
    "entities": "entities",
    "imageLabels": "image_labels",
    "imageObjects": "image_objects",
    "imageColors": "image_colors",
    "imageFaces": "image_faces",
    "imageText": "image_text",
}


def build_enrichment_result(data: Any) -> EnrichmentResult:
    """Validate raw provider metadata and build an EnrichmentResult.

    Only content fields are taken from the provider. Status and timestamps
    are decided by the orchestrator; unknown keys are ignored.

    Raises:
        EnrichmentValidationError: on any validation failure.
    """
    if not isinstance(data, dict):
        raise EnrichmentValidationError("Enrichment response must be a JSON object")

    values: dict[str, Any] = {}
    for key, attr in _STRING_FIELDS.items():
        values[attr] = _optional_string(data, key)
    for key, attr in _STRING_LIST_FIELDS.items():
        values[attr] = _string_list(data, key)
    values["image_embedding"] = _embedding(data.get("imageEmbedding"))
    values["custom_metadata"] = _custom_metadata(data.get("customMetadata"))
    return EnrichmentResult(**values)


def _optional_string(data: dict[str, Any], key: str) -> str | None:
    value = data.get(key)
    if value is not None and not isinstance(value, str):
        raise EnrichmentValidationError(f"'{key}' must be a string or null")
    return value


def _string_list(data: dict[str, Any], key: str) -> list[str]:
    value = data.get(key)
    if value is None:
        return []
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise EnrichmentValidationError(f"'{key}' must be a list of strings")
    return list(value)


def _embedding(value: Any) -> list[float]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise EnrichmentValidationError("'imageEmbedding' must be a list of numbers")
    if len(value) > _MAX_EMBEDDING_DIMENSIONS:
        raise EnrichmentValidationError(
            f"'imageEmbedding' exceeds {_MAX_EMBEDDING_DIMENSIONS} dimensions"
        )
    embedding: list[float] = []
    for item in value:
        if isinstance(item, bool) or not isinstance(item, (int, float)):
            raise EnrichmentValidationError("'imageEmbedding' must be a list of numbers")
        try:
            number = float(item)
        except OverflowError as exc:
            raise EnrichmentValidationError("'imageEmbedding' must contain finite numbers") from exc
        if not math.isfinite(number):
            raise EnrichmentValidationError("'imageEmbedding' must contain finite numbers")
        embedding.append(number)
    return embedding


def _custom_metadata(value: Any) -> dict[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise EnrichmentValidationError("'customMetadata' must be an object")
    _reject_non_finite(value, "customMetadata")
    return dict(value)


def _reject_non_finite(value: Any, path: str) -> None:
    # NaN and Infinity parse from provider JSON but cannot be written back out.
    if isinstance(value, float) and not math.isfinite(value):
        raise EnrichmentValidationError(f"'{path}' must not contain NaN or Infinity")
    if isinstance(value, dict):
        for key, item in value.items():
            _reject_non_finite(item, f"{path}.{key}")
    elif isinstance(value, list):
        for index, item in enumerate(value):
            _reject_non_finite(item, f"{path}[{index}]")
