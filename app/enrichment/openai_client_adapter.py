import json
from typing import ClassVar

import httpx
import openai

from app.enrichment.base import BaseEnrichmentClient
from app.enrichment.exceptions import EnrichmentError, EnrichmentNetworkError
from app.enrichment.validator import build_enrichment_result
from app.logging.logger import Log
from app.processor.models import EnrichmentRequest, EnrichmentResult

SYSTEM_PROMPT = (
    "You catalogue uploaded files for a document management system. "
    "Given a file's name, content type and size, infer descriptive metadata. "
    "Answer only with JSON matching the provided schema."
)

USER_PROMPT_TEMPLATE = (
    "File name: {file_name}\n"
    "Content type: {content_type}\n"
    "Size in bytes: {size}\n"
    "Storage key: {s3_key}"
)


class OpenAIClientAdapter(BaseEnrichmentClient):
    """Enrichment adapter built on the OpenAI-compatible chat API."""

    provider_name = "openai"

    JSON_SCHEMA: ClassVar[dict[str, object]] = {
        "type": "object",
        "additionalProperties": False,
        "required": [
            "summary",
            "tags",
            "categories",
            "keywords",
            "entities",
            "documentType",
            "detectedLanguage",
        ],
        "properties": {
            "summary": {"type": "string"},
            "tags": {"type": "array", "items": {"type": "string"}},
            "categories": {"type": "array", "items": {"type": "string"}},
            "keywords": {"type": "array", "items": {"type": "string"}},
            "entities": {"type": "array", "items": {"type": "string"}},
            "documentType": {"type": ["string", "null"]},
            "detectedLanguage": {"type": "array", "items": {"type": "string"}},
        },
    }

    def __init__(
        self,
        *,
        api_key: str,
        model: str,
        timeout_seconds: int,
        base_url: str | None = None,
    ) -> None:
        self._client = openai.OpenAI(
            api_key=api_key,
            timeout=timeout_seconds,
            base_url=base_url,
            # One attempt per guarded call; the circuit breaker owns recovery.
            max_retries=0,
        )
        self._model = model

    def enrich(self, request: EnrichmentRequest) -> EnrichmentResult:
        content = self._create_completion(self._build_prompt(request))
        Log.debug(f"OpenAI raw response for contentId {request.content_id}:\n{content}")
        try:
            parsed = json.loads(content)
        except json.JSONDecodeError as exc:
            raise EnrichmentError(f"Invalid JSON response: {exc}") from exc
        result = build_enrichment_result(parsed)
        result.ai_provider = self.provider_name
        return result

    @staticmethod
    def _build_prompt(request: EnrichmentRequest) -> str:
        return USER_PROMPT_TEMPLATE.format(
            file_name=request.file_name,
            content_type=request.content_type,
            size=request.size,
            s3_key=request.s3_key,
        )

    def _create_completion(self, user_prompt: str) -> str:
        try:
            response = self._client.chat.completions.create(
                model=self._model,
                temperature=0.0,
                response_format={
                    "type": "json_schema",
                    "json_schema": {
                        "name": "file_metadata",
                        "strict": True,
                        "schema": self.JSON_SCHEMA,
                    },
                },
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": user_prompt},
                ],
            )
        except (openai.APIConnectionError, httpx.ConnectError, httpx.TimeoutException) as exc:
            raise EnrichmentNetworkError(f"AI provider network error: {exc}") from exc
        except openai.APIError as exc:
            raise EnrichmentNetworkError(f"AI provider API error: {exc}") from exc

        if not response.choices:
            raise EnrichmentError("AI returned no choices")
        content = response.choices[0].message.content
        if content is None:
            raise EnrichmentError("AI returned empty response")
        return content
