import pytest

from app.enrichment.ai_service_client_adapter import AiServiceClientAdapter
from app.enrichment.example_client_adapter import ExampleClientAdapter
from app.enrichment.exceptions import EnrichmentValidationError
from app.enrichment.fallback import build_basic_metadata
from app.processor.models import EnrichmentRequest, ProcessingStatus, UploadEvent
from app.remote.exceptions import RemoteError

GENERATE = "/api/v1/metadata/generate"


def _request(event: UploadEvent) -> EnrichmentRequest:
    return EnrichmentRequest.from_event(event)


class TestAiServiceClientAdapter:
    def test_posts_request_and_builds_result(self, fake_http, upload_event) -> None:
        fake_http.on_json("POST", GENERATE, {"summary": "doc", "tags": ["report"]})
        adapter = AiServiceClientAdapter(fake_http.remote_client(), "http://ai.test/")

        result = adapter.enrich(_request(upload_event))

        assert result.summary == "doc"
        assert result.tags == ["report"]
        assert fake_http.bodies("POST", GENERATE) == [{
            "contentId": "c1",
            "s3Key": "k1",
            "fileName": "a.pdf",
            "contentType": "application/pdf",
            "size": 1024,
        }]

    def test_error_status_raises_remote_error(self, fake_http, upload_event) -> None:
        fake_http.on_status("POST", GENERATE, 500)
        adapter = AiServiceClientAdapter(fake_http.remote_client(), "http://ai.test")

        with pytest.raises(RemoteError):
            adapter.enrich(_request(upload_event))

    def test_timeout_raises_remote_error(self, fake_http, upload_event) -> None:
        fake_http.on_timeout("POST", GENERATE)
        adapter = AiServiceClientAdapter(fake_http.remote_client(), "http://ai.test")

        with pytest.raises(RemoteError, match="timed out"):
            adapter.enrich(_request(upload_event))

    def test_empty_body_is_invalid(self, fake_http, upload_event) -> None:
        fake_http.on_status("POST", GENERATE, 200)
        adapter = AiServiceClientAdapter(fake_http.remote_client(), "http://ai.test")

        with pytest.raises(EnrichmentValidationError):
            adapter.enrich(_request(upload_event))


class TestExampleClientAdapter:
    def test_returns_fixed_metadata_without_network(self, upload_event) -> None:
        result = ExampleClientAdapter().enrich(_request(upload_event))
        assert result.tags == ["example"]
        assert result.summary == "Example metadata for a.pdf"
        assert result.document_type == "application/pdf"
        assert result.ai_provider == "example"

    def test_does_not_share_lists_between_calls(self, upload_event) -> None:
        adapter = ExampleClientAdapter()
        first = adapter.enrich(_request(upload_event))
        first.tags.append("mutated")
        second = adapter.enrich(_request(upload_event))
        assert second.tags == ["example"]


class TestBasicMetadata:
    def test_fixed_fallback_fields(self, upload_event) -> None:
        result = build_basic_metadata(upload_event, processing_version="1.0")
        assert result.content_id == "c1"
        assert result.processing_status == ProcessingStatus.COMPLETED
        assert result.processed_at is not None
        assert result.processing_error == "AI service unavailable, using basic metadata"
        assert result.tags == ["basic"]
        assert result.categories == ["general"]
        assert result.summary == "Basic file metadata"
        assert result.processing_version == "1.0"

    def test_fresh_result_per_call(self, upload_event) -> None:
        first = build_basic_metadata(upload_event)
        first.tags.append("x")
        assert build_basic_metadata(upload_event).tags == ["basic"]
