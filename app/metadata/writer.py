from datetime import UTC, datetime
from urllib.parse import quote

from app.logging.logger import Log
from app.metadata.exceptions import WriteError
from app.processor.models import EnrichmentResult, ProcessingStatus
from app.remote.client import RemoteClient
from app.remote.exceptions import RemoteError


class MetadataWriter:
    """Writes enrichment metadata and processing status to the metadata store.

    Both operations are keyed by content id and safe to repeat with the same
    arguments.
    """

    FILES_PATH = "/api/v1/metadata/files"

    def __init__(self, remote_client: RemoteClient, base_url: str) -> None:
        self._remote = remote_client
        self._base_url = base_url.rstrip("/")

    def replace_metadata(self, content_id: str, result: EnrichmentResult) -> None:
        """Replace all metadata fields stored for ``content_id``.

        Raises:
            WriteError: if the store call fails.
        """
        Log.info(f"Replacing metadata for contentId {content_id}")
        try:
            self._remote.call(self._file_url(content_id), "PUT", result.to_payload())
        except RemoteError as exc:
            raise WriteError(f"Failed to update metadata: {exc}") from exc
        Log.info(f"Metadata replaced for contentId {content_id}")

    def set_status(
        self,
        content_id: str,
        status: ProcessingStatus,
        error: str | None = None,
    ) -> None:
        """Set the processing status (and optional error) for ``content_id``.

        Raises:
            WriteError: if the store call fails.
        """
        Log.info(f"Setting processing status for contentId {content_id} to {status.value}")
        payload = {
            "contentId": content_id,
            "processingStatus": status.value,
            "processedAt": datetime.now(UTC).isoformat(),
            "processingError": error or "",
        }
        try:
            self._remote.call(f"{self._file_url(content_id)}/status", "PATCH", payload)
        except RemoteError as exc:
            raise WriteError(f"Failed to update processing status: {exc}") from exc
        Log.info(f"Processing status set for contentId {content_id}")

    def _file_url(self, content_id: str) -> str:
        return f"{self._base_url}{self.FILES_PATH}/{quote(content_id, safe='')}"
