import json
from types import TracebackType
from typing import Any

import httpx

from app.logging.logger import Log
from app.remote.exceptions import RemoteError

SUPPORTED_METHODS = frozenset({"GET", "POST", "PUT", "PATCH"})


class RemoteClient:
    """Single-attempt JSON request/response client with a bounded timeout.

    Retries are the caller's responsibility. The underlying ``httpx.Client``
    is thread-safe and shared by every call made through this instance.
    """

    def __init__(
        self,
        *,
        timeout_seconds: float,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._client = httpx.Client(timeout=timeout_seconds, transport=transport)

    def call(self, endpoint: str, method: str, payload: Any = None) -> Any:
        """Send ``payload`` as JSON to ``endpoint`` and return the decoded body.

        Returns:
            The decoded JSON body, or None when the response body is empty.

        Raises:
            RemoteError: on network/timeout error, non-2xx status or a body
                that is not valid JSON.
            ValueError: if ``method`` is not one of GET/POST/PUT/PATCH.
        """
        verb = method.upper()
        if verb not in SUPPORTED_METHODS:
            raise ValueError(
                f"Unsupported method '{method}'. Choose from: {sorted(SUPPORTED_METHODS)}"
            )

        content = self._encode(verb, endpoint, payload)
        try:
            response = self._client.request(
                verb,
                endpoint,
                content=content,
                headers={"Content-Type": "application/json"} if content is not None else None,
            )
        except httpx.TimeoutException as exc:
            raise RemoteError(
                f"{verb} {endpoint} timed out: {exc}", endpoint=endpoint, method=verb
            ) from exc
        except httpx.HTTPError as exc:
            raise RemoteError(
                f"{verb} {endpoint} failed: {exc}", endpoint=endpoint, method=verb
            ) from exc

        Log.debug(f"{verb} {endpoint} -> {response.status_code}")
        if not response.is_success:
            raise RemoteError(
                f"{verb} {endpoint} returned status {response.status_code}",
                endpoint=endpoint,
                method=verb,
                status_code=response.status_code,
            )

        if not response.content.strip():
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise RemoteError(
                f"{verb} {endpoint} returned an invalid JSON body: {exc}",
                endpoint=endpoint,
                method=verb,
                status_code=response.status_code,
            ) from exc

    @staticmethod
    def _encode(verb: str, endpoint: str, payload: Any) -> bytes | None:
        if verb == "GET" or payload is None:
            return None
        try:
            return json.dumps(payload, allow_nan=False).encode("utf-8")
        except (TypeError, ValueError) as exc:
            raise RemoteError(
                f"{verb} {endpoint} payload cannot be encoded as JSON: {exc}",
                endpoint=endpoint,
                method=verb,
            ) from exc

    def close(self) -> None:
        """Release pooled connections."""
        self._client.close()

    def __enter__(self) -> "RemoteClient":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()
