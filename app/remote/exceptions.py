class RemoteError(Exception):
    """Raised when a remote request/response exchange fails for any reason.

    Covers network errors, timeouts, non-success status codes and bodies
    that cannot be decoded. The original exception is kept as ``__cause__``.
    """

    def __init__(
        self,
        message: str,
        *,
        endpoint: str,
        method: str,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.endpoint = endpoint
        self.method = method
        self.status_code = status_code
