class WriteError(Exception):
    """Raised when the metadata store rejects or fails a write."""
