class ProcessorError(Exception):
    """Base exception for all processor-related errors."""


class InvalidEventError(ProcessorError):
    """Raised when an upload event does not have the expected shape."""
