import logging
import sys


class ContextFormatter(logging.Formatter):
    """Appends the keyword context passed to ``Log`` as ``key=value`` pairs."""

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        context = getattr(record, "context", None)
        if not context:
            return line
        pairs = " ".join(f"{key}={value}" for key, value in context.items())
        first, sep, rest = line.partition("\n")
        return f"{first} [{pairs}]{sep}{rest}"


class Log:
    """Process-wide logging facade for the enrichment worker.

    Keyword arguments become the record's ``context`` and are rendered after
    the message, e.g. ``Log.info("Enriched", content_id="c1")``.
    """

    _logger: logging.Logger = logging.getLogger("enrichment")

    @classmethod
    def configure(cls, log_level: str) -> None:
        """Set the level and attach a single stdout handler."""
        cls._logger.setLevel(log_level.upper())
        if not cls._logger.handlers:
            handler = logging.StreamHandler(sys.stdout)
            handler.setFormatter(
                ContextFormatter("%(asctime)s [%(levelname)s] %(threadName)s %(message)s")
            )
            cls._logger.addHandler(handler)

    @classmethod
    def info(cls, message: str, **context: object) -> None:
        cls._logger.info(message, extra={"context": context})

    @classmethod
    def error(cls, message: str, **context: object) -> None:
        cls._logger.error(message, extra={"context": context})

    @classmethod
    def exception(cls, message: str, **context: object) -> None:
        """Log at ERROR with the active exception's traceback."""
        cls._logger.exception(message, extra={"context": context})

    @classmethod
    def warning(cls, message: str, **context: object) -> None:
        cls._logger.warning(message, extra={"context": context})

    @classmethod
    def debug(cls, message: str, **context: object) -> None:
        cls._logger.debug(message, extra={"context": context})
