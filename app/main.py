import sys

from app.config.settings import Settings
from app.logging.logger import Log
from app.processor.processor import build_breaker, build_processor
from app.remote.client import RemoteClient
from app.worker.worker import Worker


def main() -> None:
    """Entry point: settings -> clients -> breaker -> processor -> process stdin events."""
    settings = Settings()
    Log.configure(settings.log_level)

    with RemoteClient(timeout_seconds=settings.http_timeout_seconds) as remote_client:
        breaker = build_breaker(settings)
        processor = build_processor(
            settings, remote_client=remote_client, breaker=breaker
        )
        worker = Worker(processor, settings)
        worker.run(sys.stdin)


if __name__ == "__main__":
    main()
