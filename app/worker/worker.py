import json
from collections.abc import Iterable
from concurrent.futures import (
    ALL_COMPLETED,
    FIRST_COMPLETED,
    Future,
    ThreadPoolExecutor,
    wait,
)

from app.config.settings import Settings
from app.logging.logger import Log
from app.processor.exceptions import ProcessorError
from app.processor.models import UploadEvent
from app.processor.pipeline import PipelineContext
from app.processor.processor import Processor


class Worker:
    """Fan out upload events to independent, concurrent orchestrations."""

    # Submitted-but-unfinished events allowed per pool thread.
    IN_FLIGHT_PER_WORKER = 2

    def __init__(self, processor: Processor, settings: Settings) -> None:
        self._processor = processor
        self._settings = settings

    def run(self, lines: Iterable[str]) -> int:
        """Process one JSON-encoded upload event per line.

        Lines are read lazily; at most ``worker_concurrency * IN_FLIGHT_PER_WORKER``
        events are in flight at once. Invocations that raise are logged and do
        not stop the batch.

        Returns:
            Number of invocations that reached the DONE state.
        """
        concurrency = self._settings.worker_concurrency
        max_in_flight = concurrency * self.IN_FLIGHT_PER_WORKER
        Log.info(f"Worker started with concurrency {concurrency}")
        done = 0
        try:
            with ThreadPoolExecutor(max_workers=concurrency) as pool:
                in_flight: dict[Future[PipelineContext], int] = {}
                for line_no, line in enumerate(lines, start=1):
                    if not line.strip():
                        continue
                    if len(in_flight) >= max_in_flight:
                        done += self._collect(in_flight, FIRST_COMPLETED)
                    in_flight[pool.submit(self._process_line, line)] = line_no
                if in_flight:
                    done += self._collect(in_flight, ALL_COMPLETED)
        except KeyboardInterrupt:
            Log.info("Worker shutting down gracefully")
        Log.info(f"Worker finished: {done} event(s) processed")
        return done

    def _collect(
        self, in_flight: dict[Future[PipelineContext], int], return_when: str
    ) -> int:
        """Wait for finished invocations, log their failures and forget them."""
        finished, _ = wait(in_flight, return_when=return_when)
        processed = 0
        for future in finished:
            line_no = in_flight.pop(future)
            try:
                future.result()
                processed += 1
            except (ProcessorError, ValueError) as exc:
                Log.error(f"Event rejected: {exc}", line=line_no)
            except Exception as exc:
                Log.exception(f"Event failed: {exc}", line=line_no)
        return processed

    def _process_line(self, line: str) -> PipelineContext:
        event = UploadEvent.from_dict(json.loads(line))
        return self._processor.process_file(event)
