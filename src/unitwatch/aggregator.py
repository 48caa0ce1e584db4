"""Result aggregator: merges samples and events into batches for the sinks."""

import logging
import socket
import threading
import time
from collections.abc import Callable, Sequence
from queue import Empty, Full, Queue

from unitwatch.config import is_positive_duration
from unitwatch.errors import ConfigError, SinkError
from unitwatch.models import Event, Row, SampleResult
from unitwatch.sinks import Sink
from unitwatch.uploader import upload

logger = logging.getLogger(__name__)

UNDEFINED_HOSTNAME = "<undefined>"

# Upper bound on a single blocking wait so the stop event is always observed
STOP_POLL_INTERVAL = 0.5

# Inbox capacity; producers block once it is full
INBOX_SIZE = 16

# How often a producer blocked on a full inbox re-checks the stop event
SUBMIT_POLL_INTERVAL = 0.1

_WAKE = object()


def resolve_hostname() -> str:
    """Return the host name, or a placeholder if it cannot be determined."""
    try:
        hostname = socket.gethostname()
    except OSError as exc:
        logger.error("Unable to determine hostname: %s", exc)
        return UNDEFINED_HOSTNAME
    return hostname or UNDEFINED_HOSTNAME


class ResultAggregator:
    """
    Single consumer that turns sample results and pushed events into batches.

    Sample results are appended to one open batch, which is uploaded when it
    holds ``max_rows`` rows or when ``max_age`` seconds have passed since it
    was opened, whichever comes first. Pushed events skip the open batch and
    are uploaded on their own right away. All input arrives through one small
    bounded inbox queue, so producers stall while sinks lag, and the open
    batch is only ever touched by the thread calling ``run()``.
    """

    def __init__(
        self,
        sinks: Sequence[Sink],
        max_rows: int,
        max_age: float,
        stop_event: threading.Event | None = None,
        hostname: str | None = None,
        flush_on_shutdown: bool = False,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """
        Initialize the ResultAggregator.

        Args:
            sinks: Sinks receiving each batch, in delivery order.
            max_rows: Row count that triggers a flush.
            max_age: Seconds after which an open batch is flushed.
            stop_event: Cancellation signal. A fresh, never-set event if omitted.
            hostname: Host name stamped on rows. Resolved once if omitted.
            flush_on_shutdown: Upload the open batch on shutdown instead of
                dropping it.
            clock: Monotonic time source.
        """
        if isinstance(max_rows, bool) or not isinstance(max_rows, int) or max_rows < 1:
            raise ConfigError(f"max_rows must be an integer of at least 1, got {max_rows!r}")
        if not is_positive_duration(max_age):
            raise ConfigError(f"max_age must be a positive finite duration, got {max_age!r}")

        self._sinks = tuple(sinks)
        self._max_rows = max_rows
        self._max_age = max_age
        self._stop_event = stop_event if stop_event is not None else threading.Event()
        self._hostname = hostname if hostname is not None else resolve_hostname()
        self._flush_on_shutdown = flush_on_shutdown
        self._clock = clock

        self._inbox: Queue[SampleResult | Event | object] = Queue(maxsize=INBOX_SIZE)
        self._rows: list[Row] = []
        self._opened_at = clock()

        self.batches_flushed = 0
        self.events_uploaded = 0
        self.upload_failures = 0
        self.rows_dropped = 0

    @property
    def hostname(self) -> str:
        return self._hostname

    @property
    def pending_rows(self) -> int:
        """Number of rows in the open batch."""
        return len(self._rows)

    @property
    def queued_inputs(self) -> int:
        """Approximate number of inputs waiting in the inbox."""
        return self._inbox.qsize()

    def submit_result(self, result: SampleResult) -> bool:
        """
        Queue a sample result for the open batch.

        Blocks while the inbox is full. Returns False if the stop event was
        set before the result could be queued.
        """
        return self._put(result)

    def submit_event(self, event: Event) -> bool:
        """Queue an externally produced event for immediate upload, blocking while full."""
        return self._put(event)

    def wake(self) -> None:
        """Interrupt a blocking wait so the stop event is checked promptly."""
        try:
            self._inbox.put_nowait(_WAKE)
        except Full:
            # A full inbox already wakes the consumer
            pass

    def _put(self, item: SampleResult | Event) -> bool:
        while True:
            try:
                self._inbox.put(item, timeout=SUBMIT_POLL_INTERVAL)
                return True
            except Full:
                if self._stop_event.is_set():
                    logger.debug("Stop requested, discarding %s", type(item).__name__)
                    return False

    def run(self) -> None:
        """Consume the inbox until the stop event is set."""
        self._opened_at = self._clock()

        while not self._stop_event.is_set():
            try:
                item = self._inbox.get(timeout=self._wait_timeout())
            except Empty:
                if self._rows and self._age() >= self._max_age:
                    self._flush()
                continue

            if item is _WAKE:
                continue
            if self._stop_event.is_set():
                break

            if isinstance(item, SampleResult):
                self._handle_result(item)
            elif isinstance(item, Row):
                self._handle_event(item)
            else:
                logger.warning("Ignoring unexpected input of type %s", type(item).__name__)

        self._shutdown()

    def _wait_timeout(self) -> float:
        if not self._rows:
            return STOP_POLL_INTERVAL
        remaining = self._max_age - self._age()
        return max(0.0, min(remaining, STOP_POLL_INTERVAL))

    def _age(self) -> float:
        return self._clock() - self._opened_at

    def _handle_result(self, result: SampleResult) -> None:
        logger.debug(
            "[%s]: User %f; System %f; Total %f",
            result.unit_name,
            result.cpu.user,
            result.cpu.system,
            result.cpu.total,
        )
        self._rows.append(result.to_row(self._hostname))
        if len(self._rows) >= self._max_rows or self._age() >= self._max_age:
            self._flush()

    def _handle_event(self, event: Event) -> None:
        try:
            upload((event,), self._sinks)
        except SinkError as exc:
            self.upload_failures += 1
            logger.error("Error saving a new event: %s", exc)
            return
        self.events_uploaded += 1

    def _flush(self) -> None:
        # Hand off the rows and open a fresh batch before uploading
        batch = tuple(self._rows)
        self._rows = []
        self._opened_at = self._clock()

        try:
            upload(batch, self._sinks)
        except SinkError as exc:
            self.upload_failures += 1
            self.rows_dropped += len(batch)
            logger.error("%s (%d rows lost)", exc, len(batch))
            return
        self.batches_flushed += 1

    def _shutdown(self) -> None:
        logger.info("Shutting down result processor")
        if not self._rows:
            return
        if self._flush_on_shutdown:
            logger.info("Flushing %d pending rows", len(self._rows))
            self._flush()
        else:
            logger.info("Dropping %d pending rows", len(self._rows))
            self.rows_dropped += len(self._rows)
            self._rows = []
