"""Lifecycle of the dispatcher and aggregator threads."""

import logging
import threading
from collections.abc import Sequence

from unitwatch.aggregator import ResultAggregator
from unitwatch.config import WatcherConfig
from unitwatch.dispatcher import Sampler, UnitPollDispatcher
from unitwatch.models import Event
from unitwatch.sampler import sample_cpu
from unitwatch.sinks import Sink
from unitwatch.units import UnitEnumerator

logger = logging.getLogger(__name__)


class Watcher:
    """
    Periodic CPU watcher for a changing set of units.

    Runs the poll dispatcher and the result aggregator in two daemon threads
    that share one stop event. Setting the event (directly, or through
    ``stop()``) makes the dispatcher stop ticking and the aggregator return.
    """

    def __init__(
        self,
        config: WatcherConfig,
        enumerator: UnitEnumerator,
        sinks: Sequence[Sink],
        sampler: Sampler = sample_cpu,
        stop_event: threading.Event | None = None,
        hostname: str | None = None,
    ) -> None:
        config.validate()
        self._config = config
        self._sinks = tuple(sinks)
        self._stop_event = stop_event if stop_event is not None else threading.Event()

        self._aggregator = ResultAggregator(
            self._sinks,
            max_rows=config.max_rows,
            max_age=config.max_age,
            stop_event=self._stop_event,
            hostname=hostname,
            flush_on_shutdown=config.flush_on_shutdown,
        )
        self._dispatcher = UnitPollDispatcher(
            enumerator,
            sampler,
            on_result=self._aggregator.submit_result,
            stop_event=self._stop_event,
            tick_interval=config.tick_interval,
            sample_window=config.sample_window,
        )
        self._threads: list[threading.Thread] = []

    @property
    def aggregator(self) -> ResultAggregator:
        return self._aggregator

    @property
    def dispatcher(self) -> UnitPollDispatcher:
        return self._dispatcher

    @property
    def stop_event(self) -> threading.Event:
        return self._stop_event

    @property
    def is_running(self) -> bool:
        """Check if any watcher thread is alive."""
        return any(thread.is_alive() for thread in self._threads)

    def start(self) -> None:
        """Start the aggregator and dispatcher threads."""
        if self.is_running:
            return

        logger.info(
            "Starting watcher: tick %.3gs, window %.3gs, batch %d rows / %.3gs, sinks: %s",
            self._config.tick_interval,
            self._config.sample_window,
            self._config.max_rows,
            self._config.max_age,
            ", ".join(sink.identifier() for sink in self._sinks) or "none",
        )
        # Aggregator first so no result is submitted without a consumer
        self._threads = [
            threading.Thread(target=self._aggregator.run, daemon=True, name="ResultAggregator"),
            threading.Thread(target=self._dispatcher.run, daemon=True, name="UnitPollDispatcher"),
        ]
        for thread in self._threads:
            thread.start()

    def push_event(self, event: Event) -> bool:
        """
        Upload an externally produced event as its own batch.

        Blocks while the aggregator inbox is full. Returns False if the
        watcher stopped before the event could be queued.
        """
        return self._aggregator.submit_event(event)

    def stop(self, timeout: float | None = 5.0) -> None:
        """
        Signal shutdown, wait for both threads and close the sinks.

        Args:
            timeout: How long to wait for each thread to stop (seconds).
        """
        self._stop_event.set()
        self._aggregator.wake()
        for thread in self._threads:
            thread.join(timeout=timeout)
            if thread.is_alive():
                logger.warning("Thread %s did not stop within %ss", thread.name, timeout)
        self._threads = []

        for sink in self._sinks:
            try:
                sink.close()
            except Exception as exc:
                logger.error("Error closing sink %s: %s", sink.identifier(), exc)

    def run_forever(self) -> None:
        """Start the watcher and block until the stop event is set."""
        self.start()
        try:
            while not self._stop_event.wait(timeout=1.0):
                pass
        finally:
            self.stop()

    def __enter__(self) -> "Watcher":
        self.start()
        return self

    def __exit__(self, *exc_info) -> None:
        self.stop()
