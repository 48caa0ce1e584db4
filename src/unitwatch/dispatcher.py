"""Periodic fan-out of per-unit CPU sampling."""

import logging
import threading
import time
from collections.abc import Callable

from unitwatch.config import is_positive_duration
from unitwatch.errors import ConfigError
from unitwatch.models import CPUUsage, MonitoredUnit, SampleResult
from unitwatch.units import UnitEnumerator

logger = logging.getLogger(__name__)

Sampler = Callable[[int, float], CPUUsage]

# How often a blocked join re-checks the stop event
JOIN_POLL_INTERVAL = 0.1


class UnitPollDispatcher:
    """
    Runs one sampling thread per unit on every tick.

    All of a tick's sampling threads are started before any is joined, and
    all are joined before the next tick begins, so at most one generation of
    sampling threads is ever outstanding.
    """

    def __init__(
        self,
        enumerator: UnitEnumerator,
        sampler: Sampler,
        on_result: Callable[[SampleResult], object],
        stop_event: threading.Event,
        tick_interval: float,
        sample_window: float,
    ) -> None:
        if not is_positive_duration(tick_interval):
            raise ConfigError(
                f"tick_interval must be a positive finite duration, got {tick_interval!r}"
            )
        if not is_positive_duration(sample_window):
            raise ConfigError(
                f"sample_window must be a positive finite duration, got {sample_window!r}"
            )

        self._enumerator = enumerator
        self._sampler = sampler
        self._on_result = on_result
        self._stop_event = stop_event
        self._tick_interval = tick_interval
        self._sample_window = sample_window
        self.ticks = 0

    @property
    def tick_interval(self) -> float:
        return self._tick_interval

    def run(self) -> None:
        """Tick on a fixed cadence until the stop event is set."""
        while not self._stop_event.is_set():
            started = time.monotonic()
            self.poll_once()
            if self._stop_event.is_set():
                break
            elapsed = time.monotonic() - started
            self._stop_event.wait(timeout=max(0.0, self._tick_interval - elapsed))
        logger.info("Shutting down watcher")

    def poll_once(self) -> bool:
        """
        Run a single tick.

        Returns:
            True if every sampling thread of the tick was joined, False if the
            tick was skipped or abandoned because of a stop request.
        """
        self.ticks += 1
        try:
            units = self._enumerator.list_units()
        except Exception as exc:
            logger.error("Unable to get a list of units: %s", exc)
            return False

        threads = [
            threading.Thread(
                target=self._handle_unit,
                args=(unit,),
                daemon=True,
                name=f"sample-{unit.name}",
            )
            for unit in units
        ]
        for thread in threads:
            thread.start()

        for thread in threads:
            while thread.is_alive():
                thread.join(timeout=JOIN_POLL_INTERVAL)
                if self._stop_event.is_set():
                    logger.debug("Stop requested, abandoning tick %d", self.ticks)
                    return False
        return True

    def _handle_unit(self, unit: MonitoredUnit) -> None:
        try:
            usage = self._sampler(unit.pid, self._sample_window)
        except Exception as exc:
            logger.error("Unit %s. Error %s", unit.name, exc)
            return

        if self._stop_event.is_set():
            return
        self._on_result(SampleResult(unit_name=unit.name, pid=unit.pid, cpu=usage))
