"""Shared fixtures and fakes for unitwatch tests."""

import threading
import time
from datetime import datetime, timezone

import pytest

from unitwatch.aggregator import ResultAggregator
from unitwatch.models import CPUUsage, Row, SampleResult
from unitwatch.sinks import MemorySink, Sink


def wait_for(predicate, timeout: float = 2.0, interval: float = 0.01) -> bool:
    """Poll a predicate until it holds or the timeout expires."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return predicate()


def make_result(name: str = "svc.service", pid: int = 100, user: float = 1.0) -> SampleResult:
    return SampleResult(unit_name=name, pid=pid, cpu=CPUUsage(user=user, system=2.0, total=3.0))


def make_event(name: str = "deploy") -> Row:
    return Row(
        name=name,
        timestamp=datetime(2024, 1, 1, tzinfo=timezone.utc),
        user_cpu=0.0,
        system_cpu=0.0,
        total_cpu=0.0,
        hostname="upstream",
        instance="event-1",
    )


class FlakySink(Sink):
    """Sink failing its first ``failures`` puts, then storing batches."""

    def __init__(self, name: str = "flaky", failures: int = 1) -> None:
        self._name = name
        self._failures = failures
        self.attempts = 0
        self.batches = []

    def identifier(self) -> str:
        return self._name

    def put(self, rows) -> None:
        self.attempts += 1
        if self.attempts <= self._failures:
            raise RuntimeError("backend unavailable")
        self.batches.append(tuple(rows))


@pytest.fixture
def memory_sink() -> MemorySink:
    return MemorySink()


@pytest.fixture
def run_aggregator():
    """Start aggregators in background threads and stop them after the test."""
    started = []

    def _run(aggregator: ResultAggregator, stop_event: threading.Event) -> threading.Thread:
        thread = threading.Thread(target=aggregator.run, daemon=True, name="ResultAggregator")
        thread.start()
        started.append((aggregator, stop_event, thread))
        return thread

    yield _run

    for aggregator, stop_event, thread in started:
        stop_event.set()
        aggregator.wake()
        thread.join(timeout=2.0)
