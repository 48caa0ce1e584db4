"""Data models for unitwatch."""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, TypeAlias


@dataclass(slots=True, frozen=True)
class MonitoredUnit:
    """A service unit seen by the enumerator on one tick."""

    name: str
    pid: int


@dataclass(slots=True, frozen=True)
class CPUUsage:
    """CPU usage of one process over a sampling window."""

    user: float  # Percent of one CPU
    system: float
    total: float


@dataclass(slots=True, frozen=True)
class Row:
    """Sink-bound record."""

    name: str
    timestamp: datetime
    user_cpu: float
    system_cpu: float
    total_cpu: float
    hostname: str
    instance: str

    def to_dict(self) -> dict[str, Any]:
        """Return a JSON-serialisable mapping of the row."""
        return {
            "name": self.name,
            "timestamp": self.timestamp.astimezone(timezone.utc).isoformat(),
            "user_cpu": self.user_cpu,
            "system_cpu": self.system_cpu,
            "total_cpu": self.total_cpu,
            "hostname": self.hostname,
            "instance": self.instance,
        }


# Events arrive already built, carrying their own timestamp and instance.
Event: TypeAlias = Row

Batch: TypeAlias = tuple[Row, ...]


@dataclass(slots=True, frozen=True)
class SampleResult:
    """Result of sampling one unit."""

    unit_name: str
    pid: int
    cpu: CPUUsage

    def to_row(self, hostname: str, now: datetime | None = None) -> Row:
        """Build a Row from the sample, stamped with the current time."""
        return Row(
            name=self.unit_name,
            timestamp=now if now is not None else datetime.now(timezone.utc),
            user_cpu=self.cpu.user,
            system_cpu=self.cpu.system,
            total_cpu=self.cpu.total,
            hostname=hostname,
            instance=str(self.pid),
        )
