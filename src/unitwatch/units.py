"""Enumerators returning the set of monitored units."""

import fnmatch
import logging
import subprocess
from typing import Protocol

import psutil

from unitwatch.errors import EnumerationError
from unitwatch.models import MonitoredUnit

logger = logging.getLogger(__name__)


class UnitEnumerator(Protocol):
    """Returns the units to monitor at call time."""

    def list_units(self) -> list[MonitoredUnit]: ...


class StaticEnumerator:
    """Enumerator over a fixed list of units."""

    def __init__(self, units: list[MonitoredUnit]) -> None:
        self._units = list(units)

    def list_units(self) -> list[MonitoredUnit]:
        return list(self._units)


class ProcessNameEnumerator:
    """
    Enumerate running processes whose name matches a glob pattern.

    Each matching process is reported as a unit named after the process.
    Processes that die or deny access mid-iteration are skipped.
    """

    def __init__(self, patterns: list[str]) -> None:
        if not patterns:
            raise ValueError("at least one process name pattern is required")
        self._patterns = list(patterns)

    @property
    def patterns(self) -> list[str]:
        return list(self._patterns)

    def list_units(self) -> list[MonitoredUnit]:
        units: list[MonitoredUnit] = []
        try:
            for proc in psutil.process_iter(attrs=["pid", "name"]):
                try:
                    info = proc.info
                    name = info.get("name") or ""
                    if any(fnmatch.fnmatch(name, pattern) for pattern in self._patterns):
                        units.append(MonitoredUnit(name=name, pid=info["pid"]))
                except (psutil.NoSuchProcess, psutil.AccessDenied, psutil.ZombieProcess):
                    continue
        except psutil.Error as exc:
            raise EnumerationError(f"Unable to list processes: {exc}") from exc
        return units


class SystemdEnumerator:
    """
    Enumerate running systemd services and their main PIDs via ``systemctl``.

    Services without a main process (``MainPID=0``) are skipped.
    """

    def __init__(self, systemctl: str = "systemctl", timeout: float = 10.0) -> None:
        self._systemctl = systemctl
        self._timeout = timeout

    def list_units(self) -> list[MonitoredUnit]:
        names = self._running_services()
        if not names:
            return []
        output = self._run("show", "--property=Id,MainPID", *names)
        return parse_show_output(output)

    def _running_services(self) -> list[str]:
        output = self._run(
            "list-units",
            "--type=service",
            "--state=running",
            "--no-legend",
            "--plain",
            "--no-pager",
        )
        names = []
        for line in output.splitlines():
            fields = line.split()
            if fields:
                names.append(fields[0])
        return names

    def _run(self, *args: str) -> str:
        cmd = [self._systemctl, *args]
        try:
            completed = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                timeout=self._timeout,
                check=True,
            )
        except FileNotFoundError as exc:
            raise EnumerationError(f"{self._systemctl} not found") from exc
        except subprocess.TimeoutExpired as exc:
            raise EnumerationError(f"{' '.join(cmd)} timed out") from exc
        except subprocess.CalledProcessError as exc:
            stderr = (exc.stderr or "").strip()
            raise EnumerationError(
                f"{' '.join(cmd)} exited with {exc.returncode}: {stderr}"
            ) from exc
        return completed.stdout


def parse_show_output(output: str) -> list[MonitoredUnit]:
    """Parse ``systemctl show`` property blocks into units."""
    units: list[MonitoredUnit] = []
    for block in output.strip().split("\n\n"):
        props: dict[str, str] = {}
        for line in block.splitlines():
            key, sep, value = line.partition("=")
            if sep:
                props[key.strip()] = value.strip()

        name = props.get("Id")
        if not name:
            continue
        try:
            pid = int(props.get("MainPID", "0"))
        except ValueError:
            logger.warning("Unit %s has an unparsable MainPID %r", name, props.get("MainPID"))
            continue
        if pid > 0:
            units.append(MonitoredUnit(name=name, pid=pid))
    return units
