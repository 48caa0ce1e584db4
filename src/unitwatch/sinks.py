"""Storage sinks that receive batches of rows."""

import json
import logging
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

from unitwatch.errors import ConfigError
from unitwatch.models import Batch


class Sink(ABC):
    """A pluggable destination for batches."""

    @abstractmethod
    def identifier(self) -> str:
        """Stable string identifying this sink in logs and errors."""

    @abstractmethod
    def put(self, rows: Batch) -> None:
        """Store a batch, raising on failure."""

    def close(self) -> None:
        """Release resources held by the sink."""


class JsonLinesSink(Sink):
    """Append each row as one JSON object per line to a file."""

    def __init__(self, path: Path | str) -> None:
        self._path = Path(path)
        self._file = None

    @property
    def path(self) -> Path:
        return self._path

    def identifier(self) -> str:
        return f"jsonl:{self._path}"

    def put(self, rows: Batch) -> None:
        # Serialise the whole batch before touching the file
        payload = "".join(json.dumps(row.to_dict()) + "\n" for row in rows)
        if self._file is None:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._file = open(self._path, "a", encoding="utf-8")
        self._file.write(payload)
        self._file.flush()

    def close(self) -> None:
        if self._file is not None:
            self._file.close()
            self._file = None


class LogSink(Sink):
    """Write rows to the log instead of storing them."""

    def __init__(self, logger_name: str = "unitwatch.rows") -> None:
        self._logger = logging.getLogger(logger_name)

    def identifier(self) -> str:
        return f"log:{self._logger.name}"

    def put(self, rows: Batch) -> None:
        for row in rows:
            self._logger.info(
                "%s %s pid=%s user=%.2f system=%.2f total=%.2f",
                row.hostname,
                row.name,
                row.instance,
                row.user_cpu,
                row.system_cpu,
                row.total_cpu,
            )


class MemorySink(Sink):
    """Keep every received batch in memory."""

    def __init__(self, name: str = "memory") -> None:
        self._name = name
        self._batches: list[Batch] = []
        self._lock = threading.Lock()

    def identifier(self) -> str:
        return self._name

    def put(self, rows: Batch) -> None:
        with self._lock:
            self._batches.append(tuple(rows))

    @property
    def batches(self) -> list[Batch]:
        with self._lock:
            return list(self._batches)


def build_sinks(specs: list[dict[str, Any]]) -> list[Sink]:
    """
    Build sinks from configuration entries.

    Each entry is a mapping with a ``type`` key: ``jsonl`` (requires
    ``path``), ``log`` (optional ``logger``) or ``memory`` (optional ``name``).
    """
    sinks: list[Sink] = []
    for spec in specs:
        kind = spec.get("type")
        if kind == "jsonl":
            if not spec.get("path"):
                raise ConfigError("jsonl sink requires a 'path'")
            sinks.append(JsonLinesSink(spec["path"]))
        elif kind == "log":
            sinks.append(LogSink(spec.get("logger", "unitwatch.rows")))
        elif kind == "memory":
            sinks.append(MemorySink(spec.get("name", "memory")))
        else:
            raise ConfigError(f"Unknown sink type: {kind!r}")
    return sinks
