"""Exceptions raised by unitwatch."""


class UnitwatchError(Exception):
    """Base class for all unitwatch errors."""


class ConfigError(UnitwatchError):
    """Invalid configuration, raised before any loop starts."""


class EnumerationError(UnitwatchError):
    """The list of monitored units could not be obtained."""


class SamplingError(UnitwatchError):
    """CPU usage of a process could not be sampled."""

    def __init__(self, pid: int, message: str) -> None:
        super().__init__(f"pid {pid}: {message}")
        self.pid = pid


class SinkError(UnitwatchError):
    """A sink failed to store a batch."""

    def __init__(self, sink_id: str, cause: BaseException) -> None:
        super().__init__(f"Error uploading to sink {sink_id}: {cause}")
        self.sink_id = sink_id
        self.cause = cause
