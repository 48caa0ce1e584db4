"""CPU sampling of a single process using psutil."""

import time

import psutil

from unitwatch.errors import SamplingError
from unitwatch.models import CPUUsage


def sample_cpu(pid: int, window: float) -> CPUUsage:
    """
    Measure the CPU usage of a process over a sampling window.

    Blocks for ``window`` seconds. User, system and total usage are computed
    from the ``cpu_times()`` deltas over the same window, total being the
    combined user and system time of the process (children excluded). All
    values are percent of one CPU.

    Args:
        pid: Process to sample.
        window: Sampling window in seconds.

    Raises:
        SamplingError: If the process vanished, is a zombie, or cannot be read.
        ValueError: If the window is not positive.
    """
    if window <= 0:
        raise ValueError(f"sampling window must be positive, got {window}")

    try:
        proc = psutil.Process(pid)
        before = proc.cpu_times()
        started = time.monotonic()

        time.sleep(window)

        after = proc.cpu_times()
        elapsed = time.monotonic() - started
    except psutil.ZombieProcess as exc:
        raise SamplingError(pid, "process is a zombie") from exc
    except psutil.NoSuchProcess as exc:
        raise SamplingError(pid, "process no longer exists") from exc
    except psutil.AccessDenied as exc:
        raise SamplingError(pid, "access denied") from exc

    if elapsed <= 0:
        raise SamplingError(pid, "empty sampling window")

    user = max(0.0, after.user - before.user)
    system = max(0.0, after.system - before.system)
    return CPUUsage(
        user=user / elapsed * 100,
        system=system / elapsed * 100,
        total=(user + system) / elapsed * 100,
    )
