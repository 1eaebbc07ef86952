"""A MapReduce application that reports whether map tasks run in parallel."""

from __future__ import annotations

import os
import re
import time
from pathlib import Path

from labkit.mr.common import KeyValue


def _is_alive(pid: int) -> bool:
    try:
        os.kill(pid, 0)
    except (OSError, OverflowError, ValueError):
        return False
    return True


def nparallel(phase: str) -> int:
    """Count the live workers that are in ``phase`` at the same time as this one.

    Each worker announces itself with a ``mr-worker-<phase>-<pid>`` file in
    the current directory for about a second.
    """
    marker = Path(f"mr-worker-{phase}-{os.getpid()}")
    marker.write_bytes(b"x")
    pattern = re.compile(rf"mr-worker-{re.escape(phase)}-([+-]?\d+)")
    alive = 0
    for name in os.listdir("."):
        match = pattern.match(name)
        if match and _is_alive(int(match.group(1))):
            alive += 1
    time.sleep(1)
    marker.unlink()
    return alive


def mapf(filename: str, contents: str) -> list[KeyValue]:
    """Report the start time and the parallelism seen by this process."""
    started = time.time()
    pid = os.getpid()
    n = nparallel("map")
    return [
        KeyValue(f"times-{pid}", f"{started:.1f}"),
        KeyValue(f"parallel-{pid}", str(n)),
    ]


def reducef(key: str, values: list[str]) -> str:
    return " ".join(sorted(values))