"""Command that runs the MapReduce coordinator until the job is done."""

from __future__ import annotations

import sys
import time
from typing import Optional, Sequence

from labkit.mr.coordinator import make_coordinator

__all__ = ["main"]

USAGE = "Usage: mrcoordinator inputfiles..."
N_REDUCE = 10


def main(argv: Optional[Sequence[str]] = None) -> int:
    files = list(sys.argv[1:] if argv is None else argv)
    if not files:
        print(USAGE, file=sys.stderr)
        return 1
    coordinator = make_coordinator(files, N_REDUCE)
    try:
        while not coordinator.done():
            time.sleep(1)
        # give workers a moment to learn that the job is over
        time.sleep(1)
    finally:
        coordinator.close()
    return 0