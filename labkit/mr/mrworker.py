"""Command that runs one MapReduce worker against the coordinator."""

from __future__ import annotations

import sys
from typing import Optional, Sequence

from labkit.mr.apps import PluginError, load_plugin
from labkit.mr.worker import WorkerError, run_worker

__all__ = ["main"]

USAGE = "Usage: mrworker xxx.so"


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = list(sys.argv[1:] if argv is None else argv)
    if len(args) != 1:
        print(USAGE, file=sys.stderr)
        return 1
    try:
        mapf, reducef = load_plugin(args[0])
    except PluginError as exc:
        print(exc, file=sys.stderr)
        return 1
    try:
        run_worker(mapf, reducef)
    except OSError as exc:
        print(f"dialing: {exc}", file=sys.stderr)
        return 1
    except WorkerError as exc:
        print(exc, file=sys.stderr)
        return 1
    return 0