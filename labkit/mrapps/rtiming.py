"""A MapReduce application that reports whether reduce tasks run in parallel."""

from __future__ import annotations

from labkit.mr.common import KeyValue
from labkit.mrapps import mtiming

__all__ = ["mapf", "nparallel", "reducef"]

_KEYS = "abcdefghij"


def nparallel(phase: str) -> int:
    """The number of live workers, this one included, running ``phase``."""
    return mtiming.nparallel(phase)


def mapf(filename: str, contents: str) -> list[KeyValue]:
    """Emit ten fixed keys so that every reduce task gets work."""
    return [KeyValue(key, "1") for key in _KEYS]


def reducef(key: str, values: list[str]) -> str:
    """The number of reduce workers running at the same time as this one."""
    return str(nparallel("reduce"))