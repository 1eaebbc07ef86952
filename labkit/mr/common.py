"""Task and key/value types shared by the MapReduce coordinator and workers."""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum

from labkit import labgob


class TaskPhase(IntEnum):
    MAP = 0
    REDUCE = 1


@dataclass
class Task:
    """One unit of work handed to a worker."""

    n_map: int = 0
    n_reduce: int = 0
    seq: int = 0
    phase: TaskPhase = TaskPhase.MAP
    filename: str = ""


@dataclass(frozen=True)
class KeyValue:
    """A pair emitted by a map function."""

    key: str
    value: str


labgob.register(TaskPhase)
labgob.register(Task)
labgob.register(KeyValue)