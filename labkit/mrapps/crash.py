"""A MapReduce application that sometimes crashes and sometimes stalls,
to exercise recovery in the framework."""

from __future__ import annotations

import os
import secrets
import time

from labkit.mr.common import KeyValue


def maybe_crash() -> None:
    """Exit the process a third of the time; sleep up to 10 s another third."""
    roll = secrets.randbelow(1000)
    if roll < 330:
        os._exit(1)
    elif roll < 660:
        time.sleep(secrets.randbelow(10 * 1000) / 1000)


def mapf(filename: str, contents: str) -> list[KeyValue]:
    maybe_crash()
    return [
        KeyValue("a", filename),
        KeyValue("b", str(len(filename.encode("utf-8")))),
        KeyValue("c", str(len(contents.encode("utf-8")))),
        KeyValue("d", "xyzzy"),
    ]


def reducef(key: str, values: list[str]) -> str:
    maybe_crash()
    return " ".join(sorted(values))