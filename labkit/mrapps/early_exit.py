"""A MapReduce application whose reduce stalls for some keys, to catch
workers that exit before all work is done."""

from __future__ import annotations

import time

from labkit.mr.common import KeyValue

SLOW_KEYS = ("sherlock", "tom")
SLOW_SECONDS = 3


def mapf(filename: str, contents: str) -> list[KeyValue]:
    """Emit one ``(filename, "1")`` pair per input file."""
    return [KeyValue(filename, "1")]


def reducef(key: str, values: list[str]) -> str:
    """Count the values, sleeping first when the key names a slow file."""
    if any(word in key for word in SLOW_KEYS):
        time.sleep(SLOW_SECONDS)
    return str(len(values))