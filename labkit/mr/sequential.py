"""Run a MapReduce application sequentially in one process."""

from __future__ import annotations

import sys
from itertools import groupby
from operator import attrgetter
from typing import Callable, Iterable, Optional, Sequence

from labkit.mr.apps import PluginError, load_plugin
from labkit.mr.common import KeyValue

__all__ = ["main", "run"]

USAGE = "Usage: mrsequential xxx.so inputfiles..."


def run(
    mapf: Callable[[str, str], list[KeyValue]],
    reducef: Callable[[str, list[str]], str],
    filenames: Iterable[str],
    output: str = "mr-out-0",
) -> str:
    """Map every input file, reduce each distinct key in key order and write
    one ``key value`` line per key to ``output``, whose path is returned."""
    intermediate: list[KeyValue] = []
    for filename in filenames:
        with open(filename, "rb") as handle:
            content = handle.read().decode("utf-8", errors="replace")
        intermediate.extend(mapf(filename, content))
    intermediate.sort(key=attrgetter("key"))
    with open(output, "w", encoding="utf-8") as out:
        for key, group in groupby(intermediate, key=attrgetter("key")):
            out.write(f"{key} {reducef(key, [kv.value for kv in group])}\n")
    return output


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = list(sys.argv[1:] if argv is None else argv)
    if len(args) < 2:
        print(USAGE, file=sys.stderr)
        return 1
    try:
        mapf, reducef = load_plugin(args[0])
        run(mapf, reducef, args[1:])
    except PluginError as exc:
        print(exc, file=sys.stderr)
        return 1
    except OSError as exc:
        print(f"cannot open {exc.filename}", file=sys.stderr)
        return 1
    return 0