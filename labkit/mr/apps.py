"""Look up the map and reduce functions of a MapReduce application by name."""

from __future__ import annotations

from pathlib import PurePath
from types import ModuleType
from typing import Callable

from labkit.mr.common import KeyValue
from labkit.mrapps import crash, early_exit, indexer, jobcount, mtiming, nocrash, rtiming, wc

__all__ = ["PluginError", "load_plugin"]

MapFunc = Callable[[str, str], list[KeyValue]]
ReduceFunc = Callable[[str, list[str]], str]

_PLUGINS: dict[str, ModuleType] = {
    "wc": wc,
    "indexer": indexer,
    "crash": crash,
    "nocrash": nocrash,
    "early_exit": early_exit,
    "jobcount": jobcount,
    "mtiming": mtiming,
    "rtiming": rtiming,
}


class PluginError(LookupError):
    """No application is known by the given name."""


def load_plugin(name: str) -> tuple[MapFunc, ReduceFunc]:
    """Return ``(mapf, reducef)`` for an application such as ``"wc"``.

    A path or file name such as ``"../mrapps/wc.so"`` names the same
    application as its stem.
    """
    module = _PLUGINS.get(PurePath(name).stem)
    if module is None:
        raise PluginError(f"cannot load plugin {name}")
    return module.mapf, module.reducef