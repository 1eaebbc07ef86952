"""Self-describing value encoding with checks for common RPC mistakes.

Values are written as one JSON document per line. Dataclasses and enums are
tagged with a registered name so that they can be rebuilt on decode.
Two kinds of mistakes are reported and counted:

* dataclass fields whose names start with an underscore (private fields
  are not meant to cross an RPC or a snapshot boundary);
* decoding while holding a template whose fields are not at their defaults,
  which usually means a reply object is being reused.
"""

from __future__ import annotations

import base64
import dataclasses
import json
import threading
from enum import Enum
from typing import Any, BinaryIO

__all__ = [
    "LabDecoder",
    "LabEncoder",
    "LabgobError",
    "error_count",
    "register",
    "register_name",
]

_lock = threading.Lock()
_error_count = 0
_checked: set[type] = set()
_by_name: dict[str, type] = {}
_names: dict[type, str] = {}


class LabgobError(ValueError):
    """Raised when a value cannot be encoded or a record cannot be decoded."""


def error_count() -> int:
    """Number of problems reported so far."""
    return _error_count


def _bump() -> int:
    global _error_count
    with _lock:
        before = _error_count
        _error_count += 1
    return before


def _default_name(cls: type) -> str:
    return f"{cls.__module__}.{cls.__qualname__}"


def _add(cls: type, name: str) -> None:
    with _lock:
        existing = _by_name.get(name)
        if existing is not None and existing is not cls:
            raise LabgobError(f"name {name!r} is already registered for {existing.__qualname__}")
        current = _names.get(cls)
        if current is not None and current != name:
            raise LabgobError(f"{cls.__qualname__} is already registered as {current!r}")
        _by_name[name] = cls
        _names[cls] = name


def _class_of(value: Any) -> type:
    return value if isinstance(value, type) else type(value)


def register(value: Any) -> None:
    """Register the type of ``value`` (or ``value`` itself if it is a type)."""
    _check_value(value)
    cls = _class_of(value)
    _add(cls, _names.get(cls) or _default_name(cls))


def register_name(name: str, value: Any) -> None:
    """Register the type of ``value`` under an explicit wire name."""
    _check_value(value)
    _add(_class_of(value), name)


def _ensure_registered(cls: type) -> str:
    name = _names.get(cls)
    if name is None:
        name = _default_name(cls)
        _add(cls, name)
    return name


def _check_class(cls: type) -> None:
    with _lock:
        if cls in _checked:
            return
        _checked.add(cls)
    if dataclasses.is_dataclass(cls):
        for field in dataclasses.fields(cls):
            if field.name.startswith("_"):
                print(
                    f"labgob error: private field {field.name} of {cls.__name__} "
                    "in RPC or persist/snapshot will break your Raft"
                )
                _bump()


def _check_value(value: Any) -> None:
    if value is None:
        return
    if isinstance(value, type):
        _check_class(value)
        return
    if dataclasses.is_dataclass(value):
        _check_class(type(value))
        for field in dataclasses.fields(value):
            _check_value(getattr(value, field.name))
    elif isinstance(value, (list, tuple, set, frozenset)):
        for item in value:
            _check_value(item)
    elif isinstance(value, dict):
        for key, item in value.items():
            _check_value(key)
            _check_value(item)


def _check_default(value: Any, depth: int = 1, name: str = "") -> None:
    if depth > 3 or value is None or isinstance(value, type):
        return
    if dataclasses.is_dataclass(value):
        for field in dataclasses.fields(value):
            child = f"{name}.{field.name}" if name else field.name
            _check_default(getattr(value, field.name), depth + 1, child)
        return
    if isinstance(value, Enum):
        return
    if isinstance(value, (bool, int, float, str, bytes)) and value != type(value)():
        if _bump() < 1:
            what = name or type(value).__name__
            print(f"labgob warning: Decoding into a non-default variable/field {what} may not work")


def _to_wire(value: Any) -> Any:
    if isinstance(value, Enum):
        return {"E": _ensure_registered(type(value)), "v": _to_wire(value.value)}
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, bytes):
        return {"B": base64.b64encode(value).decode("ascii")}
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {
            "S": _ensure_registered(type(value)),
            "f": {f.name: _to_wire(getattr(value, f.name)) for f in dataclasses.fields(value)},
        }
    if isinstance(value, list):
        return [_to_wire(item) for item in value]
    if isinstance(value, tuple):
        return {"T": [_to_wire(item) for item in value]}
    if isinstance(value, (set, frozenset)):
        return {"Z": [_to_wire(item) for item in value]}
    if isinstance(value, dict):
        return {"M": [[_to_wire(k), _to_wire(v)] for k, v in value.items()]}
    raise LabgobError(f"cannot encode value of type {type(value).__name__}")


def _lookup(name: str) -> type:
    cls = _by_name.get(name)
    if cls is None:
        raise LabgobError(f"type not registered for name {name!r}")
    return cls


def _from_wire(data: Any) -> Any:
    if isinstance(data, list):
        return [_from_wire(item) for item in data]
    if not isinstance(data, dict):
        return data
    if "E" in data:
        return _lookup(data["E"])(_from_wire(data["v"]))
    if "B" in data:
        return base64.b64decode(data["B"])
    if "T" in data:
        return tuple(_from_wire(item) for item in data["T"])
    if "Z" in data:
        return {_from_wire(item) for item in data["Z"]}
    if "M" in data:
        return {_from_wire(k): _from_wire(v) for k, v in data["M"]}
    if "S" in data:
        cls = _lookup(data["S"])
        values = {name: _from_wire(v) for name, v in data["f"].items()}
        init = {f.name for f in dataclasses.fields(cls) if f.init}
        obj = cls(**{k: v for k, v in values.items() if k in init})
        for key, item in values.items():
            if key not in init:
                object.__setattr__(obj, key, item)
        return obj
    raise LabgobError(f"malformed record: {data!r}")


class LabEncoder:
    """Writes encoded values to a binary stream."""

    def __init__(self, writer: BinaryIO) -> None:
        self._writer = writer

    def encode(self, value: Any) -> None:
        _check_value(value)
        text = json.dumps(_to_wire(value), separators=(",", ":"))
        self._writer.write(text.encode("utf-8") + b"\n")


class LabDecoder:
    """Reads values written by :class:`LabEncoder` from a binary stream."""

    def __init__(self, reader: BinaryIO) -> None:
        self._reader = reader

    def decode(self, template: Any = None) -> Any:
        """Decode the next value.

        ``template`` describes what is expected; it is only checked for
        private fields and non-default contents.
        """
        _check_value(template)
        _check_default(template)
        line = self._reader.readline()
        if not line:
            raise EOFError("no more values")
        if not line.endswith(b"\n"):
            raise LabgobError("truncated record")
        try:
            data = json.loads(line)
        except ValueError as exc:
            raise LabgobError(f"bad record: {exc}") from exc
        return _from_wire(data)