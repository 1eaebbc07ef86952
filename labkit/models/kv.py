"""A linearizability model of a key/value store, partitioned by key."""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from typing import Any

GET = 0
PUT = 1
APPEND = 2


@dataclass(frozen=True)
class KvInput:
    op: int
    key: str
    value: str = ""


@dataclass(frozen=True)
class KvOutput:
    value: str = ""


@dataclass(frozen=True)
class Operation:
    """One client call with its invocation and response times."""

    input: Any
    output: Any
    call: int = 0
    ret: int = 0
    client_id: int = 0


def partition(history: list[Operation]) -> list[list[Operation]]:
    """Split a history into per-key histories, ordered by key."""
    by_key: dict[str, list[Operation]] = defaultdict(list)
    for operation in history:
        by_key[operation.input.key].append(operation)
    return [by_key[key] for key in sorted(by_key)]


def init_state() -> str:
    """The initial value of a single key."""
    return ""


def step(state: str, input: KvInput, output: KvOutput) -> tuple[bool, str]:
    """Apply one operation; return whether it is legal and the new state."""
    if input.op == GET:
        return output.value == state, state
    if input.op == PUT:
        return True, input.value
    return True, state + input.value


def describe_operation(input: KvInput, output: KvOutput) -> str:
    if input.op == GET:
        return f"get('{input.key}') -> '{output.value}'"
    if input.op == PUT:
        return f"put('{input.key}', '{input.value}')"
    if input.op == APPEND:
        return f"append('{input.key}', '{input.value}')"
    return "<invalid>"