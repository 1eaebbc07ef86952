"""The in-memory key/value state machine applied by each server."""

from __future__ import annotations

from dataclasses import dataclass, field

from labkit.kvraft.common import Err


@dataclass
class KVStateMachine:
    data: dict[str, str] = field(default_factory=dict)

    def get(self, key: str) -> tuple[str, Err]:
        if key in self.data:
            return self.data[key], Err.OK
        return "", Err.ERR_NO_KEY

    def put(self, key: str, value: str) -> Err:
        self.data[key] = value
        return Err.OK

    def append(self, key: str, value: str) -> Err:
        self.data[key] = self.data.get(key, "") + value
        return Err.OK