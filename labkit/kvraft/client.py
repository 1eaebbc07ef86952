"""The client side of the replicated key/value service."""

from __future__ import annotations

import secrets
from typing import Sequence

from labkit.kvraft.common import Err, GetArgs, PutAppendArgs, dprintf
from labkit.labrpc import CallFailed, ClientEnd

__all__ = ["Clerk", "UnexpectedReply", "nrand"]

OP_PUT = "Put"
OP_APPEND = "Append"


class UnexpectedReply(RuntimeError):
    """A server answered with an error the clerk cannot handle."""


def nrand() -> int:
    """A random client identifier in [0, 2**62)."""
    return secrets.randbelow(1 << 62)


class Clerk:
    """Sends requests to the servers, retrying until one of them succeeds.

    A clerk makes one call at a time.  Each request carries the clerk's id
    and a command id that grows with every request, so that servers can
    detect retried writes.
    """

    def __init__(self, servers: Sequence[ClientEnd]) -> None:
        if not servers:
            raise ValueError("a clerk needs at least one server")
        self.servers = list(servers)
        self.leader_id = 0
        self.client_id = nrand()
        self.command_id = 0

    def _next_command_id(self) -> int:
        command_id = self.command_id
        self.command_id += 1
        return command_id

    def _try_next_server(self) -> None:
        self.leader_id = (self.leader_id + 1) % len(self.servers)

    def get(self, key: str) -> str:
        """Fetch the current value for ``key``; ``""`` if it does not exist.

        Keeps trying forever in the face of lost messages, timeouts and
        servers that are not the leader.
        """
        args = GetArgs(key=key, client_id=self.client_id, command_id=self._next_command_id())
        dprintf("client [%s]: Get %r (command %d) to server %d",
                self.client_id, key, args.command_id, self.leader_id)
        while True:
            try:
                reply = self.servers[self.leader_id].call("KVServer.get", args)
            except CallFailed:
                self._try_next_server()
                continue
            if reply.err == Err.OK:
                return reply.value
            if reply.err == Err.ERR_NO_KEY:
                return ""
            if reply.err in (Err.ERR_TIMEOUT, Err.ERR_WRONG_LEADER):
                self._try_next_server()
                dprintf("client [%s]: Get %r (command %d) retried on server %d",
                        self.client_id, key, args.command_id, self.leader_id)
                continue
            raise UnexpectedReply(f"unexpected error {reply.err!r} in reply to Get")

    def put_append(self, key: str, value: str, op: str) -> None:
        """Shared by :meth:`put` and :meth:`append`; ``op`` is "Put" or "Append"."""
        if op not in (OP_PUT, OP_APPEND):
            raise ValueError(f"op in put_append is {op!r}")
        args = PutAppendArgs(
            key=key,
            value=value,
            op=op,
            client_id=self.client_id,
            command_id=self._next_command_id(),
        )
        dprintf("client [%s]: %s (%r, %r) command %d to server %d",
                self.client_id, op, key, value, args.command_id, self.leader_id)
        while True:
            try:
                reply = self.servers[self.leader_id].call("KVServer.put_append", args)
            except CallFailed:
                self._try_next_server()
                continue
            if reply.err == Err.OK:
                return
            if reply.err == Err.ERR_NO_KEY:
                raise UnexpectedReply(f"request {op} but reply ErrNoKey")
            if reply.err in (Err.ERR_TIMEOUT, Err.ERR_WRONG_LEADER):
                self._try_next_server()
                dprintf("client [%s]: %s command %d retried on server %d",
                        self.client_id, op, args.command_id, self.leader_id)
                continue
            raise UnexpectedReply(f"unexpected error {reply.err!r} in reply to {op}")

    def put(self, key: str, value: str) -> None:
        self.put_append(key, value, OP_PUT)

    def append(self, key: str, value: str) -> None:
        self.put_append(key, value, OP_APPEND)