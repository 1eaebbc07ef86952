"""RPC messages between MapReduce workers and the coordinator, and a small
request/reply transport over a UNIX-domain socket."""

from __future__ import annotations

import contextlib
import os
import socket
import socketserver
import threading
from dataclasses import dataclass
from typing import Any, Callable, Mapping, Optional

from labkit import labgob
from labkit.mr.common import Task, TaskPhase


@dataclass
class ExampleArgs:
    x: int = 0


@dataclass
class ExampleReply:
    y: int = 0


@dataclass
class TaskArgs:
    worker_id: int = 0


@dataclass
class TaskReply:
    task: Optional[Task] = None


@dataclass
class RegisterArgs:
    pass


@dataclass
class RegisterReply:
    worker_id: int = 0


@dataclass
class ReportArgs:
    seq: int = 0
    worker_id: int = 0
    phase: TaskPhase = TaskPhase.MAP
    success: bool = False


@dataclass
class ReportReply:
    pass


@dataclass
class _Request:
    method: str = ""
    args: Any = None


@dataclass
class _Response:
    ok: bool = False
    reply: Any = None
    error: str = ""


for _cls in (
    ExampleArgs, ExampleReply, TaskArgs, TaskReply, RegisterArgs, RegisterReply,
    ReportArgs, ReportReply, _Request, _Response,
):
    labgob.register(_cls)


class RpcError(Exception):
    """Raised when the server could not carry out a call."""


def coordinator_sock() -> str:
    """A per-user socket name in /var/tmp for the coordinator."""
    return f"/var/tmp/824-mr-{os.getuid()}"


Handler = Callable[[Any], Any]


def _dispatch(handlers: Mapping[str, Handler], request: _Request) -> _Response:
    handler = handlers.get(request.method)
    if handler is None:
        return _Response(False, None, f"rpc: can't find method {request.method}")
    try:
        return _Response(True, handler(request.args), "")
    except Exception as exc:  # reported back to the caller
        return _Response(False, None, str(exc) or type(exc).__name__)


class _RequestHandler(socketserver.StreamRequestHandler):
    def handle(self) -> None:
        try:
            request = labgob.LabDecoder(self.rfile).decode()
        except (EOFError, labgob.LabgobError):
            return
        if not isinstance(request, _Request):
            response = _Response(False, None, "rpc: malformed request")
        else:
            response = _dispatch(self.server.handlers, request)
        labgob.LabEncoder(self.wfile).encode(response)


class _UnixServer(socketserver.ThreadingUnixStreamServer):
    daemon_threads = True

    def __init__(self, sockname: str, handlers: Mapping[str, Handler]) -> None:
        self.handlers = dict(handlers)
        super().__init__(sockname, _RequestHandler)


class SocketServer:
    """Serves named handlers, e.g. ``"Coordinator.Example"``, on a UNIX socket."""

    def __init__(self, sockname: str, handlers: Mapping[str, Handler]) -> None:
        self.sockname = sockname
        self._handlers = dict(handlers)
        self._server: Optional[_UnixServer] = None
        self._thread: Optional[threading.Thread] = None

    def start(self) -> "SocketServer":
        if self._server is not None:
            raise RuntimeError("server already started")
        with contextlib.suppress(FileNotFoundError):
            os.remove(self.sockname)
        self._server = _UnixServer(self.sockname, self._handlers)
        self._thread = threading.Thread(target=self._server.serve_forever, daemon=True)
        self._thread.start()
        return self

    def close(self) -> None:
        if self._server is None:
            return
        self._server.shutdown()
        self._server.server_close()
        if self._thread is not None:
            self._thread.join()
        self._server = None
        self._thread = None
        with contextlib.suppress(FileNotFoundError):
            os.remove(self.sockname)

    def __enter__(self) -> "SocketServer":
        return self.start()

    def __exit__(self, *exc: object) -> None:
        self.close()


def call(rpcname: str, args: Any, sockname: Optional[str] = None) -> Any:
    """Send one request and return the reply.

    Raises ``OSError`` if the server cannot be reached and :class:`RpcError`
    if the server could not carry out the call.
    """
    with socket.socket(socket.AF_UNIX, socket.SOCK_STREAM) as sock:
        sock.connect(sockname or coordinator_sock())
        with sock.makefile("wb") as writer:
            labgob.LabEncoder(writer).encode(_Request(rpcname, args))
        sock.shutdown(socket.SHUT_WR)
        with sock.makefile("rb") as reader:
            try:
                response = labgob.LabDecoder(reader).decode()
            except EOFError as exc:
                raise RpcError("connection closed without reply") from exc
    if not response.ok:
        raise RpcError(response.error)
    return response.reply