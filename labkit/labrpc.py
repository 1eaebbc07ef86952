"""An in-process RPC network that can lose, delay and reorder messages.

A :class:`Network` holds client end-points, servers and the connections
between them.  Each end-point talks to one server; a server holds one or
more services, and a service exposes the public one-argument methods of an
object as handlers.  Arguments and replies are encoded with
:mod:`labkit.labgob`, so a call never shares objects between caller and
handler.

    net = Network()
    end = net.make_end("end1")
    server = Server()
    server.add_service(Service(obj))
    net.add_server("s1", server)
    net.connect("end1", "s1")
    net.enable("end1", True)
    reply = end.call("ClassName.method", args)

:meth:`ClientEnd.call` returns the handler's reply, or raises
:class:`CallFailed` when the network lost the request or the reply, or the
server is down.
"""

from __future__ import annotations

import inspect
import io
import queue
import random
import threading
import time
import types
from typing import Any, Callable, Hashable, Optional

from labkit import labgob

__all__ = [
    "CallFailed",
    "ClientEnd",
    "Network",
    "Server",
    "Service",
    "UnknownMethodError",
]

_POLL_INTERVAL = 0.1
_VARIADIC = inspect.CO_VARARGS | inspect.CO_VARKEYWORDS


class CallFailed(ConnectionError):
    """No reply was received for a call."""


class UnknownMethodError(LookupError):
    """A call named a service or method that the server does not have."""


def _encode(value: Any) -> bytes:
    buf = io.BytesIO()
    labgob.LabEncoder(buf).encode(value)
    return buf.getvalue()


def _decode(data: bytes) -> Any:
    return labgob.LabDecoder(io.BytesIO(data)).decode()


def _is_handler(method: Any) -> bool:
    """True if ``method`` takes exactly one positional argument."""
    if isinstance(method, types.MethodType):
        func, bound = method.__func__, 1
    elif isinstance(method, types.FunctionType):
        func, bound = method, 0
    else:
        return False
    code = getattr(func, "__code__", None)
    if code is None:
        return False
    return (
        code.co_argcount - bound == 1
        and code.co_kwonlyargcount == 0
        and not code.co_flags & _VARIADIC
    )


class Service:
    """An object whose public one-argument methods handle RPCs.

    The service is named after the object's class unless ``name`` is given.
    """

    def __init__(self, rcvr: Any, name: Optional[str] = None) -> None:
        self.rcvr = rcvr
        self.name = name or type(rcvr).__name__
        self.methods: dict[str, Callable[[Any], Any]] = {}
        for attr, _ in inspect.getmembers(type(rcvr), inspect.isfunction):
            if attr.startswith("_"):
                continue
            method = getattr(rcvr, attr)
            if _is_handler(method):
                self.methods[attr] = method

    def _dispatch(self, method_name: str, svc_meth: str, data: bytes) -> bytes:
        method = self.methods.get(method_name)
        if method is None:
            raise UnknownMethodError(
                f"unknown method {method_name} in {svc_meth}; "
                f"expecting one of {sorted(self.methods)}"
            )
        return _encode(method(_decode(data)))


class Server:
    """A collection of services sharing one RPC end-point."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._services: dict[str, Service] = {}
        self._count = 0

    def add_service(self, svc: Service) -> None:
        with self._lock:
            self._services[svc.name] = svc

    def get_count(self) -> int:
        """Number of incoming RPCs."""
        with self._lock:
            return self._count

    def _dispatch(self, svc_meth: str, data: bytes) -> bytes:
        with self._lock:
            self._count += 1
            service_name, _, method_name = svc_meth.rpartition(".")
            service = self._services.get(service_name)
            choices = sorted(self._services)
        if service is None:
            raise UnknownMethodError(
                f"unknown service {service_name} in {svc_meth}; expecting one of {choices}"
            )
        return service._dispatch(method_name, svc_meth, data)


class ClientEnd:
    """A client end-point that talks to one server."""

    def __init__(self, endname: Hashable, network: "Network") -> None:
        self.endname = endname
        self._network = network

    def call(self, svc_meth: str, args: Any) -> Any:
        """Send an RPC such as ``"Raft.append_entries"`` and wait for the reply.

        Raises :class:`CallFailed` if no reply was received.
        """
        data = self._network._deliver(self.endname, svc_meth, _encode(args))
        return _decode(data)


class Network:
    """Holds end-points, servers and the connections between them."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._reliable = True
        self._long_delays = False
        self._long_reordering = False
        self._ends: dict[Hashable, ClientEnd] = {}
        self._enabled: dict[Hashable, bool] = {}
        self._servers: dict[Hashable, Optional[Server]] = {}
        self._connections: dict[Hashable, Optional[Hashable]] = {}
        self._done = threading.Event()
        self._stats_lock = threading.Lock()
        self._count = 0
        self._bytes = 0

    def __enter__(self) -> "Network":
        return self

    def __exit__(self, *exc: object) -> None:
        self.cleanup()

    def cleanup(self) -> None:
        """Shut the network down; later calls fail at once."""
        self._done.set()

    def reliable(self, yes: bool) -> None:
        with self._lock:
            self._reliable = yes

    def long_reordering(self, yes: bool) -> None:
        with self._lock:
            self._long_reordering = yes

    def long_delays(self, yes: bool) -> None:
        with self._lock:
            self._long_delays = yes

    def make_end(self, endname: Hashable) -> ClientEnd:
        """Create a disabled, unconnected client end-point."""
        with self._lock:
            if endname in self._ends:
                raise ValueError(f"end {endname!r} already exists")
            end = ClientEnd(endname, self)
            self._ends[endname] = end
            self._enabled[endname] = False
            self._connections[endname] = None
            return end

    def add_server(self, servername: Hashable, server: Server) -> None:
        with self._lock:
            self._servers[servername] = server

    def delete_server(self, servername: Hashable) -> None:
        with self._lock:
            self._servers[servername] = None

    def connect(self, endname: Hashable, servername: Hashable) -> None:
        """Connect an end-point to a server."""
        with self._lock:
            self._connections[endname] = servername

    def enable(self, endname: Hashable, enabled: bool) -> None:
        with self._lock:
            self._enabled[endname] = enabled

    def get_count(self, servername: Hashable) -> int:
        """A server's count of incoming RPCs."""
        with self._lock:
            server = self._servers.get(servername)
        if server is None:
            raise KeyError(servername)
        return server.get_count()

    def get_total_count(self) -> int:
        with self._stats_lock:
            return self._count

    def get_total_bytes(self) -> int:
        with self._stats_lock:
            return self._bytes

    def _add_bytes(self, n: int) -> None:
        with self._stats_lock:
            self._bytes += n

    def _is_server_dead(self, endname: Hashable, servername: Hashable, server: Server) -> bool:
        with self._lock:
            return not self._enabled.get(endname, False) or self._servers.get(servername) is not server

    def _deliver(self, endname: Hashable, svc_meth: str, data: bytes) -> bytes:
        if self._done.is_set():
            raise CallFailed("network has been cleaned up")
        with self._stats_lock:
            self._count += 1
            self._bytes += len(data)

        with self._lock:
            enabled = self._enabled.get(endname, False)
            servername = self._connections.get(endname)
            server = self._servers.get(servername) if servername is not None else None
            reliable = self._reliable
            long_reordering = self._long_reordering
            long_delays = self._long_delays

        if not (enabled and servername is not None and server is not None):
            # simulate no reply and an eventual timeout
            ms = random.randrange(7000) if long_delays else random.randrange(100)
            time.sleep(ms / 1000)
            raise CallFailed(f"no reply from {servername!r}")

        if not reliable:
            time.sleep(random.randrange(27) / 1000)
            if random.randrange(1000) < 100:
                raise CallFailed("request lost")

        results: queue.Queue[tuple[bool, Any]] = queue.Queue(maxsize=1)

        def run() -> None:
            try:
                results.put((True, server._dispatch(svc_meth, data)))
            except Exception as exc:
                results.put((False, exc))

        threading.Thread(target=run, daemon=True).start()

        while True:
            try:
                ok, payload = results.get(timeout=_POLL_INTERVAL)
                break
            except queue.Empty:
                if self._is_server_dead(endname, servername, server):
                    raise CallFailed(f"server {servername!r} is gone") from None

        # a reply from a deleted server must not reach the caller
        if self._is_server_dead(endname, servername, server):
            raise CallFailed(f"server {servername!r} is gone")
        if not ok:
            raise payload
        if not reliable and random.randrange(1000) < 100:
            raise CallFailed("reply lost")
        if long_reordering and random.randrange(900) < 600:
            ms = 200 + random.randrange(1 + random.randrange(2000))
            time.sleep(ms / 1000)
        self._add_bytes(len(payload))
        return payload