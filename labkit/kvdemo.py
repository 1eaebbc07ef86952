"""A minimal key/value service over TCP, with a client and a demo command."""

from __future__ import annotations

import argparse
import threading
import xmlrpc.client
from xmlrpc.server import SimpleXMLRPCServer

DEFAULT_PORT = 1234
DEFAULT_ADDRESS = ("127.0.0.1", DEFAULT_PORT)


class KV:
    """A thread-safe string map."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._data: dict[str, str] = {}

    def get(self, key: str) -> str:
        with self._lock:
            return self._data.get(key, "")

    def put(self, key: str, value: str) -> None:
        with self._lock:
            self._data[key] = value


def serve(address: tuple[str, int] = ("", DEFAULT_PORT)) -> SimpleXMLRPCServer:
    """Start serving a fresh KV in a background thread and return the server."""
    kv = KV()
    server = SimpleXMLRPCServer(address, logRequests=False, allow_none=True)
    server.register_function(kv.get, "KV.Get")
    server.register_function(kv.put, "KV.Put")
    threading.Thread(target=server.serve_forever, daemon=True).start()
    return server


def _proxy(address: tuple[str, int]) -> xmlrpc.client.ServerProxy:
    host, port = address
    return xmlrpc.client.ServerProxy(f"http://{host}:{port}/", allow_none=True)


def get(key: str, address: tuple[str, int] = DEFAULT_ADDRESS) -> str:
    with _proxy(address) as proxy:
        return proxy.KV.Get(key)


def put(key: str, value: str, address: tuple[str, int] = DEFAULT_ADDRESS) -> None:
    with _proxy(address) as proxy:
        proxy.KV.Put(key, value)


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="kvdemo", description="Key/value service demo.")
    parser.add_argument("--port", type=int, default=DEFAULT_PORT)
    ns = parser.parse_args(argv)
    server = serve(("", ns.port))
    try:
        address = ("127.0.0.1", server.server_address[1])
        put("subject", "6.824", address)
        print("Put(subject, 6.824) done")
        print(f"get(subject) -> {get('subject', address)}")
    finally:
        server.shutdown()
        server.server_close()
    return 0