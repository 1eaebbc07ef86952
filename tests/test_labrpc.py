import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass

import pytest

from labkit.labrpc import (
    CallFailed,
    Network,
    Server,
    Service,
    UnknownMethodError,
)


@dataclass
class JunkArgs:
    x: int = 0


@dataclass
class JunkReply:
    x: str = ""


class JunkServer:
    def __init__(self):
        self.mu = threading.Lock()
        self.log1 = []
        self.log2 = []
        self.release = threading.Event()

    def handler1(self, args):
        with self.mu:
            self.log1.append(args)
            return int(args)

    def handler2(self, args):
        with self.mu:
            self.log2.append(args)
            return "handler2-" + str(args)

    def handler3(self, args):
        with self.mu:
            self.release.wait(20)
            return -args

    def handler4(self, args):
        return JunkReply("pointer")

    def handler5(self, args):
        return JunkReply("no pointer")

    def handler6(self, args):
        with self.mu:
            return len(args)

    def handler7(self, args):
        with self.mu:
            return "y" * args

    def handler8(self, args):
        raise RuntimeError("boom")

    def not_a_handler(self, a, b):
        return a + b

    def _private(self, args):
        return args


def make_net(servername="server99", endname="end1-99", enable=True):
    rn = Network()
    js = JunkServer()
    rs = Server()
    rs.add_service(Service(js))
    rn.add_server(servername, rs)
    end = None
    if endname is not None:
        end = rn.make_end(endname)
        rn.connect(endname, servername)
        if enable:
            rn.enable(endname, True)
    return rn, js, end


def test_basic():
    rn, _, e = make_net()
    with rn:
        assert e.call("JunkServer.handler2", 111) == "handler2-111"
        assert e.call("JunkServer.handler1", "9099") == 9099


def test_types():
    rn, _, e = make_net()
    with rn:
        assert e.call("JunkServer.handler4", JunkArgs()) == JunkReply("pointer")
        assert e.call("JunkServer.handler5", JunkArgs()).x == "no pointer"


def test_disconnect():
    rn, js, e = make_net(enable=False)
    with rn:
        with pytest.raises(CallFailed):
            e.call("JunkServer.handler2", 111)
        assert js.log2 == []
        rn.enable("end1-99", True)
        assert e.call("JunkServer.handler1", "9099") == 9099


def test_counts():
    rn, _, e = make_net(servername=99)
    with rn:
        for i in range(17):
            assert e.call("JunkServer.handler2", i) == "handler2-" + str(i)
        assert rn.get_count(99) == 17
        assert rn.get_total_count() == 17


def test_bytes():
    rn, _, e = make_net(servername=99)
    with rn:
        for _ in range(17):
            args = "x" * 72
            args = args + args
            args = args + args
            assert e.call("JunkServer.handler6", args) == len(args)
        n = rn.get_total_bytes()
        assert 4828 <= n <= 6000

        for _ in range(17):
            assert len(e.call("JunkServer.handler7", 107)) == 107
        nn = rn.get_total_bytes() - n
        assert 1800 <= nn <= 2500


def test_concurrent_many():
    rn, _, _ = make_net(servername=1000, endname=None)
    nclients, nrpcs = 20, 10

    def client(i):
        e = rn.make_end(i)
        rn.connect(i, 1000)
        rn.enable(i, True)
        good = 0
        for j in range(nrpcs):
            arg = i * 100 + j
            if e.call("JunkServer.handler2", arg) == "handler2-" + str(arg):
                good += 1
        return good

    with rn, ThreadPoolExecutor(max_workers=nclients) as pool:
        total = sum(pool.map(client, range(nclients)))
        assert total == nclients * nrpcs
        assert rn.get_count(1000) == total


def test_unreliable():
    rn, _, _ = make_net(servername=1000, endname=None)
    rn.reliable(False)
    nclients = 300

    def client(i):
        e = rn.make_end(i)
        rn.connect(i, 1000)
        rn.enable(i, True)
        arg = i * 100
        try:
            return arg, e.call("JunkServer.handler2", arg)
        except CallFailed:
            return arg, None

    with rn, ThreadPoolExecutor(max_workers=50) as pool:
        results = list(pool.map(client, range(nclients)))
    delivered = {arg: reply for arg, reply in results if reply is not None}
    assert delivered == {arg: "handler2-" + str(arg) for arg in delivered}
    assert 0 < len(delivered) < nclients


def test_concurrent_one():
    rn, js, e = make_net(servername=1000, endname="c")
    nrpcs = 20

    def client(i):
        arg = 100 + i
        return e.call("JunkServer.handler2", arg) == "handler2-" + str(arg)

    with rn, ThreadPoolExecutor(max_workers=nrpcs) as pool:
        total = sum(pool.map(client, range(nrpcs)))
        assert total == nrpcs
        assert len(js.log2) == nrpcs
        assert rn.get_count(1000) == total


def test_regression1():
    rn, js, e = make_net(servername=1000, endname="c", enable=False)
    nrpcs = 20

    def disabled_call(i):
        try:
            e.call("JunkServer.handler2", 100 + i)
        except CallFailed:
            return False
        return True

    with rn, ThreadPoolExecutor(max_workers=nrpcs) as pool:
        futures = [pool.submit(disabled_call, i) for i in range(nrpcs)]
        time.sleep(0.1)

        t0 = time.monotonic()
        rn.enable("c", True)
        assert e.call("JunkServer.handler2", 99) == "handler2-99"
        assert time.monotonic() - t0 < 0.1

        [f.result() for f in futures]
        assert js.log2 == [99]
        assert rn.get_count(1000) == 1


def test_killed():
    rn, js, e = make_net()
    pool = ThreadPoolExecutor(max_workers=1)
    try:
        with rn:
            future = pool.submit(e.call, "JunkServer.handler3", 99)
            time.sleep(0.5)
            assert not future.done()
            rn.delete_server("server99")
            with pytest.raises(CallFailed, match="gone"):
                future.result(timeout=0.5)
    finally:
        js.release.set()
        pool.shutdown(wait=True)


def test_benchmark():
    rn, _, e = make_net()
    with rn:
        replies = {e.call("JunkServer.handler2", 111) for _ in range(1000)}
        assert replies == {"handler2-111"}
        assert rn.get_count("server99") == 1000


def test_unknown_method_and_service():
    rn, _, e = make_net()
    with rn:
        with pytest.raises(UnknownMethodError):
            e.call("JunkServer.nope", 1)
        with pytest.raises(UnknownMethodError):
            e.call("Other.handler2", 1)


def test_handler_exception_reaches_caller():
    rn, _, e = make_net()
    with rn:
        with pytest.raises(RuntimeError, match="boom"):
            e.call("JunkServer.handler8", 1)


def test_service_discovers_only_one_argument_public_methods():
    svc = Service(JunkServer())
    assert svc.name == "JunkServer"
    assert "handler2" in svc.methods
    assert "not_a_handler" not in svc.methods
    assert "_private" not in svc.methods
    assert Service(JunkServer(), name="Junk").name == "Junk"


def test_duplicate_end_rejected():
    rn = Network()
    rn.make_end("a")
    with pytest.raises(ValueError):
        rn.make_end("a")


def test_cleanup_fails_calls():
    rn, js, e = make_net()
    rn.cleanup()
    with pytest.raises(CallFailed):
        e.call("JunkServer.handler2", 1)
    assert js.log2 == []


def test_get_count_of_missing_server():
    rn, _, _ = make_net()
    rn.delete_server("server99")
    with pytest.raises(KeyError):
        rn.get_count("server99")
    with pytest.raises(KeyError):
        rn.get_count("never-added")


def test_call_after_delete_server_fails():
    rn, _, e = make_net()
    with rn:
        assert e.call("JunkServer.handler2", 1) == "handler2-1"
        rn.delete_server("server99")
        with pytest.raises(CallFailed):
            e.call("JunkServer.handler2", 2)


def test_arguments_are_copied():
    rn, _, e = make_net()
    with rn:
        args = JunkArgs(5)
        reply = e.call("JunkServer.handler4", args)
        assert reply is not args
        assert reply == JunkReply("pointer")
        assert args == JunkArgs(5)