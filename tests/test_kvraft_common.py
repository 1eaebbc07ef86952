import io
import logging

from labkit import labgob
from labkit.kvraft import common
from labkit.kvraft.common import Err, GetArgs, GetReply, PutAppendArgs, dprintf


def _round_trip(value):
    buf = io.BytesIO()
    labgob.LabEncoder(buf).encode(value)
    return labgob.LabDecoder(io.BytesIO(buf.getvalue())).decode()


def test_err_values_match_wire_strings():
    assert Err("ErrNoKey") is Err.ERR_NO_KEY
    assert Err("ErrWrongLeader") is Err.ERR_WRONG_LEADER
    assert Err("ErrTimeout") is Err.ERR_TIMEOUT


def test_reply_round_trip():
    reply = GetReply(err=Err.ERR_WRONG_LEADER, value="v", leader_hint=2)
    back = _round_trip(reply)
    assert back == reply
    assert back.err is Err.ERR_WRONG_LEADER


def test_args_round_trip():
    args = [GetArgs("k", 5, 1), PutAppendArgs("k", "v", "Append", 5, 2)]
    assert _round_trip(args) == args


def test_dprintf_silent_by_default(caplog):
    with caplog.at_level(logging.DEBUG):
        dprintf("value %d", 3)
    assert caplog.records == []


def test_dprintf_logs_when_debug(monkeypatch, caplog):
    monkeypatch.setattr(common, "DEBUG", True)
    with caplog.at_level(logging.DEBUG):
        dprintf("value %d", 3)
    assert [r.getMessage() for r in caplog.records] == ["value 3"]