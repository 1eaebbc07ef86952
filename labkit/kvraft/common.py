"""Messages and error codes shared by the key/value clerk and servers."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from labkit import labgob

DEBUG = False

_log = logging.getLogger(__name__)


def dprintf(format: str, *args: Any) -> None:
    """Log a %-style message when DEBUG is on."""
    if DEBUG:
        _log.warning(format % args if args else format)


class Err(str, Enum):
    OK = "OK"
    ERR_NO_KEY = "ErrNoKey"
    ERR_WRONG_LEADER = "ErrWrongLeader"
    ERR_TIMEOUT = "ErrTimeout"


@dataclass
class PutAppendArgs:
    key: str = ""
    value: str = ""
    op: str = ""  # "Put" or "Append"
    client_id: int = 0
    command_id: int = 0


@dataclass
class PutAppendReply:
    err: Optional[Err] = None
    leader_hint: int = 0  # meaningful only when err is not OK


@dataclass
class GetArgs:
    key: str = ""
    client_id: int = 0
    command_id: int = 0


@dataclass
class GetReply:
    err: Optional[Err] = None
    value: str = ""
    leader_hint: int = 0


for _cls in (Err, PutAppendArgs, PutAppendReply, GetArgs, GetReply):
    labgob.register(_cls)