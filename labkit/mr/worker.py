"""The MapReduce worker: asks the coordinator for tasks and runs them.

Map output for reduce task ``r`` of map task ``m`` goes to ``mr-tmp-m-r`` as
one JSON object per line; reduce output goes to ``mr-out-r``.  All files are
in the current directory.
"""

from __future__ import annotations

import json
import os
import tempfile
from itertools import groupby
from operator import attrgetter
from typing import Callable, Optional

from labkit.mr.common import KeyValue, Task, TaskPhase
from labkit.mr.rpc import (
    ExampleArgs,
    RegisterArgs,
    ReportArgs,
    RpcError,
    TaskArgs,
    call,
)

__all__ = [
    "WorkerError",
    "call_example",
    "do_map_task",
    "do_reduce_task",
    "ihash",
    "read_kv_from_file",
    "run_worker",
]

MapFunc = Callable[[str, str], list[KeyValue]]
ReduceFunc = Callable[[str, list[str]], str]

RPC_REGISTER = "Coordinator.RegisterWorker"
RPC_REQUEST_TASK = "Coordinator.RequestTaskHandle"
RPC_REPORT_TASK = "Coordinator.ReportTaskHandle"
RPC_EXAMPLE = "Coordinator.Example"

_FNV_OFFSET = 0x811C9DC5
_FNV_PRIME = 0x01000193


class WorkerError(RuntimeError):
    """The coordinator refused a call the worker cannot do without."""


def ihash(key: str) -> int:
    """32-bit FNV-1a of ``key`` with the sign bit cleared; use ``% n_reduce``."""
    h = _FNV_OFFSET
    for byte in key.encode("utf-8"):
        h = ((h ^ byte) * _FNV_PRIME) & 0xFFFFFFFF
    return h & 0x7FFFFFFF


def _intermediate_name(map_seq: int, reduce_seq: int) -> str:
    return f"mr-tmp-{map_seq}-{reduce_seq}"


def read_kv_from_file(filename: str) -> list[KeyValue]:
    """Read the pairs in ``filename``, stopping at the first malformed value."""
    with open(filename, encoding="utf-8") as handle:
        text = handle.read()
    decoder = json.JSONDecoder()
    pairs: list[KeyValue] = []
    pos = 0
    while True:
        while pos < len(text) and text[pos] in " \t\r\n":
            pos += 1
        if pos >= len(text):
            break
        try:
            obj, pos = decoder.raw_decode(text, pos)
        except json.JSONDecodeError:
            break
        if not isinstance(obj, dict):
            break
        key, value = obj.get("Key", ""), obj.get("Value", "")
        if not isinstance(key, str) or not isinstance(value, str):
            break
        pairs.append(KeyValue(key, value))
    return pairs


def _read_input(filename: str) -> str:
    with open(filename, "rb") as handle:
        return handle.read().decode("utf-8", errors="replace")


def do_map_task(task: Task, mapf: MapFunc) -> bool:
    """Run ``mapf`` on the task's file and split its output into buckets."""
    buckets: list[list[KeyValue]] = [[] for _ in range(task.n_reduce)]
    for kv in mapf(task.filename, _read_input(task.filename)):
        buckets[ihash(kv.key) % task.n_reduce].append(kv)
    for reduce_seq, bucket in enumerate(buckets):
        with open(_intermediate_name(task.seq, reduce_seq), "w", encoding="utf-8") as out:
            for kv in bucket:
                out.write(json.dumps({"Key": kv.key, "Value": kv.value}, ensure_ascii=False))
                out.write("\n")
    return True


def do_reduce_task(task: Task, reducef: ReduceFunc) -> bool:
    """Collect this task's bucket from every map task, reduce it by key and
    write ``mr-out-<seq>`` atomically."""
    intermediate = [
        kv
        for map_seq in range(task.n_map)
        for kv in read_kv_from_file(_intermediate_name(map_seq, task.seq))
    ]
    intermediate.sort(key=attrgetter("key"))
    tmp = tempfile.NamedTemporaryFile(
        "w", dir=os.getcwd(), prefix="mr-out-tmp-", delete=False, encoding="utf-8"
    )
    try:
        with tmp:
            for key, group in groupby(intermediate, key=attrgetter("key")):
                tmp.write(f"{key} {reducef(key, [kv.value for kv in group])}\n")
        os.replace(tmp.name, f"mr-out-{task.seq}")
    except BaseException:
        if os.path.exists(tmp.name):
            os.remove(tmp.name)
        raise
    return True


def _register(sockname: Optional[str]) -> int:
    try:
        reply = call(RPC_REGISTER, RegisterArgs(), sockname)
    except RpcError as exc:
        raise WorkerError("Worker register failed.") from exc
    return reply.worker_id


def _request_task(worker_id: int, sockname: Optional[str]) -> Optional[Task]:
    try:
        reply = call(RPC_REQUEST_TASK, TaskArgs(worker_id=worker_id), sockname)
    except (RpcError, OSError):
        print("Worker request task failed, meaning coordinator has no remaining tasks.")
        return None
    return reply.task


def _report_task(worker_id: int, task: Task, success: bool, sockname: Optional[str]) -> None:
    args = ReportArgs(seq=task.seq, worker_id=worker_id, phase=task.phase, success=success)
    try:
        call(RPC_REPORT_TASK, args, sockname)
    except RpcError as exc:
        raise WorkerError("Worker report task failed.") from exc


def run_worker(mapf: MapFunc, reducef: ReduceFunc, sockname: Optional[str] = None) -> int:
    """Register, then run tasks until the coordinator has none left.

    Returns the number of tasks this worker ran.
    """
    worker_id = _register(sockname)
    finished = 0
    while (task := _request_task(worker_id, sockname)) is not None:
        if task.phase == TaskPhase.MAP:
            success = do_map_task(task, mapf)
        elif task.phase == TaskPhase.REDUCE:
            success = do_reduce_task(task, reducef)
        else:
            success = False
        _report_task(worker_id, task, success, sockname)
        finished += 1
    print(f"Worker {worker_id}: misson complete.")
    print(f"Worker {worker_id} complete {finished} tasks.")
    return finished


def call_example(sockname: Optional[str] = None) -> int:
    """Send the example RPC with x = 99 and return the reply's y."""
    try:
        y = call(RPC_EXAMPLE, ExampleArgs(x=99), sockname).y
    except RpcError as exc:
        print(exc)
        y = 0
    print(f"reply.Y {y}")
    return y