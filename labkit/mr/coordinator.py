"""The MapReduce coordinator: hands out map tasks, then reduce tasks, and
re-issues tasks that fail or take too long."""

from __future__ import annotations

import queue
import threading
import time
from dataclasses import dataclass
from enum import IntEnum
from typing import Iterable, Optional

from labkit.mr.common import Task, TaskPhase
from labkit.mr.rpc import (
    ExampleArgs,
    ExampleReply,
    RegisterArgs,
    RegisterReply,
    ReportArgs,
    ReportReply,
    SocketServer,
    TaskArgs,
    TaskReply,
    coordinator_sock,
)

__all__ = [
    "Coordinator",
    "NoMoreTasks",
    "TaskState",
    "TaskStatus",
    "make_coordinator",
]

TASK_MAX_RUNTIME = 10.0
SCHEDULE_INTERVAL = 0.5
_POLL_INTERVAL = 0.1


class TaskState(IntEnum):
    IDLE = 0
    QUEUED = 1
    RUNNING = 2
    COMPLETED = 3


@dataclass
class TaskStatus:
    state: TaskState = TaskState.IDLE
    worker_id: int = 0
    start_time: float = 0.0


class NoMoreTasks(RuntimeError):
    """The job is finished or the coordinator is shutting down."""


class Coordinator:
    """Tracks the state of every task of the current phase."""

    def __init__(
        self,
        files: Iterable[str],
        n_reduce: int,
        task_max_runtime: float = TASK_MAX_RUNTIME,
    ) -> None:
        if n_reduce < 0:
            raise ValueError("n_reduce must not be negative")
        self._lock = threading.Lock()
        self._files = list(files)
        self._n_reduce = n_reduce
        self._task_max_runtime = task_max_runtime
        self._tasks: queue.SimpleQueue[Task] = queue.SimpleQueue()
        self._worker_count = 0
        self._done = False
        self._stopped = threading.Event()
        self._server: Optional[SocketServer] = None
        self._ticker: Optional[threading.Thread] = None
        self._phase = TaskPhase.MAP
        self._status: list[TaskStatus] = []
        self._init_phase(TaskPhase.MAP)

    def _init_phase(self, phase: TaskPhase) -> None:
        self._phase = phase
        count = len(self._files) if phase == TaskPhase.MAP else self._n_reduce
        self._status = [TaskStatus() for _ in range(count)]

    def _generate_task(self, seq: int) -> Task:
        return Task(
            n_map=len(self._files),
            n_reduce=self._n_reduce,
            seq=seq,
            phase=self._phase,
            filename=self._files[seq] if self._phase == TaskPhase.MAP else "",
        )

    def register_worker(self, args: RegisterArgs) -> RegisterReply:
        """Give the caller a fresh worker id."""
        with self._lock:
            worker_id = self._worker_count
            self._worker_count += 1
        return RegisterReply(worker_id=worker_id)

    def request_task_handle(self, args: TaskArgs) -> TaskReply:
        """Wait for a queued task and mark it as running for the caller.

        Raises :class:`NoMoreTasks` once the job is done or the coordinator
        has been closed.
        """
        while True:
            try:
                task = self._tasks.get(timeout=_POLL_INTERVAL)
            except queue.Empty:
                if self.done() or self._stopped.is_set():
                    raise NoMoreTasks("no remaining tasks") from None
                continue
            with self._lock:
                if task.phase != self._phase:
                    raise RuntimeError("task phase does not match the coordinator's phase")
                status = self._status[task.seq]
                status.state = TaskState.RUNNING
                status.worker_id = args.worker_id
                status.start_time = time.monotonic()
            return TaskReply(task=task)

    def report_task_handle(self, args: ReportArgs) -> ReportReply:
        """Record the outcome of a task; stale reports are ignored."""
        with self._lock:
            if args.phase != self._phase:
                return ReportReply()
            if not 0 <= args.seq < len(self._status):
                raise IndexError(f"task {args.seq} out of range")
            status = self._status[args.seq]
            if status.worker_id != args.worker_id or status.state != TaskState.RUNNING:
                return ReportReply()
            status.state = TaskState.COMPLETED if args.success else TaskState.IDLE
        self.schedule()
        return ReportReply()

    def example(self, args: ExampleArgs) -> ExampleReply:
        return ExampleReply(y=args.x + 1)

    def schedule(self) -> None:
        """Queue idle and overdue tasks; move to the next phase when all are done."""
        with self._lock:
            all_completed = True
            now = time.monotonic()
            for seq, status in enumerate(self._status):
                if status.state == TaskState.IDLE:
                    all_completed = False
                    status.state = TaskState.QUEUED
                    self._tasks.put(self._generate_task(seq))
                elif status.state == TaskState.QUEUED:
                    all_completed = False
                elif status.state == TaskState.RUNNING:
                    all_completed = False
                    if now - status.start_time > self._task_max_runtime:
                        status.state = TaskState.QUEUED
                        self._tasks.put(self._generate_task(seq))
            if all_completed:
                if self._phase == TaskPhase.MAP:
                    self._init_phase(TaskPhase.REDUCE)
                else:
                    self._done = True

    def _tick(self, interval: float) -> None:
        while not self._stopped.is_set() and not self.done():
            self.schedule()
            self._stopped.wait(interval)

    def _start_ticker(self, interval: float = SCHEDULE_INTERVAL) -> None:
        if self._ticker is not None:
            raise RuntimeError("scheduler already running")
        self._ticker = threading.Thread(target=self._tick, args=(interval,), daemon=True)
        self._ticker.start()

    def serve(self, sockname: Optional[str] = None) -> str:
        """Listen for worker RPCs on a UNIX socket; return its path."""
        if self._server is not None:
            raise RuntimeError("coordinator already serving")
        path = sockname or coordinator_sock()
        handlers = {
            "Coordinator.RegisterWorker": self.register_worker,
            "Coordinator.RequestTaskHandle": self.request_task_handle,
            "Coordinator.ReportTaskHandle": self.report_task_handle,
            "Coordinator.Example": self.example,
        }
        self._server = SocketServer(path, handlers).start()
        return path

    def done(self) -> bool:
        """Whether the entire job has finished."""
        with self._lock:
            return self._done

    def close(self) -> None:
        """Stop scheduling and serving."""
        self._stopped.set()
        if self._ticker is not None:
            self._ticker.join()
            self._ticker = None
        if self._server is not None:
            self._server.close()
            self._server = None

    def __enter__(self) -> "Coordinator":
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()


def make_coordinator(
    files: Iterable[str], n_reduce: int, sockname: Optional[str] = None
) -> Coordinator:
    """Create a coordinator, start its scheduler and serve it on ``sockname``."""
    coordinator = Coordinator(files, n_reduce)
    coordinator._start_ticker(SCHEDULE_INTERVAL)
    try:
        coordinator.serve(sockname)
    except BaseException:
        coordinator.close()
        raise
    return coordinator