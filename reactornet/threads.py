"""Threads, a count-down latch and a fixed-size thread pool."""

from __future__ import annotations

import threading
from collections import deque
from typing import Callable, Optional

_DEFAULT_THREAD_NAME = "defaultName"
_FINISHED_THREAD_NAME = "finished"

_local = threading.local()


def current_tid() -> int:
    """Return the operating-system id of the calling thread."""
    return threading.get_native_id()


def current_thread_name() -> str:
    """Return the name set by :class:`Thread` for the calling thread."""
    return getattr(_local, "name", _DEFAULT_THREAD_NAME)


class CountDownLatch:
    """Blocks waiters until the count reaches zero."""

    def __init__(self, count: int) -> None:
        self._cond = threading.Condition()
        self._count = count

    def wait(self) -> None:
        with self._cond:
            while self._count > 0:
                self._cond.wait()

    def count_down(self) -> None:
        with self._cond:
            self._count -= 1
            if self._count == 0:
                self._cond.notify_all()

    @property
    def count(self) -> int:
        with self._cond:
            return self._count


class Thread:
    """A thread whose ``start`` returns only once the new thread is running."""

    def __init__(self, func: Callable[[], None], name: str = "") -> None:
        self._func = func
        self.name = name
        self.tid = 0
        self._started = False
        self._latch = CountDownLatch(1)
        self._thread: Optional[threading.Thread] = None

    @property
    def started(self) -> bool:
        return self._started

    def start(self) -> None:
        if self._started:
            raise RuntimeError("thread already started")
        self._started = True
        self._thread = threading.Thread(target=self._run, daemon=True)
        self._thread.start()
        self._latch.wait()

    def join(self) -> None:
        if self._thread is None:
            raise RuntimeError("thread not started")
        self._thread.join()

    def _run(self) -> None:
        self.tid = current_tid()
        if not self.name:
            self.name = f"Thread{self.tid}"
        _local.name = self.name
        self._latch.count_down()
        try:
            self._func()
        finally:
            _local.name = _FINISHED_THREAD_NAME


Task = Callable[[], None]


class ThreadPool:
    """A fixed set of worker threads draining a shared task queue."""

    def __init__(self, thread_num: int, name: str = "ThreadPool") -> None:
        self._cond = threading.Condition()
        self._thread_num = thread_num
        self.name = name
        self._running = False
        self._tasks: deque[Task] = deque()
        self._threads: list[Thread] = []

    def start(self) -> None:
        if self._running:
            raise RuntimeError("thread pool already running")
        self._running = True
        self._threads = [
            Thread(self._run_in_thread, f"{self.name}-thread{i}")
            for i in range(self._thread_num)
        ]
        for thread in self._threads:
            thread.start()

    def stop(self) -> None:
        with self._cond:
            self._running = False
            self._cond.notify_all()
        for thread in self._threads:
            thread.join()
        self._threads = []

    def run(self, task: Task) -> None:
        """Queue ``task``, or run it at once if the pool has no threads."""
        if not self._threads:
            task()
            return
        with self._cond:
            self._tasks.append(task)
            self._cond.notify()

    def __enter__(self) -> ThreadPool:
        self.start()
        return self

    def __exit__(self, *args: object) -> None:
        if self._running:
            self.stop()

    def _run_in_thread(self) -> None:
        while self._running:
            task = self._take()
            if task is not None:
                task()

    def _take(self) -> Optional[Task]:
        with self._cond:
            while not self._tasks and self._running:
                self._cond.wait()
            return self._tasks.popleft() if self._tasks else None