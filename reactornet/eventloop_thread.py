"""Event loops running in their own threads, and a round-robin pool of them."""

from __future__ import annotations

import threading
from typing import Callable, Optional

from reactornet.eventloop import EventLoop
from reactornet.threads import Thread

ThreadInitCallback = Callable[[EventLoop], None]


class EventLoopThread:
    """A thread that owns and runs one :class:`EventLoop`."""

    def __init__(self, init_callback: Optional[ThreadInitCallback] = None) -> None:
        self._init_callback = init_callback
        self._loop: Optional[EventLoop] = None
        self._error: Optional[BaseException] = None
        self._cond = threading.Condition()
        self._thread = Thread(self._thread_func, "EventLoopThread")

    @property
    def loop(self) -> Optional[EventLoop]:
        return self._loop

    def start(self) -> EventLoop:
        """Start the thread and return its loop once it exists."""
        self._thread.start()
        with self._cond:
            while self._loop is None and self._error is None:
                self._cond.wait()
        if self._error is not None:
            raise RuntimeError("event loop thread failed to start") from self._error
        assert self._loop is not None
        return self._loop

    def stop(self) -> None:
        """Make the loop quit and wait for the thread to end."""
        if not self._thread.started:
            return
        if self._loop is not None:
            self._loop.quit()
        self._thread.join()

    def __enter__(self) -> EventLoopThread:
        return self

    def __exit__(self, *args: object) -> None:
        self.stop()

    def _thread_func(self) -> None:
        loop: Optional[EventLoop] = None
        try:
            loop = EventLoop()
            if self._init_callback is not None:
                self._init_callback(loop)
        except BaseException as exc:
            if loop is not None:
                loop.close()
            with self._cond:
                self._error = exc
                self._cond.notify_all()
            return

        with self._cond:
            self._loop = loop
            self._cond.notify_all()
        try:
            loop.loop()
        finally:
            loop.close()


class EventLoopThreadPool:
    """A fixed number of loop threads handed out in turn; none means the base loop."""

    def __init__(self, base_loop: EventLoop, thread_num: int = 0) -> None:
        self._base_loop = base_loop
        self._thread_num = thread_num
        self._started = False
        self._next = 0
        self._threads: list[EventLoopThread] = []
        self._loops: list[EventLoop] = []

    @property
    def started(self) -> bool:
        return self._started

    @property
    def loops(self) -> list[EventLoop]:
        return list(self._loops)

    def start(self, init_callback: Optional[ThreadInitCallback] = None) -> None:
        if self._started:
            raise RuntimeError("thread pool already started")
        self._base_loop.assert_in_loop_thread()
        for _ in range(self._thread_num):
            thread = EventLoopThread(init_callback)
            self._threads.append(thread)
            self._loops.append(thread.start())
        if self._thread_num == 0 and init_callback is not None:
            init_callback(self._base_loop)
        self._started = True

    def next_loop(self) -> EventLoop:
        """Return the next loop in round-robin order."""
        self._base_loop.assert_in_loop_thread()
        if not self._loops:
            return self._base_loop
        loop = self._loops[self._next]
        self._next = (self._next + 1) % len(self._loops)
        return loop

    def stop(self) -> None:
        for thread in self._threads:
            thread.stop()