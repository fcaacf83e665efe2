"""A reactor: one event loop per thread dispatching I/O, timers and queued work."""

from __future__ import annotations

import os
import sys
import threading
from typing import Callable, Optional

from reactornet.channel import Channel, TimerCallback
from reactornet.poller import Poller
from reactornet.timer_queue import TimerId, TimerQueue
from reactornet.timestamp import Timestamp, add_time

Functor = Callable[[], None]

POLL_TIMEOUT_MS = 20 * 1000

_local = threading.local()


class _Waker:
    """A descriptor that can be made readable from any thread to wake the loop."""

    def __init__(self) -> None:
        self._eventfd = hasattr(os, "eventfd")
        if self._eventfd:
            fd = os.eventfd(0, os.EFD_NONBLOCK | os.EFD_CLOEXEC)
            self.read_fd = self.write_fd = fd
        else:
            self.read_fd, self.write_fd = os.pipe()
            os.set_blocking(self.read_fd, False)
            os.set_blocking(self.write_fd, False)

    def wake(self) -> None:
        payload = (1).to_bytes(8, sys.byteorder) if self._eventfd else b"\x01"
        try:
            os.write(self.write_fd, payload)
        except BlockingIOError:
            pass

    def drain(self) -> None:
        while True:
            try:
                data = os.read(self.read_fd, 4096)
            except BlockingIOError:
                return
            if not data:
                return

    def close(self) -> None:
        os.close(self.read_fd)
        if self.write_fd != self.read_fd:
            os.close(self.write_fd)


class EventLoop:
    """Runs in the thread that created it; at most one loop per thread."""

    def __init__(self) -> None:
        if getattr(_local, "loop", None) is not None:
            raise RuntimeError("this thread already has an event loop")
        self._thread_id = threading.get_ident()
        self._looping = False
        self._quit = False
        self._event_handling = False
        self._calling_pending = False
        self._closed = False
        self._lock = threading.Lock()
        self._pending: list[Functor] = []
        self._active: list[Channel] = []
        self._current_channel: Optional[Channel] = None
        self._poller = Poller(self)
        self._timer_queue = TimerQueue(self)
        self._waker = _Waker()
        _local.loop = self
        self._wakeup_channel = Channel(self, self._waker.read_fd)
        self._wakeup_channel.read_callback = self._waker.drain
        self._wakeup_channel.enable_reading()

    @staticmethod
    def current() -> Optional[EventLoop]:
        """Return the loop of the calling thread, or None."""
        return getattr(_local, "loop", None)

    def loop(self) -> None:
        """Dispatch events until :meth:`quit` is called."""
        if self._looping:
            raise RuntimeError("event loop is already running")
        self.assert_in_loop_thread()
        self._looping = True
        try:
            while not self._quit:
                self._active = self._poller.poll(self._poll_timeout_ms())
                if self._active:
                    self._event_handling = True
                    try:
                        for channel in self._active:
                            self._current_channel = channel
                            channel.handle_event()
                    finally:
                        self._current_channel = None
                        self._event_handling = False
                self._timer_queue.handle_expired(Timestamp.now())
                self._do_pending_functors()
        finally:
            self._active = []
            self._looping = False
            self._quit = False

    def quit(self) -> None:
        self._quit = True
        if not self.is_in_loop_thread():
            self.wakeup()

    def run_in_loop(self, func: Functor) -> None:
        """Run ``func`` now if called from the loop thread, else queue it."""
        if self.is_in_loop_thread():
            func()
        else:
            self.queue_in_loop(func)

    def queue_in_loop(self, func: Functor) -> None:
        """Queue ``func`` to run in the loop thread after the current events."""
        with self._lock:
            self._pending.append(func)
        if not self.is_in_loop_thread() or self._calling_pending:
            self.wakeup()

    def run_after(self, delay: float, callback: TimerCallback) -> TimerId:
        when = add_time(Timestamp.now(), delay)
        return self._timer_queue.add_timer(callback, when, 0.0)

    def run_every(self, interval: float, callback: TimerCallback) -> TimerId:
        when = add_time(Timestamp.now(), interval)
        return self._timer_queue.add_timer(callback, when, interval)

    def cancel_timer(self, timer_id: TimerId) -> None:
        self._timer_queue.cancel_timer(timer_id)

    def wakeup(self) -> None:
        self._waker.wake()

    def update_channel(self, channel: Channel) -> None:
        self.assert_in_loop_thread()
        if channel.loop is not self:
            raise RuntimeError("channel belongs to another loop")
        self._poller.update_channel(channel)

    def remove_channel(self, channel: Channel) -> None:
        self.assert_in_loop_thread()
        if channel.loop is not self:
            raise RuntimeError("channel belongs to another loop")
        if self._event_handling and not (
            self._current_channel is channel or channel not in self._active
        ):
            raise RuntimeError("cannot remove another active channel while handling events")
        self._poller.remove_channel(channel)

    def assert_in_loop_thread(self) -> None:
        if not self.is_in_loop_thread():
            raise RuntimeError(
                f"EventLoop was created in thread {self._thread_id}, "
                f"current thread is {threading.get_ident()}"
            )

    def is_in_loop_thread(self) -> bool:
        return self._thread_id == threading.get_ident()

    def close(self) -> None:
        """Release the loop's descriptors; must be called from the loop thread."""
        if self._closed:
            return
        self.assert_in_loop_thread()
        if self._looping:
            raise RuntimeError("cannot close a running event loop")
        self._closed = True
        self._wakeup_channel.disable_all()
        self._wakeup_channel.remove()
        self._poller.close()
        self._waker.close()
        if getattr(_local, "loop", None) is self:
            _local.loop = None

    def __enter__(self) -> EventLoop:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    def _poll_timeout_ms(self) -> int:
        expiration = self._timer_queue.next_expiration()
        if expiration is None:
            return POLL_TIMEOUT_MS
        diff = expiration.micro_seconds_since_epoch - Timestamp.now().micro_seconds_since_epoch
        if diff <= 0:
            return 0
        return min(POLL_TIMEOUT_MS, -(-diff // 1000))

    def _do_pending_functors(self) -> None:
        self._calling_pending = True
        try:
            with self._lock:
                functors, self._pending = self._pending, []
            for functor in functors:
                functor()
        finally:
            self._calling_pending = False