"""Asynchronous logging: producers fill buffers, a background thread writes them."""

from __future__ import annotations

import sys
import threading
from typing import Optional, Union

from reactornet.logfile import LogFile
from reactornet.logstream import LARGE_BUFFER, FixedBuffer
from reactornet.threads import Thread
from reactornet.timestamp import Timestamp

DEFAULT_ROLL_SIZE = 500 * 1024 * 1024
DEFAULT_BASENAME = "async_log"
_MAX_PENDING_BUFFERS = 25


class AsyncLogging:
    """Double-buffered log writer backed by a :class:`LogFile`.

    An empty ``basename`` selects ``async_log`` and starts the writer at once.
    The log file is opened when the first data is written, so ``basename``
    and ``roll_size`` may be changed until then.
    """

    def __init__(
        self,
        basename: str = "",
        roll_size: int = DEFAULT_ROLL_SIZE,
        flush_interval: int = 3,
    ) -> None:
        self.basename = basename
        self.roll_size = roll_size
        self._flush_interval = flush_interval
        self._running = False
        self._cond = threading.Condition()
        self._thread = Thread(self._thread_func, "AsyncLogThread")
        self._current = FixedBuffer(LARGE_BUFFER)
        self._next: Optional[FixedBuffer] = FixedBuffer(LARGE_BUFFER)
        self._full: list[FixedBuffer] = []
        if not self.basename:
            self.basename = DEFAULT_BASENAME
            self.start()

    @property
    def running(self) -> bool:
        return self._running

    def append(self, data: Union[bytes, str]) -> None:
        """Queue ``data`` for the writer thread."""
        if isinstance(data, str):
            data = data.encode("utf-8")
        with self._cond:
            if self._current.avail() > len(data):
                self._current.append(data)
                return
            self._full.append(self._current)
            if self._next is not None:
                self._current, self._next = self._next, None
            else:
                self._current = FixedBuffer(LARGE_BUFFER)
            self._current.append(data)
            self._cond.notify()

    def start(self) -> None:
        """Start the writer thread; raises RuntimeError if it already ran."""
        if self._running:
            return
        self._running = True
        try:
            self._thread.start()
        except RuntimeError:
            self._running = False
            raise

    def stop(self) -> None:
        """Write out what is queued and stop the writer thread."""
        with self._cond:
            if not self._running:
                return
            self._running = False
            self._cond.notify()
        self._thread.join()

    def _thread_func(self) -> None:
        new_buffer1: Optional[FixedBuffer] = FixedBuffer(LARGE_BUFFER)
        new_buffer2: Optional[FixedBuffer] = FixedBuffer(LARGE_BUFFER)
        logfile: Optional[LogFile] = None

        def write(data: bytes) -> None:
            nonlocal logfile
            if not data:
                return
            if logfile is None:
                logfile = LogFile(
                    self.basename, self.roll_size, self._flush_interval, thread_safe=False
                )
            logfile.append(data)

        while self._running:
            with self._cond:
                while not self._full and self._running:
                    self._cond.wait(self._flush_interval)
                    if len(self._current) > 0:
                        break
                self._full.append(self._current)
                to_write, self._full = self._full, []
                assert new_buffer1 is not None
                self._current, new_buffer1 = new_buffer1, None
                if self._next is None:
                    self._next, new_buffer2 = new_buffer2, None

            if len(to_write) > _MAX_PENDING_BUFFERS:
                message = (
                    f"Dropped log messages at {Timestamp.now().to_formatted_string()}, "
                    f"{len(to_write) - 2} larger buffers\n"
                )
                sys.stderr.write(message)
                write(message.encode("utf-8"))
                del to_write[2:]

            for buffer in to_write:
                write(buffer.getvalue())

            del to_write[2:]
            if new_buffer1 is None:
                new_buffer1 = to_write.pop()
                new_buffer1.reset()
            if new_buffer2 is None:
                new_buffer2 = to_write.pop()
                new_buffer2.reset()

            if logfile is not None:
                logfile.flush()

        with self._cond:
            remaining = self._full + [self._current]
            self._full = []
            self._current = FixedBuffer(LARGE_BUFFER)
        for buffer in remaining:
            write(buffer.getvalue())

        if logfile is not None:
            logfile.flush()
            logfile.close()