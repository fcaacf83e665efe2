"""Log records with time, thread id and source position, written sync or async."""

from __future__ import annotations

import atexit
import inspect
import os
import sys
import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional

from reactornet.asynclogging import AsyncLogging
from reactornet.logstream import LogStream
from reactornet.threads import current_tid

OutputFunc = Callable[[bytes], None]
FlushFunc = Callable[[], None]


def _default_output(msg: bytes) -> None:
    buffer = getattr(sys.stdout, "buffer", None)
    if buffer is not None:
        buffer.write(msg)
    else:
        sys.stdout.write(msg.decode("utf-8", errors="replace"))


def _default_flush() -> None:
    sys.stdout.flush()


@dataclass
class _Sinks:
    output: OutputFunc
    flush: FlushFunc


_sinks = _Sinks(_default_output, _default_flush)


class _AsyncSingleton:
    """Lazily creates the process-wide :class:`AsyncLogging`."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._instance: Optional[AsyncLogging] = None

    def get(self) -> AsyncLogging:
        with self._lock:
            if self._instance is None:
                self._instance = AsyncLogging()
                atexit.register(self._instance.stop)
            return self._instance


_async_singleton = _AsyncSingleton()


def set_output(func: Optional[OutputFunc]) -> None:
    """Send synchronous records to ``func``; ``None`` restores standard output."""
    _sinks.output = func if func is not None else _default_output


def set_flush(func: Optional[FlushFunc]) -> None:
    """Use ``func`` to flush after each synchronous record; ``None`` restores the default."""
    _sinks.flush = func if func is not None else _default_flush


def async_logger() -> AsyncLogging:
    """Return the shared asynchronous writer, creating and starting it on first use."""
    return _async_singleton.get()


def set_async_basename(name: str) -> None:
    async_logger().basename = name


def set_async_roll_size(size: int) -> None:
    async_logger().roll_size = size


def stop_async_log() -> None:
    async_logger().stop()


def strerror(errnum: int) -> str:
    """Return the system's description of ``errnum``."""
    return os.strerror(errnum)


def _basename(path: str) -> str:
    name = path.rsplit("/", 1)[-1]
    if os.sep != "/":
        name = name.rsplit(os.sep, 1)[-1]
    return name


class Logger:
    """One log record; values are added with ``<<`` and written by :meth:`finish`."""

    def __init__(self, file: str, line: int, is_async: bool = False) -> None:
        self.stream = LogStream()
        self.line = line
        self.basename = _basename(file)
        self.is_async = is_async
        self._finished = False
        self._format_time()
        self.stream << f"{current_tid():5d} " << ">>>"

    def _format_time(self) -> None:
        seconds, micro = divmod(time.time_ns() // 1000, 1_000_000)
        self.stream << time.strftime("%Y.%m.%d-%H:%M:%S", time.localtime(seconds))
        self.stream << f".{micro:06d} "

    def __lshift__(self, value: object) -> Logger:
        self.stream << value
        return self

    def finish(self) -> None:
        """Append the source position and write the record once."""
        if self._finished:
            return
        self._finished = True
        self.stream << " - " << self.basename << ":" << self.line << "\n"
        data = self.stream.buffer.getvalue()
        if self.is_async:
            async_logger().append(data)
        else:
            _sinks.output(data)
            _sinks.flush()

    def __enter__(self) -> Logger:
        return self

    def __exit__(self, *args: object) -> None:
        self.finish()


def _log_from_caller(is_async: bool, args: tuple[object, ...]) -> None:
    frame = inspect.currentframe()
    caller = frame.f_back.f_back if frame is not None and frame.f_back else None
    if caller is not None:
        file, line = caller.f_code.co_filename, caller.f_lineno
    else:
        file, line = "<unknown>", 0
    del frame, caller
    logger = Logger(file, line, is_async)
    for arg in args:
        logger << arg
    logger.finish()


def sync_log(*args: object) -> None:
    """Write one record of ``args`` to the synchronous output."""
    _log_from_caller(False, args)


def async_log(*args: object) -> None:
    """Queue one record of ``args`` for the asynchronous writer."""
    _log_from_caller(True, args)