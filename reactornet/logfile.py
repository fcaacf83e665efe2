"""Log files that roll over by size and by day."""

from __future__ import annotations

import contextlib
import os
import socket
import threading
import time
from typing import ContextManager, Optional, Union

from reactornet.threads import current_tid

CHECK_EVERY_N = 1000
ROLL_PER_SECONDS = 24 * 60 * 60
_FILE_BUFFER_SIZE = 64 * 1024


def log_file_name(basename: str, now: float) -> str:
    """Build ``basename.YYYYmmdd-HHMMSS.hostname.pPID.log`` for time ``now``."""
    stamp = time.strftime(".%Y%m%d-%H%M%S.", time.localtime(now))
    return f"{basename}{stamp}{socket.gethostname()}.p{os.getpid()}.log"


class _File:
    """One open log file that counts the bytes written to it."""

    def __init__(self, filename: str) -> None:
        self._fp = open(filename, "ab", buffering=_FILE_BUFFER_SIZE)
        self.written_bytes = 0

    def append(self, data: bytes) -> None:
        self._fp.write(data)
        self.written_bytes += len(data)

    def flush(self) -> None:
        self._fp.flush()

    def close(self) -> None:
        self._fp.close()


class LogFile:
    """Appends to a log file, starting a new one past ``roll_size`` bytes or each day."""

    def __init__(
        self,
        basename: str,
        roll_size: int,
        flush_interval: int = 3,
        thread_safe: bool = True,
    ) -> None:
        self.basename = basename
        self.roll_size = roll_size
        self.flush_interval = flush_interval
        self._lock: Optional[threading.Lock] = threading.Lock() if thread_safe else None
        self._start_of_period = 0
        self._last_roll = 0
        self._last_flush = 0
        self._count = 0
        self._file: Optional[_File] = None
        self._roll_file()

    def _locked(self) -> ContextManager[object]:
        return self._lock if self._lock is not None else contextlib.nullcontext()

    def append(self, data: Union[bytes, str]) -> None:
        """Write ``data``; raises ValueError once the log file is closed."""
        if isinstance(data, str):
            data = data.encode("utf-8")
        with self._locked():
            self._append_unlocked(data)

    def flush(self) -> None:
        with self._locked():
            self._current_file().flush()

    def close(self) -> None:
        """Flush and close the current file."""
        with self._locked():
            if self._file is not None:
                self._file.close()

    def __enter__(self) -> LogFile:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    def _current_file(self) -> _File:
        if self._file is None:
            raise ValueError("log file is not open")
        return self._file

    def _append_unlocked(self, data: bytes) -> None:
        current = self._current_file()
        current.append(data)

        if current.written_bytes > self.roll_size:
            self._roll_file()
            self._count = 0
            return

        self._count += 1
        if self._count < CHECK_EVERY_N:
            return
        self._count = 0
        now = int(time.time())
        this_period = now // ROLL_PER_SECONDS * ROLL_PER_SECONDS
        if this_period != self._start_of_period:
            self._roll_file()
        elif now - self._last_flush > self.flush_interval:
            self._last_flush = now
            current.flush()

    def _roll_file(self) -> None:
        now = int(time.time())
        filename = log_file_name(self.basename, now)
        self._last_roll = now
        self._last_flush = now
        self._start_of_period = now // ROLL_PER_SECONDS * ROLL_PER_SECONDS

        if self._file is not None:
            self._file.close()
        self._file = _File(filename)
        self._file.append(f"Writed by t{current_tid()}\n".encode("ascii"))