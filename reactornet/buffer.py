"""Growable byte buffer with cheap prepend space, used for socket I/O."""

from __future__ import annotations

import os
from typing import Optional, Union

CHEAP_PREPEND = 8
INITIAL_SIZE = 1024
_EXTRA_READ_SIZE = 65536
CRLF = b"\r\n"


class Buffer:
    """Application-level buffer: ``prependable | readable | writable``.

    Positions taken and returned by :meth:`find_crlf` and :meth:`retrieve_until`
    are offsets into the readable bytes.
    """

    def __init__(self) -> None:
        self._buffer = bytearray(CHEAP_PREPEND + INITIAL_SIZE)
        self._read = CHEAP_PREPEND
        self._write = CHEAP_PREPEND

    def swap(self, other: Buffer) -> None:
        self._buffer, other._buffer = other._buffer, self._buffer
        self._read, other._read = other._read, self._read
        self._write, other._write = other._write, self._write

    def readable_bytes(self) -> int:
        return self._write - self._read

    def writable_bytes(self) -> int:
        return len(self._buffer) - self._write

    def prependable_bytes(self) -> int:
        return self._read

    def peek(self) -> bytes:
        """Return a copy of the readable bytes without consuming them."""
        return bytes(self._buffer[self._read : self._write])

    def find_crlf(self, start: int = 0) -> Optional[int]:
        """Return the offset of the first CRLF at or after ``start``, or None."""
        if not 0 <= start <= self.readable_bytes():
            raise ValueError("start is outside the readable bytes")
        pos = self._buffer.find(CRLF, self._read + start, self._write)
        return None if pos < 0 else pos - self._read

    def retrieve(self, n: int) -> None:
        if not 0 <= n <= self.readable_bytes():
            raise ValueError("cannot retrieve more than the readable bytes")
        if n < self.readable_bytes():
            self._read += n
        else:
            self.retrieve_all()

    def retrieve_until(self, end: int) -> None:
        """Consume the readable bytes before offset ``end``."""
        self.retrieve(end)

    def retrieve_all(self) -> None:
        self._read = CHEAP_PREPEND
        self._write = CHEAP_PREPEND

    def retrieve_as_bytes(self, n: int) -> bytes:
        if not 0 <= n <= self.readable_bytes():
            raise ValueError("cannot retrieve more than the readable bytes")
        result = bytes(self._buffer[self._read : self._read + n])
        self.retrieve(n)
        return result

    def retrieve_all_as_bytes(self) -> bytes:
        return self.retrieve_as_bytes(self.readable_bytes())

    def append(self, data: Union[bytes, bytearray, memoryview, str]) -> None:
        """Append bytes; text is encoded as UTF-8."""
        if isinstance(data, str):
            data = data.encode("utf-8")
        n = len(data)
        self._ensure_writable_bytes(n)
        self._buffer[self._write : self._write + n] = data
        self._write += n

    def read_fd(self, fd: int) -> int:
        """Read what ``fd`` has into the buffer; returns the byte count, 0 at EOF."""
        writable = self.writable_bytes()
        extra = bytearray(_EXTRA_READ_SIZE)
        if not hasattr(os, "readv"):
            data = os.read(fd, writable + _EXTRA_READ_SIZE)
            self.append(data)
            return len(data)

        whole = memoryview(self._buffer)
        try:
            region = whole[self._write :]
            try:
                n = os.readv(fd, [region, extra])
            finally:
                region.release()
        finally:
            whole.release()

        if n <= writable:
            self._write += n
        else:
            self._write = len(self._buffer)
            self.append(extra[: n - writable])
        return n

    def _ensure_writable_bytes(self, length: int) -> None:
        if self.writable_bytes() >= length:
            return
        if self.writable_bytes() + self.prependable_bytes() < length + CHEAP_PREPEND:
            self._buffer.extend(bytes(self._write + length - len(self._buffer)))
        else:
            readable = self.readable_bytes()
            self._buffer[CHEAP_PREPEND : CHEAP_PREPEND + readable] = self._buffer[
                self._read : self._write
            ]
            self._read = CHEAP_PREPEND
            self._write = CHEAP_PREPEND + readable