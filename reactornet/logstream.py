"""Fixed-size log buffers and a chaining log stream."""

from __future__ import annotations

SMALL_BUFFER = 4096
LARGE_BUFFER = 4096 * 1024
MAX_NUMERIC_SIZE = 32

_HEX_DIGITS = "0123456789ABCDEF"


def convert_int(value: int) -> str:
    """Render an integer in decimal."""
    return str(int(value))


def convert_hex(value: int) -> str:
    """Render a non-negative integer in upper-case hexadecimal without prefix."""
    if value < 0:
        raise ValueError("hexadecimal conversion needs a non-negative value")
    digits = []
    while True:
        value, lsd = divmod(value, 16)
        digits.append(_HEX_DIGITS[lsd])
        if value == 0:
            break
    return "".join(reversed(digits))


class FixedBuffer:
    """A byte buffer of fixed capacity that silently drops what does not fit."""

    def __init__(self, size: int = SMALL_BUFFER) -> None:
        self._size = size
        self._data = bytearray()

    def append(self, data: bytes) -> None:
        """Append ``data`` if strictly less than the remaining space."""
        if self.avail() > len(data):
            self._data += data

    def _add(self, data: bytes) -> None:
        self._data += data[: self.avail()]

    def avail(self) -> int:
        return self._size - len(self._data)

    def reset(self) -> None:
        self._data.clear()

    def getvalue(self) -> bytes:
        return bytes(self._data)

    def __len__(self) -> int:
        return len(self._data)


class LogStream:
    """Formats values into a small fixed buffer; ``<<`` returns the stream."""

    def __init__(self) -> None:
        self.buffer = FixedBuffer(SMALL_BUFFER)

    def __lshift__(self, value: object) -> LogStream:
        if value is None:
            self.buffer.append(b"(null)")
        elif isinstance(value, bool):
            self.buffer.append(b"true" if value else b"false")
        elif isinstance(value, int):
            if self.buffer.avail() >= MAX_NUMERIC_SIZE:
                self.buffer._add(convert_int(value).encode("ascii"))
        elif isinstance(value, float):
            if self.buffer.avail() >= MAX_NUMERIC_SIZE:
                self.buffer._add(("%.12g" % value).encode("ascii"))
        elif isinstance(value, str):
            self.buffer.append(value.encode("utf-8"))
        elif isinstance(value, (bytes, bytearray, memoryview)):
            self.buffer.append(bytes(value))
        elif self.buffer.avail() >= MAX_NUMERIC_SIZE:
            self.buffer._add(("0x" + convert_hex(id(value))).encode("ascii"))
        return self

    def append(self, data: bytes) -> None:
        self.buffer.append(data)

    def reset_buffer(self) -> None:
        self.buffer.reset()