"""Binary serialisation of RPC calls and their results."""

from __future__ import annotations

import enum
import struct
from dataclasses import dataclass
from typing import Any, Iterable, Sequence, Union

_LENGTH_FORMAT = "H"
_MAX_STRING_LENGTH = 0xFFFF
_VOID_FORMAT = "b"


class ByteOrder(enum.Enum):
    """Order of the bytes of numbers on the wire."""

    BIG_ENDIAN = ">"
    LITTLE_ENDIAN = "<"


class ValueType(enum.Enum):
    """Kinds of values that can be serialised, with their struct formats."""

    BOOL = "?"
    CHAR = "c"
    INT8 = "b"
    UINT8 = "B"
    INT16 = "h"
    UINT16 = "H"
    INT32 = "i"
    UINT32 = "I"
    INT64 = "q"
    UINT64 = "Q"
    FLOAT = "f"
    DOUBLE = "d"
    STRING = "s"
    VOID = "v"

    @property
    def default(self) -> Any:
        """The value a missing or unread value of this kind takes."""
        if self is ValueType.BOOL:
            return False
        if self is ValueType.CHAR:
            return b"\x00"
        if self in (ValueType.FLOAT, ValueType.DOUBLE):
            return 0.0
        if self is ValueType.STRING:
            return ""
        if self is ValueType.VOID:
            return None
        return 0


class RpcStateCode(enum.IntEnum):
    SUCCESS = 0
    FUNCTION_NOTBIND = 1
    RECV_TIMEOUT = 2


class Serializer:
    """A byte stream that values are written to and read back from in order.

    Reading a fixed-size value from too few bytes leaves the stream as it is
    and yields the kind's default; a truncated string raises ValueError.
    """

    def __init__(
        self,
        data: Union[bytes, bytearray] = b"",
        byte_order: ByteOrder = ByteOrder.LITTLE_ENDIAN,
    ) -> None:
        self.byte_order = byte_order
        self._data = bytearray(data)
        self._pos = 0

    def readable_bytes(self) -> int:
        return len(self._data) - self._pos

    def getvalue(self) -> bytes:
        """Return the bytes not read yet."""
        return bytes(self._data[self._pos:])

    def clear(self) -> None:
        self._data.clear()
        self._pos = 0

    def write(self, kind: ValueType, value: Any) -> None:
        """Append ``value`` encoded as ``kind``."""
        if kind is ValueType.STRING:
            self._write_string(value)
        elif kind is ValueType.VOID:
            self._pack(_VOID_FORMAT, 0)
        else:
            self._pack(kind.value, value)

    def read(self, kind: ValueType) -> Any:
        """Read the next value, which must be of ``kind``."""
        if kind is ValueType.STRING:
            return self._read_string()
        if kind is ValueType.VOID:
            self._unpack(_VOID_FORMAT, 0)
            return None
        return self._unpack(kind.value, kind.default)

    def pack_args(self, kinds: Sequence[ValueType], args: Sequence[Any]) -> None:
        """Write each argument as the kind at the same position."""
        if len(kinds) != len(args):
            raise ValueError(f"{len(args)} arguments given for {len(kinds)} types")
        for kind, value in zip(kinds, args):
            self.write(kind, value)

    def unpack_args(self, kinds: Iterable[ValueType]) -> tuple[Any, ...]:
        """Read one value of each kind, in order."""
        return tuple(self.read(kind) for kind in kinds)

    def _pack(self, fmt: str, value: Any) -> None:
        try:
            self._data += struct.pack(self.byte_order.value + fmt, value)
        except struct.error as exc:
            raise ValueError(f"cannot encode {value!r} as {fmt!r}: {exc}") from exc

    def _unpack(self, fmt: str, default: Any) -> Any:
        layout = struct.Struct(self.byte_order.value + fmt)
        if self.readable_bytes() < layout.size:
            return default
        (value,) = layout.unpack_from(self._data, self._pos)
        self._pos += layout.size
        return value

    def _write_string(self, value: Union[str, bytes]) -> None:
        raw = value.encode("utf-8") if isinstance(value, str) else bytes(value)
        if len(raw) > _MAX_STRING_LENGTH:
            raise ValueError(f"string of {len(raw)} bytes is too long to serialise")
        self._pack(_LENGTH_FORMAT, len(raw))
        self._data += raw

    def _read_string(self) -> str:
        layout = struct.Struct(self.byte_order.value + _LENGTH_FORMAT)
        if self.readable_bytes() < layout.size:
            raise ValueError("truncated string length")
        (length,) = layout.unpack_from(self._data, self._pos)
        start = self._pos + layout.size
        if len(self._data) - start < length:
            raise ValueError(f"truncated string: {length} bytes announced")
        self._pos = start + length
        return self._data[start:self._pos].decode("utf-8")


def _state(code: int) -> Union[RpcStateCode, int]:
    try:
        return RpcStateCode(code)
    except ValueError:
        return code


@dataclass
class RpcValue:
    """The result of a remote call: a state code, a message and a value."""

    state_code: Union[RpcStateCode, int] = RpcStateCode.SUCCESS
    message: str = ""
    value: Any = None

    def successful(self) -> bool:
        return self.state_code == RpcStateCode.SUCCESS

    def write_to(self, serializer: Serializer, kind: ValueType) -> None:
        serializer.write(ValueType.INT32, int(self.state_code))
        serializer.write(ValueType.STRING, self.message)
        serializer.write(kind, kind.default if self.value is None else self.value)

    @classmethod
    def read_from(cls, serializer: Serializer, kind: ValueType) -> RpcValue:
        """Read a result; its value is read only when the call succeeded."""
        state = _state(serializer.read(ValueType.INT32))
        message = serializer.read(ValueType.STRING)
        value = serializer.read(kind) if state == RpcStateCode.SUCCESS else kind.default
        return cls(state, message, value)