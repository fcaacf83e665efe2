import pytest

from reactornet.serializer import (
    ByteOrder,
    RpcStateCode,
    RpcValue,
    Serializer,
    ValueType,
)

ROUND_TRIPS = [
    (ValueType.INT8, -5),
    (ValueType.UINT8, 200),
    (ValueType.INT16, -1234),
    (ValueType.UINT16, 65535),
    (ValueType.INT32, 100000),
    (ValueType.UINT32, 4000000000),
    (ValueType.INT64, -(2**40)),
    (ValueType.UINT64, 2**64 - 1),
    (ValueType.FLOAT, 0.5),
    (ValueType.DOUBLE, 3.25),
    (ValueType.BOOL, True),
    (ValueType.CHAR, b"x"),
    (ValueType.STRING, "你好，RpcServer"),
]


def test_int32_little_endian_wire_bytes():
    s = Serializer()
    s.write(ValueType.INT32, 1)
    assert s.getvalue() == b"\x01\x00\x00\x00"


def test_int32_big_endian_wire_bytes():
    s = Serializer(byte_order=ByteOrder.BIG_ENDIAN)
    s.write(ValueType.INT32, 1)
    assert s.getvalue() == b"\x00\x00\x00\x01"


def test_string_is_length_prefixed():
    s = Serializer()
    s.write(ValueType.STRING, "ab")
    assert s.getvalue() == b"\x02\x00ab"


@pytest.mark.parametrize("order", list(ByteOrder))
@pytest.mark.parametrize("kind,value", ROUND_TRIPS)
def test_round_trip(order, kind, value):
    s = Serializer(byte_order=order)
    s.write(kind, value)
    assert s.readable_bytes() == len(s.getvalue())
    assert s.read(kind) == value
    assert s.readable_bytes() == 0


def test_big_endian_reverses_little_endian():
    little = Serializer()
    big = Serializer(byte_order=ByteOrder.BIG_ENDIAN)
    little.write(ValueType.INT64, 0x0102030405060708)
    big.write(ValueType.INT64, 0x0102030405060708)
    assert big.getvalue() == little.getvalue()[::-1]


def test_void_is_encoded_as_a_zero_int8():
    void = Serializer()
    void.write(ValueType.VOID, None)
    byte = Serializer()
    byte.write(ValueType.INT8, 0)
    assert void.getvalue() == byte.getvalue()
    assert void.read(ValueType.VOID) is None
    assert void.readable_bytes() == 0


def test_short_fixed_read_gives_default_and_keeps_data():
    data = b"\x01"
    s = Serializer(data)
    assert s.read(ValueType.INT32) == ValueType.INT32.default
    assert s.readable_bytes() == len(data)


def test_empty_string_round_trip():
    s = Serializer()
    s.write(ValueType.STRING, "")
    assert s.read(ValueType.STRING) == ""
    assert s.readable_bytes() == 0


def test_truncated_string_raises():
    with pytest.raises(ValueError):
        Serializer(b"\x05\x00ab").read(ValueType.STRING)


def test_missing_string_length_raises():
    with pytest.raises(ValueError):
        Serializer().read(ValueType.STRING)


def test_too_long_string_raises():
    with pytest.raises(ValueError):
        Serializer().write(ValueType.STRING, "x" * 70000)


def test_out_of_range_value_raises():
    with pytest.raises(ValueError):
        Serializer().write(ValueType.UINT8, 300)


def test_pack_and_unpack_args():
    kinds = [ValueType.STRING, ValueType.INT32, ValueType.DOUBLE]
    args = ("add", 10, 2.5)
    s = Serializer()
    s.pack_args(kinds, args)
    assert s.unpack_args(kinds) == args
    assert s.readable_bytes() == 0


def test_pack_args_with_wrong_count_raises():
    with pytest.raises(ValueError):
        Serializer().pack_args([ValueType.INT32], (1, 2))


def test_clear_discards_everything():
    s = Serializer()
    s.write(ValueType.STRING, "add")
    s.clear()
    assert s.readable_bytes() == 0
    assert s.getvalue() == b""


def test_getvalue_returns_unread_part():
    s = Serializer()
    s.write(ValueType.INT32, 7)
    s.write(ValueType.STRING, "rest")
    rest = Serializer()
    rest.write(ValueType.STRING, "rest")
    s.read(ValueType.INT32)
    assert s.getvalue() == rest.getvalue()


def test_serializer_built_from_bytes_reads_them():
    source = Serializer(byte_order=ByteOrder.BIG_ENDIAN)
    source.write(ValueType.UINT16, 513)
    copy = Serializer(source.getvalue(), ByteOrder.BIG_ENDIAN)
    assert copy.read(ValueType.UINT16) == 513


def test_rpc_value_round_trip():
    s = Serializer()
    RpcValue(RpcStateCode.SUCCESS, "", "HelloWord").write_to(s, ValueType.STRING)
    value = RpcValue.read_from(s, ValueType.STRING)
    assert value == RpcValue(RpcStateCode.SUCCESS, "", "HelloWord")
    assert value.successful()


def test_rpc_value_without_value_writes_default():
    s = Serializer()
    RpcValue().write_to(s, ValueType.INT32)
    value = RpcValue.read_from(s, ValueType.INT32)
    assert value.value == ValueType.INT32.default
    assert s.readable_bytes() == 0


def test_failed_rpc_value_does_not_read_value():
    s = Serializer()
    RpcValue(RpcStateCode.FUNCTION_NOTBIND, "x", 42).write_to(s, ValueType.INT32)
    value = RpcValue.read_from(s, ValueType.INT32)
    assert not value.successful()
    assert value.state_code is RpcStateCode.FUNCTION_NOTBIND
    assert value.message == "x"
    assert value.value == ValueType.INT32.default
    leftover = Serializer()
    leftover.write(ValueType.INT32, 42)
    assert s.getvalue() == leftover.getvalue()