"""An RPC client that calls functions bound on an :class:`RpcServer`."""

from __future__ import annotations

import socket
import time
from typing import Any, Optional, Sequence

from reactornet.inetaddress import InetAddress
from reactornet.logger import sync_log
from reactornet.serializer import RpcStateCode, RpcValue, Serializer, ValueType

MAX_CONNECT_ATTEMPTS = 10
_RECV_SIZE = 65536 + 1024
_INT32_MIN, _INT32_MAX = -(2**31), 2**31 - 1


def _infer_kind(value: Any) -> ValueType:
    if isinstance(value, bool):
        return ValueType.BOOL
    if isinstance(value, int):
        return ValueType.INT32 if _INT32_MIN <= value <= _INT32_MAX else ValueType.INT64
    if isinstance(value, float):
        return ValueType.DOUBLE
    if isinstance(value, (str, bytes)):
        return ValueType.STRING
    raise TypeError(f"cannot serialise argument of type {type(value).__name__}")


def _new_socket() -> socket.socket:
    return socket.socket(socket.AF_INET, socket.SOCK_STREAM, socket.IPPROTO_TCP)


class RpcClient:
    """Sends one call at a time and waits for its result.

    Once a call fails to get an answer, every later call fails the same way.
    """

    def __init__(self) -> None:
        self._sock = _new_socket()
        self._state = RpcStateCode.SUCCESS

    def connect(self, ip: str, port: int) -> None:
        """Connect, retrying with growing pauses; raises ConnectionError at last."""
        addr = InetAddress(port, ip)
        for attempt in range(1, MAX_CONNECT_ATTEMPTS + 1):
            try:
                self._sock.connect(addr.sockaddr())
            except OSError as exc:
                sync_log(f"connect to {addr.to_ip_port()} faild: {exc.strerror or exc}")
                print(f"The no.{attempt} reconnection will be in {attempt} seconds")
                self._sock.close()
                self._sock = _new_socket()
                time.sleep(attempt)
                continue
            sync_log(f"connect to {addr.to_ip_port()} succeed")
            return
        raise ConnectionError(f"could not connect to {addr.to_ip_port()}")

    def call(
        self,
        func: str,
        return_type: ValueType,
        *args: Any,
        arg_types: Optional[Sequence[ValueType]] = None,
    ) -> RpcValue:
        """Call ``func`` with ``args`` and return its result.

        Argument types are inferred unless ``arg_types`` is given.
        """
        kinds = list(arg_types) if arg_types is not None else [_infer_kind(a) for a in args]
        request = Serializer()
        request.write(ValueType.STRING, func)
        request.pack_args(kinds, args)
        return self._net_call(request.getvalue(), return_type)

    def close(self) -> None:
        self._sock.close()

    def __enter__(self) -> RpcClient:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    def _net_call(self, request: bytes, return_type: ValueType) -> RpcValue:
        if self._state != RpcStateCode.RECV_TIMEOUT:
            try:
                self._sock.sendall(request)
                reply = self._sock.recv(_RECV_SIZE)
            except OSError:
                reply = b""
            if reply:
                try:
                    value = RpcValue.read_from(Serializer(reply), return_type)
                except ValueError:
                    value = None
                if value is not None:
                    if value.state_code == RpcStateCode.RECV_TIMEOUT:
                        self._state = RpcStateCode.RECV_TIMEOUT
                    return value

        self._state = RpcStateCode.RECV_TIMEOUT
        return RpcValue(RpcStateCode.RECV_TIMEOUT, "recv timeout", return_type.default)