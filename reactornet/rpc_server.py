"""An RPC server: named functions called with serialised arguments over TCP."""

from __future__ import annotations

from typing import Any, Callable, NamedTuple, Sequence

from reactornet.buffer import Buffer
from reactornet.eventloop import EventLoop
from reactornet.inetaddress import InetAddress
from reactornet.serializer import RpcStateCode, RpcValue, Serializer, ValueType
from reactornet.tcp_connection import TcpConnection
from reactornet.tcp_server import TcpServer
from reactornet.timestamp import Timestamp


class _Binding(NamedTuple):
    func: Callable[..., Any]
    arg_types: tuple[ValueType, ...]
    return_type: ValueType


class RpcServer:
    """Answers each message with the result of the function it names."""

    def __init__(
        self,
        base_loop: EventLoop,
        listen_addr: InetAddress,
        thread_num: int = 0,
        name: str = "rpc_server",
    ) -> None:
        self.name = name
        self._functions: dict[str, _Binding] = {}
        self._server = TcpServer(base_loop, listen_addr, thread_num, name)
        self._server.message_callback = self._on_message

    @property
    def listen_address(self) -> InetAddress:
        return self._server.listen_address

    def bind(
        self,
        name: str,
        func: Callable[..., Any],
        arg_types: Sequence[ValueType] = (),
        return_type: ValueType = ValueType.VOID,
    ) -> None:
        """Make ``func`` callable as ``name``; a later bind of the name replaces it."""
        self._functions[name] = _Binding(func, tuple(arg_types), return_type)

    def handle(self, serializer: Serializer) -> bytes:
        """Run the call held in ``serializer`` and leave the reply in it.

        Returns the reply's bytes.
        """
        name = serializer.read(ValueType.STRING)
        binding = self._functions.get(name)
        if binding is None:
            serializer.clear()
            serializer.write(ValueType.INT32, int(RpcStateCode.FUNCTION_NOTBIND))
            serializer.write(ValueType.STRING, f"function not bind: {name}")
            return serializer.getvalue()

        args = serializer.unpack_args(binding.arg_types)
        serializer.clear()
        result = binding.func(*args)
        if binding.return_type is ValueType.VOID:
            result = None
        RpcValue(RpcStateCode.SUCCESS, "", result).write_to(serializer, binding.return_type)
        return serializer.getvalue()

    def start(self) -> None:
        """Start accepting calls; must run in the base loop's thread."""
        self._server.start()

    def close(self) -> None:
        self._server.close()

    def __enter__(self) -> RpcServer:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    def _on_message(self, conn: TcpConnection, buf: Buffer, receive_time: Timestamp) -> None:
        serializer = Serializer(buf.retrieve_all_as_bytes())
        try:
            reply = self.handle(serializer)
        except ValueError:
            conn.shutdown()
            return
        conn.send(reply)