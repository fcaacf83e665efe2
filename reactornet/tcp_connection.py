"""One established TCP connection served by an event loop."""

from __future__ import annotations

import contextlib
import socket
from typing import Any, Callable, Optional, Union

from reactornet.buffer import Buffer
from reactornet.channel import Channel
from reactornet.inetaddress import InetAddress
from reactornet.logger import strerror, sync_log
from reactornet.timestamp import Timestamp

ConnectionCallback = Callable[["TcpConnection"], None]
MessageCallback = Callable[["TcpConnection", Buffer, Timestamp], None]


class TcpConnection:
    """Buffers input and output for one socket and reports events to callbacks.

    ``server`` may be None; otherwise it must offer ``main_loop`` and
    ``remove_connection(conn)``, which is asked to drop the connection once
    the peer has closed it.
    """

    def __init__(
        self,
        server: Any,
        loop: Any,
        sock: socket.socket,
        name: str,
        local_addr: InetAddress,
        peer_addr: InetAddress,
    ) -> None:
        self.server = server
        self.loop = loop
        self.sock = sock
        self.name = name
        self.local_address = local_addr
        self.peer_address = peer_addr
        self.connection_callback: Optional[ConnectionCallback] = None
        self.message_callback: Optional[MessageCallback] = None
        self.input_buffer = Buffer()
        self.output_buffer = Buffer()
        self.last_error = 0
        self._connected = False
        self._need_disconnect = False
        self._closed = False
        self._destroyed = False

        sock.setblocking(False)
        self.channel = Channel(loop, sock.fileno())
        self.channel.read_callback = self._handle_read
        self.channel.write_callback = self._handle_write
        self.channel.close_callback = self._handle_close
        self.channel.error_callback = self._handle_error

        with contextlib.suppress(OSError):
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_KEEPALIVE, 1)
        with contextlib.suppress(OSError):
            sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)

    @property
    def connected(self) -> bool:
        return self._connected

    def send(self, data: Union[bytes, bytearray, memoryview, str, Buffer]) -> None:
        """Send ``data``; does nothing unless connected. Safe from any thread."""
        if not self._connected:
            return
        in_loop = self.loop.is_in_loop_thread()
        if isinstance(data, Buffer):
            payload = data.peek() if in_loop else data.retrieve_all_as_bytes()
        elif isinstance(data, str):
            payload = data.encode("utf-8")
        else:
            payload = bytes(data)
        if in_loop:
            self._send_in_loop(payload)
        else:
            self.loop.run_in_loop(lambda: self._send_in_loop(payload))

    def shutdown(self) -> None:
        """Close the writing side once all buffered output has been sent."""
        if not self._need_disconnect:
            self._need_disconnect = True
            self.loop.run_in_loop(self._shutdown_in_loop)

    def connection_established(self) -> None:
        self.loop.assert_in_loop_thread()
        self._connected = True
        self.channel.enable_reading()
        if self.connection_callback is not None:
            self.connection_callback(self)

    def connection_destroyed(self) -> None:
        """Stop watching the socket, tell the callback and close the socket."""
        self.loop.assert_in_loop_thread()
        if self._destroyed:
            return
        self._destroyed = True
        self.channel.disable_all()
        if self.connection_callback is not None:
            self.connection_callback(self)
        self.channel.remove()
        self.sock.close()

    def _send_in_loop(self, data: bytes) -> None:
        self.loop.assert_in_loop_thread()
        if not self._connected:
            return
        nwrote = 0
        remaining = len(data)
        if not self.channel.is_writing() and self.output_buffer.readable_bytes() == 0:
            try:
                nwrote = self.sock.send(data)
            except BlockingIOError:
                nwrote = 0
            except OSError:
                return
            remaining -= nwrote
        if remaining > 0:
            self.output_buffer.append(data[nwrote:])
            if not self.channel.is_writing():
                self.channel.enable_writing()

    def _shutdown_in_loop(self) -> None:
        if not self.channel.is_writing():
            self._connected = False
            with contextlib.suppress(OSError):
                self.sock.shutdown(socket.SHUT_WR)

    def _handle_read(self) -> None:
        self.loop.assert_in_loop_thread()
        try:
            n = self.input_buffer.read_fd(self.channel.fd)
        except BlockingIOError:
            return
        except OSError:
            self._handle_error()
            return
        if n > 0:
            if self.message_callback is not None:
                self.message_callback(self, self.input_buffer, Timestamp.now())
        else:
            self._handle_close()

    def _handle_write(self) -> None:
        if not self.channel.is_writing():
            return
        try:
            n = self.sock.send(self.output_buffer.peek())
        except OSError:
            return
        if n <= 0:
            return
        self.output_buffer.retrieve(n)
        if self.output_buffer.readable_bytes() == 0:
            self.channel.disable_writing()
            if self._need_disconnect:
                self._shutdown_in_loop()

    def _handle_close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._connected = False
        self.channel.disable_all()
        server = self.server
        if server is None:
            self.loop.queue_in_loop(self.connection_destroyed)
        else:
            server.main_loop.run_in_loop(lambda: server.remove_connection(self))

    def _handle_error(self) -> None:
        err = 0
        with contextlib.suppress(OSError):
            err = self.sock.getsockopt(socket.SOL_SOCKET, socket.SO_ERROR)
        self.last_error = err
        sync_log(f"TcpConnection.handle_error SO_ERROR={err}: {strerror(err)}")