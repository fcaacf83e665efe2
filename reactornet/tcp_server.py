"""A TCP server that accepts connections and hands each one to an I/O loop."""

from __future__ import annotations

import contextlib
import errno
import os
import socket
from typing import Any, Optional

from reactornet.buffer import Buffer
from reactornet.channel import Channel
from reactornet.eventloop import EventLoop
from reactornet.eventloop_thread import EventLoopThreadPool, ThreadInitCallback
from reactornet.inetaddress import InetAddress
from reactornet.tcp_connection import ConnectionCallback, MessageCallback, TcpConnection
from reactornet.threads import CountDownLatch
from reactornet.timestamp import Timestamp


def default_connection_callback(conn: Any) -> None:
    """Print the connection's endpoints and whether it is up or down."""
    state = "UP" if conn.connected else "DOWN"
    print(
        f"On defaultConnectionCallback [{conn.local_address.to_ip_port()}]-"
        f"[{conn.peer_address.to_ip_port()}] is {state}"
    )


def default_message_callback(conn: Any, buf: Buffer, receive_time: Timestamp) -> None:
    """Print how much arrived and discard it."""
    print(
        f"On defaultMessageCallback recved {buf.readable_bytes()} bytes data from "
        f"{conn.peer_address.to_ip_port()} at {receive_time.to_formatted_string()}"
    )
    buf.retrieve_all()


def _open_idle_fd() -> int:
    return os.open(os.devnull, os.O_RDONLY | getattr(os, "O_CLOEXEC", 0))


class TcpServer:
    """Listens on ``listen_addr``; new connections go to a pool of loop threads.

    With ``thread_num`` 0 every connection is served by ``main_loop`` itself.
    """

    def __init__(
        self,
        main_loop: EventLoop,
        listen_addr: InetAddress,
        thread_num: int = 0,
        name: str = "TcpServer",
    ) -> None:
        self.main_loop = main_loop
        self.name = name
        self.thread_init_callback: Optional[ThreadInitCallback] = None
        self.connection_callback: ConnectionCallback = default_connection_callback
        self.message_callback: MessageCallback = default_message_callback
        self._started = False
        self._closed = False
        self._next_conn_id = 0
        self._connections: dict[str, TcpConnection] = {}

        self._sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM, socket.IPPROTO_TCP)
        try:
            self._sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            self._sock.bind(listen_addr.sockaddr())
            self._sock.setblocking(False)
            self._listen_address = InetAddress.from_sockaddr(self._sock.getsockname())
        except OSError:
            self._sock.close()
            raise
        self._idle_fd = _open_idle_fd()
        self._accept_channel = Channel(main_loop, self._sock.fileno())
        self._accept_channel.read_callback = self._handle_connection
        self._thread_pool = EventLoopThreadPool(main_loop, thread_num)

    @property
    def listen_address(self) -> InetAddress:
        """The address the server is bound to."""
        return self._listen_address

    @property
    def connections(self) -> dict[str, TcpConnection]:
        return dict(self._connections)

    def host_ip_port(self) -> str:
        return self._listen_address.to_ip_port()

    def start(self) -> None:
        """Start the loop threads and begin accepting; later calls do nothing."""
        self.main_loop.assert_in_loop_thread()
        if self._closed:
            raise RuntimeError("server is closed")
        if self._started:
            return
        self._started = True
        self._thread_pool.start(self.thread_init_callback)
        self._sock.listen(socket.SOMAXCONN)
        self._accept_channel.enable_reading()

    def remove_connection(self, conn: TcpConnection) -> None:
        """Drop ``conn`` after its peer closed; its loop then destroys it."""
        self.main_loop.assert_in_loop_thread()
        self._connections.pop(conn.name, None)
        conn.loop.queue_in_loop(conn.connection_destroyed)

    def close(self) -> None:
        """Destroy every connection, stop the loop threads and stop listening."""
        if self._closed:
            return
        self.main_loop.assert_in_loop_thread()
        self._closed = True
        connections = list(self._connections.values())
        self._connections.clear()
        for conn in connections:
            if conn.loop is self.main_loop:
                conn.connection_destroyed()
            else:
                self._destroy_in_other_loop(conn)
        if self._started:
            self._accept_channel.disable_all()
            self._accept_channel.remove()
        self._thread_pool.stop()
        self._sock.close()
        os.close(self._idle_fd)

    def __enter__(self) -> TcpServer:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    @staticmethod
    def _destroy_in_other_loop(conn: TcpConnection) -> None:
        latch = CountDownLatch(1)

        def destroy() -> None:
            try:
                conn.connection_destroyed()
            finally:
                latch.count_down()

        conn.loop.run_in_loop(destroy)
        latch.wait()

    def _handle_connection(self) -> None:
        self.main_loop.assert_in_loop_thread()
        try:
            sock, addr = self._sock.accept()
        except (BlockingIOError, InterruptedError):
            return
        except OSError as exc:
            if exc.errno == errno.EMFILE:
                self._shed_connection()
            return

        try:
            local = InetAddress.from_sockaddr(sock.getsockname())
        except OSError:
            sock.close()
            return
        peer = InetAddress.from_sockaddr(addr)

        conn_name = f"{self.name} #{self._next_conn_id}:{peer.to_ip_port()}"
        self._next_conn_id += 1
        io_loop = self._thread_pool.next_loop()
        conn = TcpConnection(self, io_loop, sock, conn_name, local, peer)
        self._connections[conn_name] = conn
        conn.connection_callback = self.connection_callback
        conn.message_callback = self.message_callback
        io_loop.run_in_loop(conn.connection_established)

    def _shed_connection(self) -> None:
        # Out of descriptors: free the reserved one to accept and close the peer.
        os.close(self._idle_fd)
        with contextlib.suppress(OSError):
            sock, _ = self._sock.accept()
            sock.close()
        self._idle_fd = _open_idle_fd()