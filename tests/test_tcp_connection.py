import socket
import threading

import pytest

from reactornet.eventloop import EventLoop
from reactornet.inetaddress import InetAddress
from reactornet.tcp_connection import TcpConnection


@pytest.fixture
def loop():
    ev = EventLoop()
    yield ev
    ev.close()


@pytest.fixture
def pair():
    a, b = socket.socketpair()
    b.settimeout(2)
    yield a, b
    a.close()
    b.close()


def _make(loop, sock, server=None):
    return TcpConnection(server, loop, sock, "conn", InetAddress(0), InetAddress(0))


def _run(loop, seconds):
    loop.run_after(seconds, loop.quit)
    loop.loop()


class _FakeServer:
    def __init__(self, loop):
        self.main_loop = loop
        self.removed = []

    def remove_connection(self, conn):
        self.removed.append(conn)
        conn.connection_destroyed()


def test_message_callback_receives_data(loop, pair):
    a, b = pair
    conn = _make(loop, a)
    received = []
    conn.message_callback = lambda c, buf, when: received.append((c, buf.retrieve_all_as_bytes()))
    conn.connection_established()
    b.sendall(b"ping")
    _run(loop, 0.1)
    assert received == [(conn, b"ping")]


def test_send_writes_directly(loop, pair):
    a, b = pair
    conn = _make(loop, a)
    conn.connection_established()
    assert conn.connected is True
    conn.send(b"hello")
    assert conn.output_buffer.readable_bytes() == 0
    assert conn.channel.is_writing() is False
    assert b.recv(16) == b"hello"


def test_send_before_established_is_dropped(loop, pair):
    a, b = pair
    conn = _make(loop, a)
    conn.send(b"lost")
    b.setblocking(False)
    with pytest.raises(BlockingIOError):
        b.recv(16)
    assert conn.connected is False


def test_send_from_other_thread_is_queued(loop, pair):
    a, b = pair
    conn = _make(loop, a)
    conn.connection_established()
    worker = threading.Thread(target=lambda: conn.send("queued"))
    worker.start()
    worker.join()
    _run(loop, 0.05)
    assert conn.connected is True
    assert conn.output_buffer.readable_bytes() == 0
    assert b.recv(16) == b"queued"


def test_shutdown_closes_write_side(loop, pair):
    a, b = pair
    conn = _make(loop, a)
    conn.connection_established()
    conn.send(b"bye")
    conn.shutdown()
    assert conn.connected is False
    assert b.recv(16) == b"bye"
    assert b.recv(16) == b""


def test_peer_close_destroys_connection(loop, pair):
    a, b = pair
    conn = _make(loop, a)
    states = []
    conn.connection_callback = lambda c: states.append(c.connected)
    conn.connection_established()
    b.close()
    _run(loop, 0.1)
    assert states == [True, False]
    assert a.fileno() == -1


def test_peer_close_asks_server_to_remove(loop, pair):
    a, b = pair
    server = _FakeServer(loop)
    conn = _make(loop, a, server)
    conn.connection_established()
    b.close()
    _run(loop, 0.1)
    assert server.removed == [conn]


def test_large_send_is_buffered_until_drained(loop, pair):
    a, b = pair
    b.settimeout(None)
    conn = _make(loop, a)
    conn.connection_established()
    data = bytes(range(256)) * 16384
    conn.send(data)
    assert conn.channel.is_writing() is True
    assert conn.output_buffer.readable_bytes() > 0

    chunks = []

    def reader():
        total = 0
        while total < len(data):
            chunk = b.recv(65536)
            if not chunk:
                break
            chunks.append(chunk)
            total += len(chunk)
        loop.quit()

    worker = threading.Thread(target=reader)
    worker.start()
    loop.run_after(10, loop.quit)
    loop.loop()
    worker.join()
    assert b"".join(chunks) == data
    assert conn.channel.is_writing() is False