import socket
import threading
from unittest import mock

import pytest

from reactornet.eventloop_thread import EventLoopThread
from reactornet.inetaddress import InetAddress
from reactornet.rpc_client import RpcClient
from reactornet.rpc_server import RpcServer
from reactornet.serializer import RpcStateCode, ValueType


def add(a, b):
    return a + b


def print_text(s):
    print(s)


class Named:
    def __init__(self):
        self.name = ""

    def set_name(self, n):
        self.name = n

    def get_name(self):
        return self.name


def _run_in(loop, func):
    done = threading.Event()
    errors = []

    def task():
        try:
            func()
        except BaseException as exc:
            errors.append(exc)
        finally:
            done.set()

    loop.run_in_loop(task)
    done.wait(5)
    if errors:
        raise errors[0]


@pytest.fixture
def server():
    thread = EventLoopThread()
    loop = thread.start()
    srv = RpcServer(loop, InetAddress(0, "127.0.0.1"), 0)
    t = Named()
    srv.bind("add", add, [ValueType.INT32, ValueType.INT32], ValueType.INT32)
    srv.bind("print", print_text, [ValueType.STRING])
    srv.bind("setName", t.set_name, [ValueType.STRING])
    srv.bind("getName", t.get_name, [], ValueType.STRING)
    _run_in(loop, srv.start)
    yield srv
    _run_in(loop, srv.close)
    thread.stop()


def test_client_session(server):
    with RpcClient() as client:
        client.connect("127.0.0.1", server.listen_address.port)

        val = client.call("add", ValueType.INT32, 10, 100)
        assert val.successful()
        assert val.value == 110

        val2 = client.call("print", ValueType.VOID, "你好，RpcServer")
        assert val2.successful()

        val3 = client.call("getName", ValueType.STRING)
        assert val3.successful()
        assert val3.value == ""

        val4 = client.call("setName", ValueType.VOID, "HelloWord")
        assert val4.successful()

        val5 = client.call("getName", ValueType.STRING)
        assert val5.value == "HelloWord"


def test_explicit_argument_types(server):
    with RpcClient() as client:
        client.connect("127.0.0.1", server.listen_address.port)
        val = client.call(
            "add", ValueType.INT32, 1, 2, arg_types=[ValueType.INT32, ValueType.INT32]
        )
        assert val.value == 3


def test_unbound_function(server):
    with RpcClient() as client:
        client.connect("127.0.0.1", server.listen_address.port)
        val = client.call("nope", ValueType.INT32)
        assert val.state_code is RpcStateCode.FUNCTION_NOTBIND
        assert val.message == "function not bind: nope"


def test_call_without_connection_times_out():
    with RpcClient() as client:
        first = client.call("add", ValueType.INT32, 10, 100)
        second = client.call("add", ValueType.INT32, 10, 100)
    assert first.state_code is RpcStateCode.RECV_TIMEOUT
    assert first.message == "recv timeout"
    assert not first.successful()
    assert second.state_code is RpcStateCode.RECV_TIMEOUT


def test_wrong_number_of_argument_types():
    with RpcClient() as client:
        with pytest.raises(ValueError):
            client.call("add", ValueType.INT32, 1, 2, arg_types=[ValueType.INT32])


def test_unsupported_argument_type():
    with RpcClient() as client:
        with pytest.raises(TypeError):
            client.call("add", ValueType.INT32, object())


def test_connect_gives_up_after_ten_attempts():
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as probe:
        probe.bind(("127.0.0.1", 0))
        port = probe.getsockname()[1]
    with mock.patch("reactornet.rpc_client.time.sleep") as sleep:
        with RpcClient() as client:
            with pytest.raises(ConnectionError):
                client.connect("127.0.0.1", port)
    assert sleep.call_args_list == [mock.call(i) for i in range(1, 11)]


def test_connect_rejects_bad_address():
    with RpcClient() as client:
        with pytest.raises(ValueError):
            client.connect("not-an-ip", 8888)