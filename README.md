# reactornet

An event-driven TCP networking library built around a one-loop-per-thread
reactor. It provides:

- `EventLoop` (`reactornet.eventloop`), `EventLoopThread` and
  `EventLoopThreadPool` (`reactornet.eventloop_thread`). These run I/O loops
  that dispatch readiness events to `Channel` objects, with one-shot and
  repeating timers (`run_after`, `run_every`, `cancel_timer`).
- `TcpServer` (`reactornet.tcp_server`) and `TcpConnection`
  (`reactornet.tcp_connection`). They accept connections and hand each socket
  to a pool of I/O loops, keeping input and output in `Buffer` objects.
- HTTP building blocks: `HttpContext` (`reactornet.http_context`) parses a
  request out of a `Buffer` into an `HttpRequest`
  (`reactornet.http_request`), and `HttpResponse`
  (`reactornet.http_response`) writes a status line, headers and body back
  into a `Buffer`.
- `RpcServer` and `RpcClient`. These make remote calls over a simple binary
  `Serializer` format. Each result comes back wrapped in an `RpcValue`.
- Logging utilities: `LogStream`, `Logger`, `LogFile` (rolling log files) and
  `AsyncLogging` (a background writer thread that holds double buffers).

## Installing

```
pip install .
```

Install with the test extra to run the test suite:

```
pip install .[test]
pytest
```

## Serving HTTP with TcpServer

The package has no ready-made HTTP server class and installs no command.
An HTTP service is put together from `TcpServer`, `HttpContext` and
`HttpResponse`:

```python
from reactornet.buffer import Buffer
from reactornet.eventloop import EventLoop
from reactornet.http_context import HttpContext
from reactornet.http_request import Version
from reactornet.http_response import HttpResponse, StatusCode
from reactornet.inetaddress import InetAddress
from reactornet.tcp_server import TcpServer

contexts = {}

def on_message(conn, buf, receive_time):
    context = contexts.setdefault(conn.name, HttpContext())
    if not context.parse_request(buf):
        conn.send(b"HTTP/1.1 400 Bad Request\r\n\r\n")
        conn.shutdown()
        return
    if not context.got_all():
        return
    request = context.request
    close = request.header("Connection") == "close" or request.version == Version.HTTP10
    response = HttpResponse(close, request.version)
    if request.path == "/":
        response.status_code = StatusCode.OK
        response.status_message = "OK"
        response.set_content_type("text/html")
        response.body = b"<html><body><h1>Hello</h1></body></html>"
    else:
        response.status_code = StatusCode.NOT_FOUND
        response.status_message = "Not Found"
        response.close_connection = True
    out = Buffer()
    response.append_to_buffer(out)
    conn.send(out)
    if response.close_connection:
        conn.shutdown()
    context.reset()

loop = EventLoop()
server = TcpServer(loop, InetAddress(8888), 0, "HttpServer")
server.message_callback = on_message
server.start()
loop.loop()
```

`HttpContext` does not read request bodies: parsing ends after the blank line
that closes the headers.

## RPC

```python
from reactornet.eventloop import EventLoop
from reactornet.inetaddress import InetAddress
from reactornet.rpc_server import RpcServer
from reactornet.rpc_client import RpcClient
from reactornet.serializer import ValueType

# server side
loop = EventLoop()
server = RpcServer(loop, InetAddress(8888, "127.0.0.1"), 4)
server.bind("add", lambda a, b: a + b, [ValueType.INT32, ValueType.INT32], ValueType.INT32)
server.start()
loop.loop()

# client side, in another process
with RpcClient() as client:
    client.connect("127.0.0.1", 8888)
    result = client.call("add", ValueType.INT32, 10, 100,
                         arg_types=[ValueType.INT32, ValueType.INT32])
    if result.successful():
        print(result.value)
    else:
        print(result.message)
```

`RpcClient.connect` retries up to ten times, pausing a little longer each
time, and raises `ConnectionError` if every attempt fails. A call to an
unbound name returns an `RpcValue` whose `state_code` is
`RpcStateCode.FUNCTION_NOTBIND`.

## Logging

```python
from reactornet.logger import sync_log, async_log, set_async_basename, stop_async_log

sync_log("hello", 42)          # written to stdout
set_async_basename("my_app")
async_log("written by the background thread")
stop_async_log()
```

Asynchronous records go to rolling files named
`<basename>.<YYYYmmdd-HHMMSS>.<hostname>.p<pid>.log`.