"""Incremental parsing of HTTP requests out of a buffer."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field

from reactornet.buffer import Buffer
from reactornet.http_request import HttpRequest, Version

_CRLF_LEN = 2
_VERSION_PREFIX = b"HTTP/1."


class ParseState(enum.Enum):
    EXPECT_REQUEST_LINE = enum.auto()
    EXPECT_HEADERS = enum.auto()
    EXPECT_BODY = enum.auto()
    GOT_ALL = enum.auto()


@dataclass
class HttpContext:
    """Holds the request being parsed and how far parsing has got."""

    state: ParseState = ParseState.EXPECT_REQUEST_LINE
    request: HttpRequest = field(default_factory=HttpRequest)

    def parse_request(self, buf: Buffer) -> bool:
        """Consume what can be parsed from ``buf``; False means a malformed request line.

        A True result with :meth:`got_all` still False means more data is needed.
        """
        while True:
            if self.state is ParseState.EXPECT_REQUEST_LINE:
                crlf = buf.find_crlf()
                if crlf is None:
                    return True
                if not self._process_request_line(buf.peek()[:crlf]):
                    return False
                buf.retrieve_until(crlf + _CRLF_LEN)
                self.state = ParseState.EXPECT_HEADERS
            elif self.state is ParseState.EXPECT_HEADERS:
                crlf = buf.find_crlf()
                if crlf is None:
                    return True
                line = buf.peek()[:crlf]
                name, colon, value = line.partition(b":")
                if colon:
                    self.request.add_header(name.decode("latin-1"), value.decode("latin-1"))
                else:
                    self.state = ParseState.EXPECT_BODY
                buf.retrieve_until(crlf + _CRLF_LEN)
            elif self.state is ParseState.EXPECT_BODY:
                # Request bodies are not read.
                self.state = ParseState.GOT_ALL
                return True
            else:
                return True

    def got_all(self) -> bool:
        return self.state is ParseState.GOT_ALL

    def reset(self) -> None:
        self.state = ParseState.EXPECT_REQUEST_LINE
        self.request.reset()

    def _process_request_line(self, line: bytes) -> bool:
        method, space, rest = line.partition(b" ")
        if not space or not self.request.set_method(method.decode("latin-1")):
            return False
        path, space, version = rest.partition(b" ")
        if not space:
            return False
        self.request.path = path.decode("latin-1")
        if len(version) != len(_VERSION_PREFIX) + 1 or not version.startswith(_VERSION_PREFIX):
            return False
        minor = version[-1:]
        if minor == b"1":
            self.request.version = Version.HTTP11
        elif minor == b"0":
            self.request.version = Version.HTTP10
        else:
            return False
        return True