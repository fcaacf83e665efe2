"""An HTTP response and its serialisation into a buffer."""

from __future__ import annotations

import enum
from typing import Union

from reactornet.buffer import Buffer
from reactornet.http_request import Version


class StatusCode(enum.IntEnum):
    INVALID = 0
    OK = 200
    MOVED_PERMANENTLY = 301
    BAD_REQUEST = 400
    NOT_FOUND = 404


class HttpResponse:
    """Status, headers and body; ``close`` drops the connection after sending."""

    def __init__(self, close: bool, version: Union[Version, int] = Version.HTTP11) -> None:
        self.close_connection = close
        self.version = version
        self.status_code: Union[StatusCode, int] = StatusCode.INVALID
        self.status_message = ""
        self.headers: dict[str, str] = {}
        self.body: Union[str, bytes] = b""

    def set_content_type(self, content_type: str) -> None:
        self.add_header("Content-Type", content_type)

    def add_header(self, field: str, value: str) -> None:
        self.headers[field] = value

    def append_to_buffer(self, buffer: Buffer) -> None:
        """Write the status line, headers and body to ``buffer``."""
        body = self.body.encode("utf-8") if isinstance(self.body, str) else bytes(self.body)
        buffer.append(
            f"HTTP/1.{int(self.version)} {int(self.status_code)} {self.status_message}\r\n"
        )
        if self.close_connection:
            # The peer sees the end of the body when the connection closes.
            buffer.append("Connection: close\r\n")
        else:
            buffer.append(f"Content-Length: {len(body)}\r\n")
            buffer.append("Connection: Keep-Alive\r\n")
        for field, value in sorted(self.headers.items()):
            buffer.append(f"{field}: {value}\r\n")
        buffer.append("\r\n")
        buffer.append(body)