"""An HTTP request: method, path, version and headers."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field

_C_WHITESPACE = " \t\n\v\f\r"


class Method(enum.Enum):
    INVALID = 0
    GET = 1
    POST = 2
    HEAD = 3
    PUT = 4
    DELETE = 5


class Version(enum.IntEnum):
    UNKNOWN = -1
    HTTP10 = 0
    HTTP11 = 1


_METHODS_BY_NAME = {
    "GET": Method.GET,
    "POST": Method.POST,
    "HEAD": Method.HEAD,
    "PUT": Method.PUT,
    "DELETE": Method.DELETE,
}
_VERSION_NAMES = {Version.HTTP10: "HTTP/1.0", Version.HTTP11: "HTTP/1.1"}


@dataclass
class HttpRequest:
    method: Method = Method.INVALID
    path: str = ""
    version: Version = Version.UNKNOWN
    headers: dict[str, str] = field(default_factory=dict)
    body: str = ""

    def set_method(self, method: str) -> bool:
        """Set the method from its name; returns False for an unknown one."""
        self.method = _METHODS_BY_NAME.get(method, Method.INVALID)
        return self.method is not Method.INVALID

    def method_to_string(self) -> str:
        return "UNKNOWN" if self.method is Method.INVALID else self.method.name

    def version_to_string(self) -> str:
        return _VERSION_NAMES.get(self.version, "UNKNOWN")

    def add_header(self, field: str, value: str) -> None:
        """Store a header, trimming whitespace around the value."""
        self.headers[field] = value.strip(_C_WHITESPACE)

    def header(self, field: str) -> str:
        """Return the header's value, or an empty string."""
        return self.headers.get(field, "")

    def reset(self) -> None:
        self.method = Method.INVALID
        self.path = ""
        self.version = Version.UNKNOWN
        self.headers.clear()
        self.body = ""