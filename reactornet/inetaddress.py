"""IPv4 socket addresses."""

from __future__ import annotations

import socket
from dataclasses import dataclass

ANY_ADDRESS = "0.0.0.0"


@dataclass(frozen=True)
class InetAddress:
    """An IPv4 address and port; without an ``ip`` it names every interface."""

    port: int
    ip: str = ANY_ADDRESS

    def __post_init__(self) -> None:
        if not 0 <= self.port <= 0xFFFF:
            raise ValueError(f"port out of range: {self.port}")
        try:
            packed = socket.inet_pton(socket.AF_INET, self.ip)
        except OSError as exc:
            raise ValueError(f"not an IPv4 address: {self.ip!r}") from exc
        object.__setattr__(self, "ip", socket.inet_ntop(socket.AF_INET, packed))

    @classmethod
    def from_sockaddr(cls, addr: tuple[str, int]) -> InetAddress:
        """Build from a ``(host, port)`` pair as returned by the socket module."""
        host, port = addr[0], addr[1]
        return cls(port, host)

    def to_ip_port(self) -> str:
        return f"{self.ip}:{self.port}"

    def to_ip(self) -> str:
        return self.ip

    def sockaddr(self) -> tuple[str, int]:
        """Return the ``(host, port)`` pair the socket module takes."""
        return (self.ip, self.port)