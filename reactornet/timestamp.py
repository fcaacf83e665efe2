"""Microsecond-resolution UTC timestamps."""

from __future__ import annotations

import time
from dataclasses import dataclass

MICROSECONDS_PER_SECOND = 1_000_000


def _split(micro_seconds: int) -> tuple[int, int]:
    """Split microseconds into seconds and remainder, truncating toward zero."""
    seconds = abs(micro_seconds) // MICROSECONDS_PER_SECOND
    if micro_seconds < 0:
        seconds = -seconds
    return seconds, micro_seconds - seconds * MICROSECONDS_PER_SECOND


@dataclass(frozen=True, order=True)
class Timestamp:
    """A point in time counted in microseconds since the Unix epoch."""

    micro_seconds_since_epoch: int = 0

    @classmethod
    def now(cls) -> Timestamp:
        """Return the current time."""
        return cls(time.time_ns() // 1000)

    @classmethod
    def invalid(cls) -> Timestamp:
        """Return a timestamp that reports itself as not valid."""
        return cls()

    def valid(self) -> bool:
        return self.micro_seconds_since_epoch > 0

    def seconds_since_epoch(self) -> int:
        return _split(self.micro_seconds_since_epoch)[0]

    def to_string(self) -> str:
        """Format as ``seconds.microseconds``."""
        seconds, micro = _split(self.micro_seconds_since_epoch)
        return f"{seconds}.{micro:06d}"

    def to_formatted_string(self, show_microseconds: bool = True) -> str:
        """Format as local ``YYYY.MM.DD-HH:MM:SS[.uuuuuu]``."""
        seconds, micro = _split(self.micro_seconds_since_epoch)
        tm = time.localtime(seconds)
        text = (
            f"{tm.tm_year:4d}.{tm.tm_mon:02d}.{tm.tm_mday:02d}-"
            f"{tm.tm_hour:02d}:{tm.tm_min:02d}:{tm.tm_sec:02d}"
        )
        if show_microseconds:
            text += f".{micro:06d}"
        return text


def time_difference(high: Timestamp, low: Timestamp) -> float:
    """Return ``high - low`` in seconds."""
    diff = high.micro_seconds_since_epoch - low.micro_seconds_since_epoch
    return diff / MICROSECONDS_PER_SECOND


def add_time(timestamp: Timestamp, seconds: float) -> Timestamp:
    """Return ``timestamp`` moved forward by ``seconds``."""
    delta = int(seconds * MICROSECONDS_PER_SECOND)
    return Timestamp(timestamp.micro_seconds_since_epoch + delta)