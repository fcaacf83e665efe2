"""I/O multiplexing over epoll, or poll where epoll is missing."""

from __future__ import annotations

import enum
import select
from typing import TYPE_CHECKING, Any, Optional

from reactornet.channel import Event

if TYPE_CHECKING:
    from reactornet.channel import Channel


class ChannelState(enum.IntEnum):
    """Where a channel stands with the poller."""

    NEW = -1  # never watched, not tracked
    ADDED = 1  # watched and tracked
    DELETED = 2  # no longer watched, still tracked


_USE_EPOLL = hasattr(select, "epoll")
_PREFIX: Optional[str] = "EPOLL" if _USE_EPOLL else ("POLL" if hasattr(select, "poll") else None)

_FLAG_NAMES = (
    (Event.IN, "IN"),
    (Event.PRI, "PRI"),
    (Event.OUT, "OUT"),
    (Event.ERR, "ERR"),
    (Event.HUP, "HUP"),
    (Event.RDHUP, "RDHUP"),
)
_FLAGS = (
    [(event, getattr(select, _PREFIX + name, 0)) for event, name in _FLAG_NAMES]
    if _PREFIX is not None
    else []
)
_FLAGS = [(event, flag) for event, flag in _FLAGS if flag]

_ADD, _MOD, _DEL = "add", "mod", "del"
_INIT_EVENT_LIST_SIZE = 16


def _to_backend(events: Event) -> int:
    mask = 0
    for event, flag in _FLAGS:
        if events & event:
            mask |= flag
    return mask


def _from_backend(mask: int) -> Event:
    events = Event.NONE
    for event, flag in _FLAGS:
        if mask & flag:
            events |= event
    return events


class Poller:
    """Keeps the kernel's interest set in step with the loop's channels."""

    def __init__(self, loop: Any) -> None:
        if _PREFIX is None:
            raise OSError("neither epoll nor poll is available on this platform")
        self._loop = loop
        self._poller: Any = select.epoll() if _USE_EPOLL else select.poll()
        self._max_events = _INIT_EVENT_LIST_SIZE
        self._channels: dict[int, Channel] = {}

    def poll(self, timeout_ms: int) -> list[Channel]:
        """Wait up to ``timeout_ms`` (negative: forever) and return the ready channels."""
        if _USE_EPOLL:
            timeout = timeout_ms / 1000 if timeout_ms >= 0 else -1
            ready = self._poller.poll(timeout, self._max_events)
        else:
            ready = self._poller.poll(timeout_ms if timeout_ms >= 0 else None)

        active = []
        for fd, mask in ready:
            channel = self._channels.get(fd)
            if channel is None:
                continue
            channel.revents = _from_backend(mask)
            active.append(channel)

        if len(ready) >= self._max_events:
            self._max_events *= 2
        return active

    def update_channel(self, channel: Channel) -> None:
        """Start, change or stop watching ``channel`` according to its events."""
        self._loop.assert_in_loop_thread()
        fd = channel.fd
        state = channel.state

        if state in (ChannelState.NEW, ChannelState.DELETED):
            if state == ChannelState.NEW:
                if fd in self._channels:
                    raise RuntimeError(f"fd {fd} already has a channel")
                self._channels[fd] = channel
            elif self._channels.get(fd) is not channel:
                raise RuntimeError(f"channel for fd {fd} is not tracked")
            channel.state = ChannelState.ADDED
            self._control(_ADD, channel)
            return

        if self._channels.get(fd) is not channel:
            raise RuntimeError(f"channel for fd {fd} is not tracked")
        if channel.is_none_event():
            self._control(_DEL, channel)
            channel.state = ChannelState.DELETED
        else:
            self._control(_MOD, channel)

    def remove_channel(self, channel: Channel) -> None:
        """Forget ``channel``; it must watch no events."""
        self._loop.assert_in_loop_thread()
        fd = channel.fd
        state = channel.state
        if not channel.is_none_event():
            raise RuntimeError("cannot remove a channel that still watches events")
        if self._channels.get(fd) is not channel:
            raise RuntimeError(f"channel for fd {fd} is not tracked")
        if state not in (ChannelState.ADDED, ChannelState.DELETED):
            raise RuntimeError(f"channel for fd {fd} is in state {state.name}")

        del self._channels[fd]
        if state == ChannelState.ADDED:
            self._control(_DEL, channel)
        channel.state = ChannelState.NEW

    def close(self) -> None:
        close = getattr(self._poller, "close", None)
        if close is not None:
            close()

    def __enter__(self) -> Poller:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    def _control(self, operation: str, channel: Channel) -> None:
        mask = _to_backend(channel.events)
        if operation == _ADD:
            self._poller.register(channel.fd, mask)
        elif operation == _MOD:
            self._poller.modify(channel.fd, mask)
        else:
            try:
                self._poller.unregister(channel.fd)
            except (OSError, KeyError):
                pass