"""A channel ties one file descriptor to the events watched and their handlers."""

from __future__ import annotations

import enum
from typing import Any, Callable, Optional

EventCallback = Callable[[], None]
TimerCallback = Callable[[], None]
ThreadInitCallback = Callable[[Any], None]
ConnectionCallback = Callable[[Any], None]
CloseCallback = Callable[[Any], None]
MessageCallback = Callable[[Any, Any, Any], None]


class Event(enum.IntFlag):
    """Readiness flags, with the values the kernel's epoll uses."""

    NONE = 0
    IN = 0x001
    PRI = 0x002
    OUT = 0x004
    ERR = 0x008
    HUP = 0x010
    RDHUP = 0x2000


NONE_EVENT = Event.NONE
READ_EVENT = Event.IN | Event.PRI
WRITE_EVENT = Event.OUT

_DESCRIBED = (
    (Event.IN, "IN"),
    (Event.PRI, "PRI"),
    (Event.OUT, "OUT"),
    (Event.HUP, "HUP"),
    (Event.RDHUP, "RDHUP"),
    (Event.ERR, "ERR"),
)


def _describe(flags: Event) -> str:
    return "".join(f"{name} " for flag, name in _DESCRIBED if flags & flag)


class Channel:
    """Watches ``fd`` for events through its owning loop and dispatches them."""

    def __init__(self, loop: Any, fd: int) -> None:
        from reactornet.poller import ChannelState

        self.loop = loop
        self.fd = fd
        self.events = NONE_EVENT
        self.revents = NONE_EVENT
        self.state = ChannelState.NEW
        self.event_handling = False
        self.read_callback: Optional[EventCallback] = None
        self.write_callback: Optional[EventCallback] = None
        self.close_callback: Optional[EventCallback] = None
        self.error_callback: Optional[EventCallback] = None

    def handle_event(self) -> None:
        """Run the callbacks that match the events last reported."""
        self.event_handling = True
        try:
            revents = self.revents
            if (revents & Event.HUP) and not (revents & Event.IN):
                if self.close_callback:
                    self.close_callback()
            if revents & Event.ERR and self.fd > 0:
                if self.error_callback:
                    self.error_callback()
            if revents & (Event.IN | Event.PRI | Event.RDHUP):
                if self.read_callback:
                    self.read_callback()
            if revents & Event.OUT:
                if self.write_callback:
                    self.write_callback()
        finally:
            self.event_handling = False

    def enable_reading(self) -> None:
        self.events |= READ_EVENT
        self._update()

    def disable_reading(self) -> None:
        self.events &= ~READ_EVENT
        self._update()

    def enable_writing(self) -> None:
        self.events |= WRITE_EVENT
        self._update()

    def disable_writing(self) -> None:
        self.events &= ~WRITE_EVENT
        self._update()

    def disable_all(self) -> None:
        self.events = NONE_EVENT
        self._update()

    def is_writing(self) -> bool:
        return bool(self.events & WRITE_EVENT)

    def is_none_event(self) -> bool:
        return self.events == NONE_EVENT

    def remove(self) -> None:
        """Detach from the loop; every event must be disabled first."""
        if not self.is_none_event():
            raise RuntimeError("cannot remove a channel that still watches events")
        self.loop.remove_channel(self)

    def events_to_string(self) -> str:
        if self.events == NONE_EVENT:
            return "null "
        return _describe(self.events)

    def revents_to_string(self) -> str:
        return f"fd={self.fd},revents: {_describe(self.revents)}"

    def _update(self) -> None:
        self.loop.update_channel(self)