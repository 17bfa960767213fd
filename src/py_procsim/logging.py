"""The simulator's event log.

Every step, dispatch, unblock, and failure is recorded as an event
stamped with the clock value and, when a process was involved, the slot
and PID it concerned.  This is the simulator's ``dmesg``: the console
prints what the user asked for, and the event log keeps the full trace
so it can be queried afterwards (the web UI serves it at ``/api/log``).

Queries narrow the trace along the axes a scheduling trace is usually
read by: severity, the component that spoke, one slot's history, or a
window of ticks.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Iterator


class LogLevel(IntEnum):
    """Event severities, ordered so ``min_level`` filtering can compare them."""

    DEBUG = 0
    INFO = 1
    WARNING = 2
    ERROR = 3


@dataclass(frozen=True)
class Event:
    """One recorded simulator event.

    Attributes:
        tick: Clock value when the event happened.
        level: Severity.
        source: Component that recorded it ("boot", "cpu", "scheduler",
            or "loader").
        message: Human-readable description.
        slot: Table slot of the process concerned, or None.
        pid: PID of the process concerned, or None.

    """

    tick: int
    level: LogLevel
    source: str
    message: str
    slot: int | None = None
    pid: int | None = None

    def __str__(self) -> str:
        """Format as ``t=N LEVEL source [slot S pid P]: message``."""
        where = "" if self.slot is None else f" [slot {self.slot} pid {self.pid}]"
        return f"t={self.tick} {self.level.name} {self.source}{where}: {self.message}"

    def to_dict(self) -> dict[str, Any]:
        """Return a JSON-friendly dict of the event."""
        return {
            "tick": self.tick,
            "level": self.level.name,
            "source": self.source,
            "message": self.message,
            "slot": self.slot,
            "pid": self.pid,
        }


class EventLog:
    """Append-only trace of simulator events, in the order they happened."""

    def __init__(self) -> None:
        """Create an empty log."""
        self._events: list[Event] = []

    def __len__(self) -> int:
        """Return the number of recorded events."""
        return len(self._events)

    def __iter__(self) -> Iterator[Event]:
        """Iterate over the events, oldest first."""
        return iter(tuple(self._events))

    def record(  # noqa: PLR0913
        self,
        level: LogLevel,
        message: str,
        *,
        source: str,
        tick: int,
        slot: int | None = None,
        pid: int | None = None,
    ) -> Event:
        """Append an event and return it."""
        event = Event(tick=tick, level=level, source=source, message=message, slot=slot, pid=pid)
        self._events.append(event)
        return event

    def query(  # noqa: PLR0913
        self,
        *,
        min_level: LogLevel = LogLevel.DEBUG,
        source: str | None = None,
        slot: int | None = None,
        since: int | None = None,
        until: int | None = None,
    ) -> list[Event]:
        """Return the events matching every given criterion.

        Args:
            min_level: Drop events below this severity.
            source: Keep only events from this component.
            slot: Keep only events about the process in this slot.
            since: Keep only events at or after this tick.
            until: Keep only events at or before this tick.

        Returns:
            The matching events, oldest first.

        """
        return [
            e
            for e in self._events
            if e.level >= min_level
            and (source is None or e.source == source)
            and (slot is None or e.slot == slot)
            and (since is None or e.tick >= since)
            and (until is None or e.tick <= until)
        ]
