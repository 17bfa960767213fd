"""Process table — a fixed-capacity arena of PCB slots.

The table has N slots indexed ``0..N-1``.  A slot is free while its PCB
is TERMINATED; allocation takes the lowest-numbered free slot, so slot
indices are recycled as processes come and go.

PIDs are a separate matter: they come from a counter owned by the table
and are never reused, even when slot indices are.  Slot 0 is reserved
for init, which always gets PID 0.
"""

from __future__ import annotations

from itertools import count
from typing import TYPE_CHECKING

from py_procsim.process.pcb import ProcessControlBlock

if TYPE_CHECKING:
    from collections.abc import Iterator

DEFAULT_TABLE_CAPACITY = 10
INIT_SLOT = 0
INIT_PID = 0


class NoFreeSlotError(Exception):
    """Raised when every slot of the process table is in use."""


class ProcessTable:
    """Fixed-capacity slot storage plus the PID counter."""

    def __init__(self, *, capacity: int = DEFAULT_TABLE_CAPACITY) -> None:
        """Create a table of free slots.

        Args:
            capacity: Number of slots (must be at least 1 for init).

        Raises:
            ValueError: If capacity is less than 1.

        """
        if capacity < 1:
            msg = "capacity must be at least 1"
            raise ValueError(msg)
        self._slots: list[ProcessControlBlock] = [ProcessControlBlock() for _ in range(capacity)]
        self._pids = count(start=INIT_PID + 1)

    @property
    def capacity(self) -> int:
        """Return the number of slots."""
        return len(self._slots)

    def __getitem__(self, slot: int) -> ProcessControlBlock:
        """Return the PCB stored in *slot*."""
        return self._slots[slot]

    def __iter__(self) -> Iterator[ProcessControlBlock]:
        """Iterate over every slot, free or not."""
        return iter(self._slots)

    def allocate(self) -> int:
        """Return the index of the first free slot.

        The slot stays free until the caller spawns a process into it.

        Raises:
            NoFreeSlotError: If every slot holds a live process.

        """
        for index, pcb in enumerate(self._slots):
            if pcb.is_free:
                return index
        msg = "No available PCB entry for forking process."
        raise NoFreeSlotError(msg)

    def next_pid(self) -> int:
        """Draw the next PID from the monotonically increasing counter."""
        return next(self._pids)

    def live_slots(self) -> list[int]:
        """Return the indices of slots holding a live process."""
        return [i for i, pcb in enumerate(self._slots) if not pcb.is_free]
