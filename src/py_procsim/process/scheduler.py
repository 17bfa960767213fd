"""CPU scheduler — the ready and blocked queues and the dispatcher.

The scheduler owns queue membership.  Every state change that moves a
process between the CPU and a queue goes through one of its methods,
which edits the queue and calls the matching PCB transition together,
so a slot is only ever in the queue that matches its state.

Scheduling is First Come, First Served: a plain FIFO ready queue and no
preemption.  Once dispatched, a process keeps the CPU until it blocks
or terminates.  PCB priorities are ignored.
"""

from __future__ import annotations

from collections import deque

from py_procsim.process.pcb import ProcessState
from py_procsim.process.table import ProcessTable


class Scheduler:
    """Track the running slot and the ready/blocked FIFO queues.

    Queues hold slot indices, not PCBs — the process table owns the PCBs.
    """

    def __init__(self, *, table: ProcessTable) -> None:
        """Create a scheduler over *table* with empty queues."""
        self._table = table
        self._ready: deque[int] = deque()
        self._blocked: deque[int] = deque()
        self._running: int | None = None
        self._context_switches: int = 0

    @property
    def running(self) -> int | None:
        """Return the running slot, or None when the CPU is idle."""
        return self._running

    @property
    def ready(self) -> tuple[int, ...]:
        """Return the ready queue, front first."""
        return tuple(self._ready)

    @property
    def blocked(self) -> tuple[int, ...]:
        """Return the blocked queue, front first."""
        return tuple(self._blocked)

    @property
    def context_switches(self) -> int:
        """Return the number of dispatches performed."""
        return self._context_switches

    def start(self, slot: int) -> None:
        """Make an already RUNNING slot the running slot (used for init).

        Raises:
            RuntimeError: If the CPU is busy or the slot is not RUNNING.

        """
        if self._running is not None:
            msg = f"Cannot start slot {slot}: slot {self._running} is running"
            raise RuntimeError(msg)
        if self._table[slot].state is not ProcessState.RUNNING:
            msg = f"Cannot start slot {slot}: state is {self._table[slot].state}"
            raise RuntimeError(msg)
        self._running = slot

    def admit(self, slot: int) -> None:
        """Append a freshly spawned READY slot to the ready queue.

        Raises:
            RuntimeError: If the slot is not READY or is already queued.

        """
        if self._table[slot].state is not ProcessState.READY:
            msg = f"Cannot admit slot {slot}: state is {self._table[slot].state}, expected ready"
            raise RuntimeError(msg)
        if slot in self._ready:
            msg = f"Cannot admit slot {slot}: already in the ready queue"
            raise RuntimeError(msg)
        self._ready.append(slot)

    def dispatch(self) -> int | None:
        """Fill an idle CPU from the front of the ready queue.

        Returns:
            The newly dispatched slot, or None if the CPU was already
            busy or nothing was ready.

        """
        if self._running is not None or not self._ready:
            return None
        slot = self._ready.popleft()
        self._table[slot].dispatch()
        self._running = slot
        self._context_switches += 1
        return slot

    def block_running(self, *, program_counter: int, value: int) -> int:
        """Move the running slot to the back of the blocked queue.

        Args:
            program_counter: The CPU program counter to save.
            value: The CPU register to save.

        Returns:
            The slot that was blocked.

        """
        slot = self._require_running()
        self._table[slot].block(program_counter=program_counter, value=value)
        self._blocked.append(slot)
        self._running = None
        return slot

    def terminate_running(self) -> int:
        """Terminate the running slot, freeing it.

        Returns:
            The slot that was terminated.

        """
        slot = self._require_running()
        self._table[slot].terminate()
        self._running = None
        return slot

    def unblock(self) -> int | None:
        """Move the oldest blocked slot to the back of the ready queue.

        Returns:
            The slot that was unblocked, or None if nothing was blocked.

        """
        if not self._blocked:
            return None
        slot = self._blocked.popleft()
        self._table[slot].unblock()
        self._ready.append(slot)
        return slot

    def _require_running(self) -> int:
        """Return the running slot or raise if the CPU is idle."""
        if self._running is None:
            msg = "No process is currently running"
            raise RuntimeError(msg)
        return self._running
