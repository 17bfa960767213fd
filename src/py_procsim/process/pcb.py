"""Process Control Block (PCB).

The PCB is the saved state of one simulated process: its identity,
its program, where it is in that program, its register value, and its
lifecycle state.  It lives in a slot of the process table and is only
meaningful while the process has not terminated.

Processes follow a strict state machine — each transition method
(dispatch, block, unblock, terminate) enforces that the process is in
the correct source state before moving it.

State machine::

    (free) → READY ⇄ RUNNING → TERMINATED (free)
               ↑        ↓
               BLOCKED ←┘

Slots start TERMINATED, which doubles as "free".  ``spawn`` moves a
free slot straight to READY (a forked child) or RUNNING (init).
"""

from __future__ import annotations

from enum import StrEnum

from py_procsim.program import Program


class ProcessState(StrEnum):
    """Lifecycle states of a simulated process.

    - READY: waiting in the ready queue for the CPU.
    - RUNNING: loaded into the CPU.
    - BLOCKED: waiting in the blocked queue for an unblock command.
    - TERMINATED: finished; the slot is free for reuse.
    """

    READY = "ready"
    RUNNING = "running"
    BLOCKED = "blocked"
    TERMINATED = "terminated"


class ProcessControlBlock:
    """One slot's worth of process state.

    ``priority`` and ``time_used`` are carried and reported but never
    consulted by scheduling or accounting.
    """

    def __init__(self) -> None:
        """Create a free (TERMINATED) slot."""
        self.pid: int = -1
        self.parent_pid: int | None = None
        self.program: Program = Program()
        self.program_counter: int = 0
        self.value: int = 0
        self.priority: int = 0
        self.state: ProcessState = ProcessState.TERMINATED
        self.start_time: int = 0
        self.time_used: int = 0

    @property
    def is_free(self) -> bool:
        """Return True if the slot holds no live process."""
        return self.state is ProcessState.TERMINATED

    def spawn(
        self,
        *,
        pid: int,
        parent_pid: int | None,
        program: Program,
        start_time: int,
        program_counter: int = 0,
        value: int = 0,
        priority: int = 0,
        state: ProcessState = ProcessState.READY,
    ) -> None:
        """Fill a free slot with a new process.

        Args:
            pid: The new process's unique identifier.
            parent_pid: PID of the creating process, or None for init.
            program: The program the process owns.
            start_time: Tick at which the process was created.
            program_counter: Index of the first instruction to run.
            value: Initial register value.
            priority: Carried scheduling priority.
            state: READY for forked children, RUNNING for init.

        Raises:
            RuntimeError: If the slot already holds a live process.

        """
        if not self.is_free:
            msg = f"Cannot spawn: slot holds process {self.pid} ({self.state})"
            raise RuntimeError(msg)
        self.pid = pid
        self.parent_pid = parent_pid
        self.program = program
        self.program_counter = program_counter
        self.value = value
        self.priority = priority
        self.state = state
        self.start_time = start_time
        self.time_used = 0

    def _transition(self, action: str, expected: ProcessState, target: ProcessState) -> None:
        """Enforce a state transition.

        Raises:
            RuntimeError: If the process is not in the expected state.

        """
        if self.state is not expected:
            msg = f"Cannot {action}: process {self.pid} is {self.state}, expected {expected}"
            raise RuntimeError(msg)
        self.state = target

    def dispatch(self) -> None:
        """Transition READY → RUNNING."""
        self._transition("dispatch", ProcessState.READY, ProcessState.RUNNING)

    def block(self, *, program_counter: int, value: int) -> None:
        """Transition RUNNING → BLOCKED, saving the CPU registers."""
        self._transition("block", ProcessState.RUNNING, ProcessState.BLOCKED)
        self.program_counter = program_counter
        self.value = value

    def unblock(self) -> None:
        """Transition BLOCKED → READY."""
        self._transition("unblock", ProcessState.BLOCKED, ProcessState.READY)

    def terminate(self) -> None:
        """Transition RUNNING → TERMINATED, freeing the slot."""
        self._transition("terminate", ProcessState.RUNNING, ProcessState.TERMINATED)

    def __repr__(self) -> str:
        """Return a debug-friendly representation."""
        return f"ProcessControlBlock(pid={self.pid}, state={self.state})"
