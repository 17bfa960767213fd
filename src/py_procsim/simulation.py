"""The simulation — one CPU, one clock, one process table.

The simulation owns every piece of mutable state: the process table,
the scheduler's queues, the CPU context, the clock, and the turnaround
statistics.  External commands drive it:

- ``step()`` executes one instruction of the running process, advances
  the clock, and dispatches if the CPU became idle.
- ``unblock()`` moves the oldest blocked process to the ready queue and
  dispatches.
- ``snapshot()`` returns a read-only view of the current state.

Lifecycle::

    Simulation()  →  boot(program)  →  step / unblock / snapshot ...

Every transition of a process between the CPU and a queue goes through
the scheduler, which keeps queue membership and PCB state in step.  The
simulation only decides *which* transition an instruction causes.
"""

from __future__ import annotations

from dataclasses import dataclass

from py_procsim.config import SimulatorConfig
from py_procsim.cpu import CpuContext
from py_procsim.logging import EventLog, LogLevel
from py_procsim.process.pcb import ProcessState
from py_procsim.process.scheduler import Scheduler
from py_procsim.process.table import INIT_PID, INIT_SLOT, NoFreeSlotError, ProcessTable
from py_procsim.program import Instruction, LoadError, Opcode, Program, ProgramLoader
from py_procsim.snapshot import PcbView, Snapshot
from py_procsim.stats import TurnaroundStats

NO_PROCESS_RUNNING = "No processes are running"


@dataclass(frozen=True)
class StepReport:
    """What a single step did.

    Attributes:
        tick: Clock value at which the step ran (before it advanced).
        slot: The slot that executed, or None if the CPU was idle.
        pid: PID of the process that executed, or None if idle.
        instruction: The instruction executed, or None for an idle step
            or an implicit end of program.
        message: Human-readable description of the step.

    """

    tick: int
    slot: int | None
    pid: int | None
    instruction: Instruction | None
    message: str

    @property
    def idle(self) -> bool:
        """Return True if no process was running."""
        return self.slot is None


class Simulation:
    """A single-CPU, non-preemptive process management simulation."""

    def __init__(
        self,
        *,
        config: SimulatorConfig | None = None,
        loader: ProgramLoader | None = None,
        events: EventLog | None = None,
    ) -> None:
        """Create an unbooted simulation.

        Args:
            config: Simulator settings (defaults if None).
            loader: Program loader used by replace instructions.
            events: Event log (a fresh one if None).

        """
        self._config = config if config is not None else SimulatorConfig()
        self._loader = (
            loader
            if loader is not None
            else ProgramLoader(max_length=self._config.max_program_length)
        )
        self._events = events if events is not None else EventLog()
        self._table = ProcessTable(capacity=self._config.table_capacity)
        self._scheduler = Scheduler(table=self._table)
        self._cpu = CpuContext()
        self._stats = TurnaroundStats()
        self._tick: int = 0
        self._booted: bool = False

    # -- Read-only accessors ---------------------------------------------------

    @property
    def config(self) -> SimulatorConfig:
        """Return the simulator settings."""
        return self._config

    @property
    def loader(self) -> ProgramLoader:
        """Return the program loader."""
        return self._loader

    @property
    def events(self) -> EventLog:
        """Return the event log."""
        return self._events

    @property
    def table(self) -> ProcessTable:
        """Return the process table."""
        return self._table

    @property
    def scheduler(self) -> Scheduler:
        """Return the scheduler."""
        return self._scheduler

    @property
    def cpu(self) -> CpuContext:
        """Return the CPU context."""
        return self._cpu

    @property
    def stats(self) -> TurnaroundStats:
        """Return the turnaround statistics."""
        return self._stats

    @property
    def tick(self) -> int:
        """Return the simulation clock."""
        return self._tick

    @property
    def booted(self) -> bool:
        """Return True once the init process has been loaded."""
        return self._booted

    @property
    def average_turnaround(self) -> float:
        """Return the mean turnaround time, or 0.0 if nothing has terminated."""
        return self._stats.average

    # -- Lifecycle -------------------------------------------------------------

    def boot(self, program: Program) -> None:
        """Load *program* as init in slot 0 and give it the CPU.

        Raises:
            RuntimeError: If the simulation has already been booted.

        """
        if self._booted:
            msg = "Simulation already booted"
            raise RuntimeError(msg)
        init = self._table[INIT_SLOT]
        init.spawn(
            pid=INIT_PID,
            parent_pid=None,
            program=program,
            start_time=self._tick,
            state=ProcessState.RUNNING,
        )
        self._scheduler.start(INIT_SLOT)
        self._cpu.load(init)
        self._booted = True
        self._log(
            LogLevel.INFO,
            f"Init loaded with {len(program)} instructions",
            source="boot",
            slot=INIT_SLOT,
        )

    # -- Commands --------------------------------------------------------------

    def step(self) -> StepReport:
        """Execute one instruction of the running process.

        The program counter advances before the instruction takes effect.
        A process that runs past its last instruction ends as if it had
        executed ``E``.  The clock always advances by one.

        Returns:
            A report of what the step did.

        """
        self._require_booted()
        tick = self._tick
        slot = self._scheduler.running

        if slot is None:
            self._log(LogLevel.WARNING, NO_PROCESS_RUNNING, source="cpu")
            self._tick += 1
            return StepReport(
                tick=tick, slot=None, pid=None, instruction=None, message=NO_PROCESS_RUNNING
            )

        pid = self._table[slot].pid
        program = self._cpu.program
        assert program is not None  # noqa: S101

        instruction: Instruction | None = None
        if self._cpu.program_counter < len(program):
            instruction = program[self._cpu.program_counter]
            self._cpu.program_counter += 1
            message = self._execute(slot, instruction)
        else:
            self._end(slot)
            message = f"Time: {tick}, Process {slot} reached end of program without E operation"
            self._log(LogLevel.WARNING, message, source="cpu", slot=slot)

        self._tick += 1
        self._dispatch()
        return StepReport(tick=tick, slot=slot, pid=pid, instruction=instruction, message=message)

    def unblock(self) -> int | None:
        """Move the oldest blocked process to the ready queue, then dispatch.

        The dispatch attempt happens even when nothing was blocked.

        Returns:
            The slot that was unblocked, or None if the blocked queue was empty.

        """
        self._require_booted()
        slot = self._scheduler.unblock()
        if slot is not None:
            self._log(LogLevel.DEBUG, f"Process {slot} unblocked", source="scheduler", slot=slot)
        self._dispatch()
        return slot

    def snapshot(self) -> Snapshot:
        """Return an immutable view of the current state."""
        views = tuple(
            PcbView(
                slot=index,
                pid=pcb.pid,
                parent_pid=pcb.parent_pid,
                program_counter=pcb.program_counter,
                value=pcb.value,
                state=pcb.state,
                priority=pcb.priority,
                start_time=pcb.start_time,
                time_used=pcb.time_used,
            )
            for index, pcb in enumerate(self._table)
            if not pcb.is_free
        )
        return Snapshot(
            tick=self._tick,
            running=self._scheduler.running,
            ready=self._scheduler.ready,
            blocked=self._scheduler.blocked,
            processes=views,
        )

    # -- Instruction semantics -------------------------------------------------

    def _execute(self, slot: int, instruction: Instruction) -> str:
        """Apply one fetched instruction and return its report message."""
        prefix = f"Time: {self._tick}, Process {slot}"
        message = f"{prefix} executed instruction {instruction}"
        match instruction.opcode:
            case Opcode.SET:
                self._cpu.value = instruction.number
            case Opcode.ADD:
                self._cpu.value += instruction.number
            case Opcode.DECREMENT:
                self._cpu.value -= instruction.number
            case Opcode.BLOCK:
                self._scheduler.block_running(
                    program_counter=self._cpu.program_counter,
                    value=self._cpu.value,
                )
                self._cpu.discard()
            case Opcode.END:
                self._end(slot)
            case Opcode.FORK:
                message = self._fork(slot, instruction.number)
            case Opcode.REPLACE:
                message = self._replace(slot, instruction.path)
        self._log(LogLevel.INFO, message, source="cpu", slot=slot)
        return message

    def _end(self, slot: int) -> None:
        """Terminate the running process and record its turnaround."""
        pcb = self._table[slot]
        turnaround = self._stats.record(start_time=pcb.start_time, end_tick=self._tick)
        self._scheduler.terminate_running()
        self._cpu.discard()
        self._log(
            LogLevel.DEBUG,
            f"Process {slot} (pid {pcb.pid}) terminated, turnaround {turnaround}",
            source="scheduler",
            slot=slot,
        )

    def _fork(self, slot: int, offset: int) -> str:
        """Create a child that resumes after the fork; skip the parent by *offset*.

        The child copies the live CPU registers, which already point past
        the fork instruction.
        """
        parent = self._table[slot]
        try:
            child_slot = self._table.allocate()
        except NoFreeSlotError as e:
            self._log(LogLevel.WARNING, str(e), source="cpu", slot=slot)
            return f"Time: {self._tick}, Process {slot} could not fork: {e}"

        child = self._table[child_slot]
        child.spawn(
            pid=self._table.next_pid(),
            parent_pid=parent.pid,
            program=parent.program.copy(),
            program_counter=self._cpu.program_counter,
            value=self._cpu.value,
            priority=parent.priority,
            start_time=self._tick,
        )
        self._scheduler.admit(child_slot)
        self._cpu.program_counter = max(0, self._cpu.program_counter + offset)
        return f"Time: {self._tick}, New Process {child.pid} created, Process {slot} continues"

    def _replace(self, slot: int, path: str) -> str:
        """Replace the running program with the one stored at *path*.

        On failure the program is left empty and the counter advances,
        unless the config asks to keep the old program.
        """
        program = self._cpu.program
        assert program is not None  # noqa: S101
        previous = program.copy()
        program.clear()
        try:
            replacement = self._loader.load(path)
        except LoadError as e:
            if self._config.revert_on_failed_replace:
                program.replace_with(previous)
            else:
                self._cpu.program_counter += 1
            self._log(LogLevel.ERROR, f"Replace failed: {e}", source="loader", slot=slot)
            return f"Time: {self._tick}, Process {slot} failed to replace program: {e}"
        program.replace_with(replacement)
        self._cpu.program_counter = 0
        return f"Time: {self._tick}, Process {slot} replaced with new program"

    # -- Helpers ---------------------------------------------------------------

    def _dispatch(self) -> None:
        """Give an idle CPU to the front of the ready queue, if any."""
        slot = self._scheduler.dispatch()
        if slot is not None:
            self._cpu.load(self._table[slot])
            self._log(LogLevel.DEBUG, f"Process {slot} dispatched", source="scheduler", slot=slot)

    def _log(
        self, level: LogLevel, message: str, *, source: str, slot: int | None = None
    ) -> None:
        pid = None if slot is None else self._table[slot].pid
        self._events.record(level, message, source=source, tick=self._tick, slot=slot, pid=pid)

    def _require_booted(self) -> None:
        """Raise if no init process has been loaded."""
        if not self._booted:
            msg = "Simulation is not booted"
            raise RuntimeError(msg)
