"""Read-only snapshots of the simulation state.

A snapshot is an immutable copy of everything the print command shows:
the clock, the running slot, both queues, and one row per live slot.
Taking a snapshot never changes the simulation.

``format_snapshot`` renders the classic text report::

    Current system state at time 3:
    Running process: 0
    Ready queue: 1
    Blocked queue:
    PCB 0: PID=0, ParentPID=-1, PC=2, Value=5, State=RUNNING, ...
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any

from py_procsim.process.pcb import ProcessState

_NO_PROCESS = -1


@dataclass(frozen=True)
class PcbView:
    """One live slot as seen at snapshot time."""

    slot: int
    pid: int
    parent_pid: int | None
    program_counter: int
    value: int
    state: ProcessState
    priority: int
    start_time: int
    time_used: int


@dataclass(frozen=True)
class Snapshot:
    """The whole simulation as seen at one tick."""

    tick: int
    running: int | None
    ready: tuple[int, ...]
    blocked: tuple[int, ...]
    processes: tuple[PcbView, ...]

    def to_dict(self) -> dict[str, Any]:
        """Return a JSON-serialisable representation."""
        data = asdict(self)
        data["ready"] = list(self.ready)
        data["blocked"] = list(self.blocked)
        data["processes"] = [
            {**row, "state": str(view.state)}
            for row, view in zip(data["processes"], self.processes, strict=True)
        ]
        return data


def _format_queue(slots: tuple[int, ...]) -> str:
    return " ".join(str(s) for s in slots)


def format_snapshot(snapshot: Snapshot) -> str:
    """Render a snapshot as the multi-line state report.

    A missing running slot or parent PID is shown as ``-1``.
    """
    running = snapshot.running if snapshot.running is not None else _NO_PROCESS
    lines = [
        f"Current system state at time {snapshot.tick}:",
        f"Running process: {running}",
        f"Ready queue: {_format_queue(snapshot.ready)}".rstrip(),
        f"Blocked queue: {_format_queue(snapshot.blocked)}".rstrip(),
    ]
    for view in snapshot.processes:
        parent = view.parent_pid if view.parent_pid is not None else _NO_PROCESS
        lines.append(
            f"PCB {view.slot}: PID={view.pid}, ParentPID={parent}, "
            f"PC={view.program_counter}, Value={view.value}, "
            f"State={view.state.upper()}, Priority={view.priority}, "
            f"StartTime={view.start_time}, TimeUsed={view.time_used}"
        )
    return "\n".join(lines)
