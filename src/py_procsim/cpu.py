"""CPU context — the registers of whichever process is running.

On dispatch the context is loaded from the PCB.  While the process runs
the context is authoritative: the PCB's copies of the program counter
and register are stale until the process blocks and they are written
back.  On termination the context is simply discarded.

The program is held by reference, so a replace instruction that
rewrites the running program is seen by both the CPU and the PCB.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from py_procsim.process.pcb import ProcessControlBlock
    from py_procsim.program import Program


@dataclass
class CpuContext:
    """Program reference, program counter, and register of the running slot."""

    program: Program | None = None
    program_counter: int = 0
    value: int = 0

    @property
    def loaded(self) -> bool:
        """Return True if a program is loaded."""
        return self.program is not None

    def load(self, pcb: ProcessControlBlock) -> None:
        """Load the context from *pcb* (context switch in)."""
        self.program = pcb.program
        self.program_counter = pcb.program_counter
        self.value = pcb.value

    def discard(self) -> None:
        """Drop the context without saving it."""
        self.program = None
        self.program_counter = 0
        self.value = 0
