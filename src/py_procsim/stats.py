"""Turnaround-time statistics.

Turnaround is how long a process existed: the tick on which it
terminated, plus one for the terminating instruction itself, minus the
tick on which it was created.
"""

from dataclasses import dataclass


@dataclass
class TurnaroundStats:
    """Accumulate turnaround times over terminated processes."""

    total: int = 0
    terminated: int = 0

    def record(self, *, start_time: int, end_tick: int) -> int:
        """Record one termination and return its turnaround time.

        Args:
            start_time: Tick at which the process was created.
            end_tick: Tick at which its final instruction ran.

        """
        turnaround = end_tick + 1 - start_time
        self.total += turnaround
        self.terminated += 1
        return turnaround

    @property
    def average(self) -> float:
        """Return the mean turnaround, or 0.0 if nothing has terminated."""
        if self.terminated == 0:
            return 0.0
        return self.total / self.terminated
