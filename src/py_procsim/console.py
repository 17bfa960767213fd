"""The console — single-character command interpreter.

The console turns commands into simulation calls and returns the text
to show for each.  Commands are single characters, case-insensitive::

    Q  step      U  unblock      P  print state      T  stop

Design choices:
    - **Returns strings, not prints.**  The console is fully testable;
      the caller decides how to display output.
    - **Command dispatch via a dict.**  Adding a command means writing
      a method and adding one dict entry.
    - **Whitespace is skipped**, so ``"QQ P"`` is three commands.
"""

from collections.abc import Callable, Iterator
from typing import TypeAlias

from py_procsim.simulation import Simulation
from py_procsim.snapshot import format_snapshot

_Handler: TypeAlias = Callable[[], str]

INVALID_COMMAND = "You entered an invalid character!"


def format_report(average: float) -> str:
    """Format the end-of-run turnaround report."""
    return f"Average turnaround time: {average:.6f}"


class Console:
    """Command interpreter that drives a booted simulation."""

    STOP_COMMAND = "T"

    def __init__(self, *, simulation: Simulation) -> None:
        """Create a console attached to a booted simulation.

        Raises:
            RuntimeError: If the simulation has not been booted.

        """
        if not simulation.booted:
            msg = "Console requires a booted simulation"
            raise RuntimeError(msg)
        self._simulation = simulation
        self._stopped = False
        self._commands: dict[str, _Handler] = {
            "Q": self._cmd_step,
            "U": self._cmd_unblock,
            "P": self._cmd_print,
            self.STOP_COMMAND: self._cmd_stop,
        }

    @property
    def stopped(self) -> bool:
        """Return True once the stop command has been processed."""
        return self._stopped

    @property
    def simulation(self) -> Simulation:
        """Return the simulation being driven."""
        return self._simulation

    @staticmethod
    def commands_in(text: str) -> Iterator[str]:
        """Yield the command characters in *text*, skipping whitespace."""
        return (ch.upper() for ch in text if not ch.isspace())

    def execute(self, command: str) -> str:
        """Execute one command character and return its output.

        Commands after stop are ignored and produce no output.

        Args:
            command: A single command character.

        Returns:
            The output to display (may be empty).

        """
        if self._stopped:
            return ""
        handler = self._commands.get(command.upper())
        if handler is None:
            return INVALID_COMMAND
        return handler()

    def feed(self, text: str) -> list[str]:
        """Execute every command in *text*, stopping at the stop command.

        Returns:
            The non-empty outputs, in order.

        """
        outputs: list[str] = []
        for command in self.commands_in(text):
            output = self.execute(command)
            if output:
                outputs.append(output)
            if self._stopped:
                break
        return outputs

    def report(self) -> str:
        """Return the average turnaround report."""
        return format_report(self._simulation.average_turnaround)

    # -- Handlers --------------------------------------------------------------

    def _cmd_step(self) -> str:
        return self._simulation.step().message

    def _cmd_unblock(self) -> str:
        slot = self._simulation.unblock()
        if slot is None:
            return "No blocked processes"
        return f"Process {slot} unblocked"

    def _cmd_print(self) -> str:
        return format_snapshot(self._simulation.snapshot())

    def _cmd_stop(self) -> str:
        self._stopped = True
        return self.report()
