"""Programs — the instruction sequences that simulated processes run.

Each process owns a small program written one instruction per line.
The first non-space character of a line selects the operation (case
does not matter) and the rest of the line is its argument::

    S 5        set the register to 5
    A 3        add 3 to the register
    D 1        subtract 1 from the register
    B          block until an unblock command arrives
    E          terminate the process
    F 2        fork a child, then skip the parent ahead 2 instructions
    R other    replace this process's program with the file ``other``

Blank lines are ignored.  Numeric arguments are parsed leniently, the
way C's ``atoi`` does: an optional sign and leading digits are used and
anything else counts as 0.  Decoding is all-or-nothing — an invalid
line fails the whole program, so a process never starts with a partial
program.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import StrEnum
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator

DEFAULT_MAX_PROGRAM_LENGTH = 100

_LEADING_INT = re.compile(r"[+-]?\d+")


class Opcode(StrEnum):
    """Operation codes, keyed by the character that selects them."""

    SET = "S"
    ADD = "A"
    DECREMENT = "D"
    BLOCK = "B"
    END = "E"
    FORK = "F"
    REPLACE = "R"


_NUMERIC = frozenset({Opcode.SET, Opcode.ADD, Opcode.DECREMENT, Opcode.FORK})


class LoadError(Exception):
    """Raised when a program cannot be loaded.

    A load error is fatal to the load that produced it, never to the
    simulation as a whole.
    """


class InvalidOperationError(LoadError):
    """A line starts with a character that is not an operation code.

    Line numbers are 1-based and count blank lines, so they match what a
    text editor shows for the file.
    """

    def __init__(self, code: str, line: int, *, source: str = "<program>") -> None:
        """Record the offending code and its 1-based line number."""
        self.code = code
        self.line = line
        self.source = source
        super().__init__(f"{source}:{line} - Invalid operation, {code}")


class MissingArgumentError(LoadError):
    """A replace instruction has no file name."""

    def __init__(self, line: int, *, source: str = "<program>") -> None:
        """Record the 1-based line number of the bare instruction."""
        self.line = line
        self.source = source
        super().__init__(f"{source}:{line} - Missing string argument")


class ProgramTooLongError(LoadError):
    """A program has more instructions than a process can hold."""

    def __init__(self, limit: int, *, source: str = "<program>") -> None:
        """Record the instruction limit that was exceeded."""
        self.limit = limit
        self.source = source
        super().__init__(f"{source} - Program exceeds {limit} instructions")


class ProgramNotFoundError(LoadError):
    """The program file could not be opened."""


class ProgramEncodingError(LoadError):
    """The program file is not UTF-8 text."""


@dataclass(frozen=True)
class Instruction:
    """One decoded instruction.

    Numeric operations carry ``number``; replace carries ``path``.
    Block and end carry neither.
    """

    opcode: Opcode
    number: int = 0
    path: str = ""

    def __str__(self) -> str:
        """Format the instruction the way it would appear in a program file."""
        if self.opcode in _NUMERIC:
            return f"{self.opcode} {self.number}"
        if self.opcode is Opcode.REPLACE:
            return f"{self.opcode} {self.path}"
        return str(self.opcode)


class Program:
    """An ordered, process-owned sequence of instructions.

    Instructions are immutable, so copying a program only copies the
    list — parent and child never observe each other's replacements.
    """

    def __init__(self, instructions: Iterable[Instruction] = ()) -> None:
        """Create a program from decoded instructions."""
        self._instructions: list[Instruction] = list(instructions)

    def __len__(self) -> int:
        """Return the number of instructions."""
        return len(self._instructions)

    def __getitem__(self, index: int) -> Instruction:
        """Return the instruction at *index*."""
        return self._instructions[index]

    def __iter__(self) -> Iterator[Instruction]:
        """Iterate over the instructions in order."""
        return iter(self._instructions)

    def __eq__(self, other: object) -> bool:
        """Compare instruction sequences."""
        if not isinstance(other, Program):
            return NotImplemented
        return self._instructions == other._instructions

    __hash__ = None  # type: ignore[assignment]

    def copy(self) -> Program:
        """Return an independent copy (used when forking)."""
        return Program(self._instructions)

    def replace_with(self, other: Program) -> None:
        """Overwrite this program in place with *other*'s instructions."""
        self._instructions = list(other._instructions)

    def clear(self) -> None:
        """Discard every instruction."""
        self._instructions.clear()

    def __repr__(self) -> str:
        """Return a debug-friendly representation."""
        return f"Program({[str(i) for i in self._instructions]})"


def _parse_int(text: str) -> int:
    """Parse the leading integer of *text*, or 0 when there is none."""
    match = _LEADING_INT.match(text)
    return int(match.group()) if match else 0


def decode(
    lines: Iterable[str],
    *,
    source: str = "<program>",
    max_length: int = DEFAULT_MAX_PROGRAM_LENGTH,
) -> Program:
    """Decode program text into a Program.

    Args:
        lines: The program text, one instruction per line.
        source: Name used in error messages (usually the file name).
        max_length: Maximum number of instructions allowed.

    Returns:
        The decoded program.

    Raises:
        InvalidOperationError: If a line starts with an unknown code.
        MissingArgumentError: If a replace instruction has no argument.
        ProgramTooLongError: If the program exceeds *max_length*.

    """
    instructions: list[Instruction] = []
    for line_number, raw in enumerate(lines, start=1):
        line = raw.strip()
        if not line:
            continue
        code = line[0].upper()
        argument = line[1:].strip()
        try:
            opcode = Opcode(code)
        except ValueError:
            raise InvalidOperationError(code, line_number, source=source) from None

        if opcode in _NUMERIC:
            instruction = Instruction(opcode, number=_parse_int(argument))
        elif opcode is Opcode.REPLACE:
            if not argument:
                raise MissingArgumentError(line_number, source=source)
            instruction = Instruction(opcode, path=argument)
        else:
            instruction = Instruction(opcode)

        if len(instructions) >= max_length:
            raise ProgramTooLongError(max_length, source=source)
        instructions.append(instruction)
    return Program(instructions)


class ProgramLoader:
    """Read program files from disk and decode them.

    Relative paths resolve against ``base_dir``, so a program that
    replaces itself with ``other.txt`` finds the file next to the
    directory the simulator was started in.
    """

    def __init__(
        self,
        *,
        base_dir: Path | None = None,
        max_length: int = DEFAULT_MAX_PROGRAM_LENGTH,
    ) -> None:
        """Create a loader.

        Args:
            base_dir: Directory for relative paths (default: current directory).
            max_length: Maximum number of instructions per program.

        """
        self._base_dir = base_dir if base_dir is not None else Path()
        self._max_length = max_length

    @property
    def base_dir(self) -> Path:
        """Return the directory relative paths resolve against."""
        return self._base_dir

    def resolve(self, path: str | Path) -> Path:
        """Return *path* resolved against the loader's base directory."""
        return self._base_dir / Path(path)

    def load(self, path: str | Path) -> Program:
        """Read and decode the program stored at *path*.

        Raises:
            ProgramNotFoundError: If the file cannot be read.
            ProgramEncodingError: If the file is not UTF-8 text.
            LoadError: If the file contents do not decode.

        """
        resolved = self.resolve(path)
        try:
            text = resolved.read_text(encoding="utf-8")
        except OSError as e:
            msg = f"Error opening file {path}"
            raise ProgramNotFoundError(msg) from e
        except UnicodeDecodeError as e:
            msg = f"{path} - Not a text file: {e.reason} at byte {e.start}"
            raise ProgramEncodingError(msg) from e
        return decode(text.splitlines(), source=str(path), max_length=self._max_length)
