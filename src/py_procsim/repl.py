"""Interactive REPL (Read-Eval-Print Loop) for the simulator.

The REPL loads the initial program, boots the simulation, and enters
the classic loop:

    1. **Read** — display a prompt and read a line of commands.
    2. **Eval** — feed each command character to the console.
    3. **Print** — display the output of each command.
    4. **Loop** — repeat until the stop command or end of input.

The console is fully testable (returns strings, no I/O); the REPL is
the thin I/O wrapper that connects it to ``stdin``/``stdout``.
"""

import argparse
import readline  # noqa: F401  enables line editing in input()
from pathlib import Path

from py_procsim.config import ConfigError, load_config
from py_procsim.console import Console
from py_procsim.program import LoadError, ProgramLoader
from py_procsim.simulation import Simulation

PROMPT = "Enter Q, P, U or T\n$ "


def boot_simulation(program_path: Path, *, config_path: Path | None = None) -> Simulation:
    """Build a simulation and boot it with the program at *program_path*.

    Args:
        program_path: The initial program file.
        config_path: Optional JSON config file.

    Raises:
        ConfigError: If the config file is unreadable or invalid.
        LoadError: If the initial program does not load.

    """
    config = load_config(config_path)
    loader = ProgramLoader(max_length=config.max_program_length)
    program = loader.load(program_path)
    simulation = Simulation(config=config, loader=loader)
    simulation.boot(program)
    return simulation


def run(program_path: Path, *, config_path: Path | None = None) -> int:
    """Boot the simulation and run the interactive loop.

    Handles the stop command, Ctrl+D, and Ctrl+C; the turnaround report
    is printed however the run ends.

    Returns:
        The process exit status: 1 if the program or config fails to
        load, otherwise 0.

    """
    try:
        simulation = boot_simulation(program_path, config_path=config_path)
    except (ConfigError, LoadError) as e:
        print(e)  # noqa: T201
        return 1

    console = Console(simulation=simulation)
    try:
        while not console.stopped:
            try:
                line = input(PROMPT)
            except EOFError:
                # Ctrl+D — end of commands
                print()  # noqa: T201
                break
            for output in console.feed(line):
                print(output)  # noqa: T201

    except KeyboardInterrupt:
        print("\nInterrupted.")  # noqa: T201

    finally:
        if not console.stopped:
            print(console.report())  # noqa: T201
    return 0


def build_parser() -> argparse.ArgumentParser:
    """Build the command-line parser."""
    parser = argparse.ArgumentParser(
        prog="py-procsim",
        description="Single-CPU process management simulator.",
    )
    parser.add_argument("program", type=Path, help="initial program file")
    parser.add_argument("--config", type=Path, default=None, help="JSON config file")
    return parser


def main(argv: list[str] | None = None) -> None:
    """Parse arguments and run the REPL.

    This is the ``py-procsim`` console entry point.
    """
    args = build_parser().parse_args(argv)
    raise SystemExit(run(args.program, config_path=args.config))
