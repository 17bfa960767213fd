"""Simulator configuration.

The defaults reproduce the classic behaviour of the simulator: ten
process slots, programs of at most 100 instructions, and a failed
replace that leaves the process with an empty program.  A JSON file
can override any subset of these::

    {
        "table_capacity": 4,
        "revert_on_failed_replace": true
    }
"""

from __future__ import annotations

import json
from dataclasses import dataclass, fields
from typing import TYPE_CHECKING, Any

from py_procsim.process.table import DEFAULT_TABLE_CAPACITY
from py_procsim.program import DEFAULT_MAX_PROGRAM_LENGTH

if TYPE_CHECKING:
    from pathlib import Path


class ConfigError(RuntimeError):
    """Raised when a configuration file cannot be read or is invalid."""


@dataclass(frozen=True)
class SimulatorConfig:
    """Tunable simulator settings.

    Attributes:
        table_capacity: Number of process table slots (init included).
        max_program_length: Maximum instructions in one program.
        revert_on_failed_replace: Keep the old program when a replace
            fails to load, instead of leaving the program empty.

    """

    table_capacity: int = DEFAULT_TABLE_CAPACITY
    max_program_length: int = DEFAULT_MAX_PROGRAM_LENGTH
    revert_on_failed_replace: bool = False

    def __post_init__(self) -> None:
        """Validate value ranges."""
        if self.table_capacity < 1:
            msg = "table_capacity must be at least 1"
            raise ConfigError(msg)
        if self.max_program_length < 1:
            msg = "max_program_length must be at least 1"
            raise ConfigError(msg)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SimulatorConfig:
        """Build a config from a mapping, rejecting unknown keys and bad types.

        Raises:
            ConfigError: If a key is unknown or a value has the wrong type.

        """
        known = {f.name: f.type for f in fields(cls)}
        unknown = sorted(set(data) - set(known))
        if unknown:
            msg = f"Unknown config keys: {', '.join(unknown)}"
            raise ConfigError(msg)
        for key, value in data.items():
            expected = bool if known[key] == "bool" else int
            # bool is a subclass of int; keep the two apart
            if isinstance(value, bool) is not (expected is bool) or not isinstance(value, expected):
                msg = f"Config key {key!r} must be {expected.__name__}, got {value!r}"
                raise ConfigError(msg)
        return cls(**data)


def load_config(path: Path | None = None) -> SimulatorConfig:
    """Load a config from a JSON file, or return defaults when *path* is None.

    Raises:
        ConfigError: If the file cannot be read or parsed, or is invalid.

    """
    if path is None:
        return SimulatorConfig()
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
        msg = f"Cannot load config: {e}"
        raise ConfigError(msg) from e
    if not isinstance(data, dict):
        msg = "Config file must contain a JSON object"
        raise ConfigError(msg)
    return SimulatorConfig.from_dict(data)
