"""Flask application factory for the simulator's web API.

The ``create_app`` function boots a simulation from a program file,
attaches a console, and returns a Flask app with three endpoints:

- ``POST /api/command`` — execute commands and return JSON output.
- ``GET /api/state`` — return the snapshot and turnaround statistics.
- ``GET /api/log`` — return the event trace, filtered by severity,
  source, slot, or a tick window.
"""

from __future__ import annotations

import argparse
from pathlib import Path

from flask import Flask, Response, jsonify, request

from py_procsim.console import Console
from py_procsim.logging import LogLevel
from py_procsim.repl import boot_simulation

_HTTP_BAD_REQUEST = 400


def create_app(program_path: Path, *, config_path: Path | None = None) -> Flask:
    """Create and configure the Flask application.

    Boot a simulation with the given program and wire up routes.

    Raises:
        LoadError: If the initial program does not load.
        ConfigError: If the config file is unreadable or invalid.

    """
    simulation = boot_simulation(program_path, config_path=config_path)
    console = Console(simulation=simulation)

    app = Flask(__name__)

    @app.route("/api/command", methods=["POST"])
    def command() -> tuple[Response, int] | Response:  # pyright: ignore[reportUnusedFunction]
        """Execute command characters.

        Expects JSON body: ``{"command": "QQP"}``

        Returns:
            JSON with ``output`` (one string per command) and ``stopped``.

        """
        data = request.get_json(silent=True)
        if not isinstance(data, dict) or "command" not in data:
            return jsonify({"error": "Missing 'command' field"}), _HTTP_BAD_REQUEST

        if console.stopped:
            return jsonify({"output": [], "stopped": True})

        text = data["command"]
        if not isinstance(text, str):
            return jsonify({"error": "'command' must be a string"}), _HTTP_BAD_REQUEST
        output = console.feed(text)
        return jsonify({"output": output, "stopped": console.stopped})

    @app.route("/api/state")
    def state() -> Response:  # pyright: ignore[reportUnusedFunction]
        """Return the current snapshot plus turnaround statistics."""
        return jsonify(
            {
                "snapshot": simulation.snapshot().to_dict(),
                "average_turnaround": simulation.average_turnaround,
                "terminated": simulation.stats.terminated,
                "stopped": console.stopped,
            }
        )

    @app.route("/api/log")
    def log() -> tuple[Response, int] | Response:  # pyright: ignore[reportUnusedFunction]
        """Return events filtered by ``min_level``, ``source``, ``slot``, ``since``, ``until``."""
        level_name = request.args.get("min_level", "DEBUG")
        try:
            min_level = LogLevel[level_name.upper()]
        except KeyError:
            return jsonify({"error": f"Unknown level {level_name!r}"}), _HTTP_BAD_REQUEST
        numeric: dict[str, int | None] = {}
        for name in ("slot", "since", "until"):
            raw = request.args.get(name)
            try:
                numeric[name] = None if raw is None else int(raw)
            except ValueError:
                return jsonify({"error": f"{name} must be an integer"}), _HTTP_BAD_REQUEST
        events = simulation.events.query(
            min_level=min_level, source=request.args.get("source"), **numeric
        )
        return jsonify({"entries": [e.to_dict() for e in events]})

    return app


def main() -> None:
    """Run the web API development server.

    This is the ``py-procsim-web`` console entry point.
    """
    parser = argparse.ArgumentParser(prog="py-procsim-web")
    parser.add_argument("program", type=Path)
    parser.add_argument("--config", type=Path, default=None)
    parser.add_argument("--port", type=int, default=8080)
    args = parser.parse_args()
    app = create_app(args.program, config_path=args.config)
    app.run(debug=True, port=args.port)
