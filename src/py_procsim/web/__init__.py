"""Browser-facing JSON API for the simulator.

This package provides a Flask application that drives a simulation over
HTTP.  It is an **optional** extra — install with::

    pip install py-procsim[web]

The ``create_app`` factory in ``app.py`` boots a simulation and serves:

- ``POST /api/command`` — execute command characters and return JSON.
- ``GET /api/state`` — the current snapshot and average turnaround.
- ``GET /api/log`` — the simulation event log.
"""
