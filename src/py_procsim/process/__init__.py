"""Process subsystem — PCBs, the process table, and the scheduler.

Re-exports public symbols so callers can write::

    from py_procsim.process import ProcessTable, Scheduler
"""

from py_procsim.process.pcb import ProcessControlBlock, ProcessState
from py_procsim.process.scheduler import Scheduler
from py_procsim.process.table import (
    DEFAULT_TABLE_CAPACITY,
    INIT_PID,
    INIT_SLOT,
    NoFreeSlotError,
    ProcessTable,
)

__all__ = [
    "DEFAULT_TABLE_CAPACITY",
    "INIT_PID",
    "INIT_SLOT",
    "NoFreeSlotError",
    "ProcessControlBlock",
    "ProcessState",
    "ProcessTable",
    "Scheduler",
]
