"""PyProcSim — a single-CPU process management simulator.

A fixed table of simulated processes runs tiny instruction programs on
one virtual CPU.  External commands drive the machine one instruction
at a time::

    Q  step     — execute one instruction of the running process
    U  unblock  — move the oldest blocked process to the ready queue
    P  print    — show a snapshot of the process table and queues
    T  stop     — end the run and report the average turnaround time
"""
