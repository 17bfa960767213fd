"""Tests for the simulation: interpreter, dispatcher, and unblock.

One step executes exactly one instruction of the running process:

- The program counter advances *before* the instruction takes effect.
- The clock advances once per step, even when the CPU is idle.
- After a non-idle step and after every unblock, an idle CPU is
  handed to the front of the ready queue.
- Running past the last instruction ends the process like ``E``.
"""

from pathlib import Path
from random import Random

import pytest

from py_procsim.config import SimulatorConfig
from py_procsim.process.pcb import ProcessState
from py_procsim.program import Instruction, Opcode, ProgramLoader, decode
from py_procsim.simulation import NO_PROCESS_RUNNING, Simulation

STEP_PROBABILITY = 0.7


def _booted(
    *lines: str,
    config: SimulatorConfig | None = None,
    loader: ProgramLoader | None = None,
) -> Simulation:
    """Create a simulation booted with the given program lines."""
    simulation = Simulation(config=config, loader=loader)
    simulation.boot(decode(lines))
    return simulation


def _assert_invariants(simulation: Simulation) -> None:
    """Check that queue membership matches PCB state everywhere."""
    scheduler = simulation.scheduler
    table = simulation.table
    running_slots = [i for i, pcb in enumerate(table) if pcb.state is ProcessState.RUNNING]
    expected_running = [] if scheduler.running is None else [scheduler.running]
    assert running_slots == expected_running

    ready = list(scheduler.ready)
    blocked = list(scheduler.blocked)
    assert len(set(ready)) == len(ready)
    assert len(set(blocked)) == len(blocked)
    assert not set(ready) & set(blocked)
    assert scheduler.running not in ready
    assert scheduler.running not in blocked
    assert all(table[s].state is ProcessState.READY for s in ready)
    assert all(table[s].state is ProcessState.BLOCKED for s in blocked)

    live = [i for i, pcb in enumerate(table) if not pcb.is_free]
    assert sorted(ready + blocked + expected_running) == live

    pids = [table[i].pid for i in live]
    assert len(set(pids)) == len(pids)


class TestBoot:
    """Verify loading init into slot 0."""

    def test_init_fields(self) -> None:
        """Init is slot 0, PID 0, no parent, RUNNING from tick 0."""
        simulation = _booted("S 1", "E")
        init = simulation.table[0]
        assert init.pid == 0
        assert init.parent_pid is None
        assert init.state is ProcessState.RUNNING
        assert init.start_time == 0
        assert simulation.scheduler.running == 0
        assert simulation.tick == 0

    def test_cpu_loaded(self) -> None:
        """The CPU context starts on init's program at counter 0."""
        simulation = _booted("S 1", "E")
        assert simulation.cpu.program is simulation.table[0].program
        assert simulation.cpu.program_counter == 0
        assert simulation.cpu.value == 0

    def test_other_slots_free(self) -> None:
        """Every other slot starts free."""
        simulation = _booted("E")
        assert simulation.table.live_slots() == [0]

    def test_boot_twice_raises(self) -> None:
        """A simulation can only be booted once."""
        simulation = _booted("E")
        with pytest.raises(RuntimeError, match="already booted"):
            simulation.boot(decode(["E"]))

    def test_step_before_boot_raises(self) -> None:
        """Commands need a booted simulation."""
        with pytest.raises(RuntimeError, match="not booted"):
            Simulation().step()
        with pytest.raises(RuntimeError, match="not booted"):
            Simulation().unblock()


class TestArithmetic:
    """Verify set, add, and decrement."""

    def test_set_add_end(self) -> None:
        """[S 5, A 3, E] holds 8 when it terminates at tick 2."""
        simulation = _booted("S 5", "A 3", "E")
        simulation.step()
        simulation.step()
        expected_value = 8
        assert simulation.cpu.value == expected_value
        report = simulation.step()
        assert report.instruction == Instruction(Opcode.END)
        expected_turnaround = 3  # tick 2 + 1 - start 0
        assert simulation.stats.total == expected_turnaround
        assert simulation.stats.terminated == 1
        assert simulation.scheduler.running is None

    def test_decrement(self) -> None:
        """D subtracts from the register."""
        simulation = _booted("S 10", "D 4", "E")
        simulation.step()
        simulation.step()
        expected_value = 6
        assert simulation.cpu.value == expected_value

    def test_counter_advances(self) -> None:
        """Each step moves the program counter forward by one."""
        simulation = _booted("S 1", "S 2", "E")
        simulation.step()
        assert simulation.cpu.program_counter == 1

    def test_clock_advances_per_step(self) -> None:
        """The clock advances once per step."""
        simulation = _booted("S 1", "S 2", "E")
        for expected in range(1, 4):
            simulation.step()
            assert simulation.tick == expected


class TestStepReport:
    """Verify what step() reports."""

    def test_report_fields(self) -> None:
        """A report carries the tick, slot, PID, and instruction."""
        simulation = _booted("S 5", "E")
        report = simulation.step()
        assert report.tick == 0
        assert report.slot == 0
        assert report.pid == 0
        assert report.instruction == Instruction(Opcode.SET, number=5)
        assert report.message == "Time: 0, Process 0 executed instruction S 5"
        assert not report.idle

    def test_idle_report(self) -> None:
        """An idle step reports that nothing is running."""
        simulation = _booted("E")
        simulation.step()
        report = simulation.step()
        assert report.idle
        assert report.message == NO_PROCESS_RUNNING


class TestEnd:
    """Verify explicit and implicit termination."""

    def test_end_frees_slot(self) -> None:
        """E frees init's slot and leaves the CPU idle."""
        simulation = _booted("E")
        simulation.step()
        assert simulation.table[0].is_free
        assert simulation.cpu.program is None

    def test_implicit_end(self) -> None:
        """Running past the last instruction ends the process."""
        simulation = _booted("S 1")
        simulation.step()
        report = simulation.step()
        assert report.instruction is None
        assert "without E" in report.message
        assert simulation.stats.terminated == 1
        expected_turnaround = 2  # tick 1 + 1 - start 0
        assert simulation.stats.total == expected_turnaround

    def test_empty_program_ends_on_first_step(self) -> None:
        """A process with no instructions ends on its first step."""
        simulation = _booted()
        simulation.step()
        assert simulation.stats.terminated == 1

    def test_idle_step_still_ticks(self) -> None:
        """Steps with nothing running still advance the clock."""
        simulation = _booted("E")
        simulation.step()
        simulation.step()
        simulation.step()
        expected_tick = 3
        assert simulation.tick == expected_tick
        assert simulation.stats.terminated == 1


class TestBlockAndUnblock:
    """Verify blocking, unblocking, and the end-to-end example run."""

    def test_block_saves_registers(self) -> None:
        """Blocking writes the CPU counter and register into the PCB."""
        simulation = _booted("S 7", "B", "E")
        simulation.step()
        simulation.step()
        init = simulation.table[0]
        expected_pc = 2
        expected_value = 7
        assert init.state is ProcessState.BLOCKED
        assert init.program_counter == expected_pc
        assert init.value == expected_value
        assert simulation.scheduler.blocked == (0,)
        assert simulation.scheduler.running is None

    def test_end_to_end(self) -> None:
        """[S 1, B, S 2, E] driven by Q Q Q U Q Q."""
        simulation = _booted("S 1", "B", "S 2", "E")

        simulation.step()
        assert simulation.cpu.value == 1
        assert simulation.tick == 1

        simulation.step()
        expected_tick = 2
        assert simulation.tick == expected_tick
        assert simulation.scheduler.blocked == (0,)
        assert simulation.scheduler.running is None

        report = simulation.step()
        assert report.idle
        expected_tick = 3
        assert simulation.tick == expected_tick

        assert simulation.unblock() == 0
        assert simulation.scheduler.running == 0
        assert simulation.scheduler.ready == ()

        simulation.step()
        expected_value = 2
        expected_tick = 4
        assert simulation.cpu.value == expected_value
        assert simulation.tick == expected_tick

        simulation.step()
        expected_turnaround = 5  # tick 4 + 1 - start 0
        assert simulation.stats.total == expected_turnaround
        assert simulation.average_turnaround == pytest.approx(5.0)

    def test_unblock_empty_is_noop(self) -> None:
        """Unblock with nothing blocked leaves the state untouched."""
        simulation = _booted("S 1", "F 0", "E")
        simulation.step()
        simulation.step()
        before = simulation.snapshot()
        assert simulation.unblock() is None
        assert simulation.snapshot() == before

    def test_unblock_while_busy_queues(self) -> None:
        """An unblocked process waits in ready while another runs."""
        simulation = _booted("F 0", "B", "E")
        simulation.step()  # fork: child in slot 1 at counter 1
        simulation.step()  # init blocks, child dispatched
        assert simulation.scheduler.running == 1
        simulation.unblock()
        assert simulation.scheduler.running == 1
        assert simulation.scheduler.ready == (0,)

    def test_unblock_order_is_fifo(self) -> None:
        """The oldest blocked process is unblocked first."""
        simulation = _booted("F 0", "B", "E")
        simulation.step()  # init forks child (slot 1)
        simulation.step()  # init blocks; child dispatched
        simulation.step()  # child blocks
        assert simulation.scheduler.blocked == (0, 1)
        simulation.unblock()
        assert simulation.scheduler.running == 0
        assert simulation.scheduler.blocked == (1,)


class TestFork:
    """Verify fork semantics."""

    def test_fork_counters(self) -> None:
        """Parent skips ahead by the offset; child resumes after the fork."""
        simulation = _booted("S 4", "F 2", "S 100", "E", "A 1", "E")
        simulation.step()
        parent_pc = simulation.cpu.program_counter
        simulation.step()
        child = simulation.table[1]
        assert simulation.cpu.program_counter == parent_pc + 1 + 2
        assert child.program_counter == parent_pc + 1
        assert simulation.scheduler.ready == (1,)

    def test_child_fields(self) -> None:
        """The child copies the register, records its parent, and is READY."""
        simulation = _booted("S 4", "F 0", "E")
        simulation.step()
        simulation.step()
        child = simulation.table[1]
        expected_value = 4
        assert child.value == expected_value
        assert child.pid == 1
        assert child.parent_pid == 0
        assert child.state is ProcessState.READY
        assert child.start_time == 1
        assert child.time_used == 0

    def test_child_program_is_a_copy(self) -> None:
        """Parent and child own separate, equal programs."""
        simulation = _booted("F 0", "E")
        simulation.step()
        parent_program = simulation.table[0].program
        child_program = simulation.table[1].program
        assert child_program == parent_program
        assert child_program is not parent_program

    def test_fork_then_run_both(self) -> None:
        """Parent runs its branch, then the child runs its own."""
        simulation = _booted("S 4", "F 2", "S 100", "E", "A 1", "E")
        simulation.step()  # S 4
        simulation.step()  # F 2
        simulation.step()  # parent: A 1
        expected_value = 5
        assert simulation.cpu.value == expected_value
        simulation.step()  # parent: E at tick 3 -> turnaround 4; child dispatched
        assert simulation.scheduler.running == 1
        simulation.step()  # child: S 100
        expected_value = 100
        assert simulation.cpu.value == expected_value
        simulation.step()  # child: E at tick 5 -> turnaround 5
        expected_total = 9
        assert simulation.stats.total == expected_total
        assert simulation.average_turnaround == pytest.approx(4.5)

    def test_fork_full_table(self) -> None:
        """Forking into a full table changes nothing but the parent's counter."""
        simulation = _booted("F 5", "S 3", "E", config=SimulatorConfig(table_capacity=1))
        report = simulation.step()
        assert "could not fork" in report.message
        assert simulation.scheduler.ready == ()
        assert simulation.cpu.program_counter == 1
        simulation.step()
        expected_value = 3
        assert simulation.cpu.value == expected_value

    def test_negative_offset_clamped(self) -> None:
        """A backward offset cannot move the counter below zero."""
        simulation = _booted("F -10", "E")
        simulation.step()
        assert simulation.cpu.program_counter == 0

    def test_pids_not_reused_with_slots(self) -> None:
        """A recycled slot gets a fresh PID."""
        program = ["F 3", "E", "E", "E", "B", "F 0", "E"]
        simulation = _booted(*program, config=SimulatorConfig(table_capacity=2))
        simulation.step()  # init forks child pid 1 into slot 1
        simulation.step()  # init blocks; child dispatched
        simulation.step()  # child ends; slot 1 free
        assert simulation.table[1].is_free
        simulation.unblock()  # init back on the CPU
        simulation.step()  # init forks again
        expected_pid = 2
        assert simulation.table[1].pid == expected_pid


class TestReplace:
    """Verify replacing the running program."""

    def test_replace_success(self, tmp_path: Path) -> None:
        """A successful replace restarts the process at counter 0."""
        (tmp_path / "next.txt").write_text("A 5\nE\n")
        loader = ProgramLoader(base_dir=tmp_path)
        simulation = _booted("S 1", "R next.txt", "S 99", loader=loader)
        simulation.step()
        report = simulation.step()
        assert "replaced with new program" in report.message
        assert simulation.cpu.program_counter == 0
        assert simulation.table[0].program == decode(["A 5", "E"])
        simulation.step()
        expected_value = 6
        assert simulation.cpu.value == expected_value

    def test_replace_failure_discards(self, tmp_path: Path) -> None:
        """By default a failed replace leaves an empty program."""
        loader = ProgramLoader(base_dir=tmp_path)
        simulation = _booted("R missing.txt", "S 5", "E", loader=loader)
        report = simulation.step()
        assert "failed to replace" in report.message
        assert len(simulation.table[0].program) == 0
        expected_pc = 2
        assert simulation.cpu.program_counter == expected_pc
        simulation.step()
        assert simulation.stats.terminated == 1

    def test_replace_failure_reverts(self, tmp_path: Path) -> None:
        """With revert enabled, the old program continues after the R."""
        loader = ProgramLoader(base_dir=tmp_path)
        config = SimulatorConfig(revert_on_failed_replace=True)
        simulation = _booted("R missing.txt", "S 5", "E", config=config, loader=loader)
        simulation.step()
        expected_length = 3
        assert len(simulation.table[0].program) == expected_length
        assert simulation.cpu.program_counter == 1
        simulation.step()
        expected_value = 5
        assert simulation.cpu.value == expected_value

    def test_replace_with_invalid_program(self, tmp_path: Path) -> None:
        """A file that fails to decode is a failed replace."""
        (tmp_path / "bad.txt").write_text("Q 1\n")
        loader = ProgramLoader(base_dir=tmp_path)
        simulation = _booted("R bad.txt", "E", loader=loader)
        report = simulation.step()
        assert "Invalid operation" in report.message

    def test_replace_with_binary_file(self, tmp_path: Path) -> None:
        """A file that is not text is a failed replace, not a crash."""
        (tmp_path / "bin.txt").write_bytes(b"S 1\n\xff\xfe\x80\n")
        loader = ProgramLoader(base_dir=tmp_path)
        simulation = _booted("R bin.txt", "E", loader=loader)
        report = simulation.step()
        assert "failed to replace" in report.message
        assert simulation.scheduler.running == 0

    def test_replace_only_affects_running_process(self, tmp_path: Path) -> None:
        """A forked child keeps its own program when the parent replaces."""
        (tmp_path / "next.txt").write_text("E\n")
        loader = ProgramLoader(base_dir=tmp_path)
        simulation = _booted("F 0", "R next.txt", "E", loader=loader)
        simulation.step()
        simulation.step()
        expected_length = 3
        assert len(simulation.table[1].program) == expected_length


class TestInvariants:
    """Verify state invariants over long command sequences."""

    def test_random_walk(self) -> None:
        """Invariants hold and PIDs only increase over a random run."""
        # The parent loops via the clamped backward fork, so PIDs keep growing.
        program = ["F 2", "B", "E", "B", "F -10"]
        simulation = _booted(*program, config=SimulatorConfig(table_capacity=4))
        rng = Random(1234)
        highest_pid = 0
        for _ in range(300):
            if rng.random() < STEP_PROBABILITY:
                simulation.step()
            else:
                simulation.unblock()
            _assert_invariants(simulation)
            for pcb in simulation.table:
                if not pcb.is_free and pcb.pid > highest_pid:
                    highest_pid = pcb.pid
        assert highest_pid > simulation.table.capacity

    def test_snapshot_is_read_only(self) -> None:
        """Taking snapshots never changes the state."""
        simulation = _booted("S 1", "F 0", "B", "E")
        simulation.step()
        simulation.step()
        first = simulation.snapshot()
        second = simulation.snapshot()
        assert first == second
        assert simulation.tick == first.tick
