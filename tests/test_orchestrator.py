"""
Tests for ExecutionOrchestrator running on in-thread execution units.
"""

import threading
import time
from unittest.mock import Mock

from labbook import Cell, Context, OutputKind
from labbook.orchestrator import CRASH_MESSAGE
from labbook.unit import ThreadExecutionUnit


WAIT = 10.0


class CrashingUnit(ThreadExecutionUnit):
    """Dies, without answering, when asked to run a cell mentioning Test.crash."""

    def __init__(self, registry):
        super().__init__(registry)
        self.dead = False

    def send(self, message):
        if "Test.crash" in message["code"]:
            self.dead = True
            return
        super().send(message)

    def is_alive(self):
        return not self.dead and super().is_alive()


class TestOrchestratorBasics:
    """Single cells and queuing."""

    def test_execute_emits_result_and_updates_context(self, make_orchestrator):
        results = []
        orch = make_orchestrator(results)

        orch.execute("c1", "x = Stats.mean([1, 2, 3])")
        assert orch.wait_idle(WAIT)

        assert len(results) == 1
        assert results[0].cell_id == "c1"
        assert results[0].output.kind == OutputKind.TEXT
        assert results[0].output.data == "2"
        assert orch.context.get("x") == 2.0

    def test_context_carries_across_cells(self, make_orchestrator):
        results = []
        orch = make_orchestrator(results)

        orch.execute("c1", "x = 5")
        orch.execute("c2", "display(x)")
        assert orch.wait_idle(WAIT)

        assert [r.output.data for r in results] == ["5", "5"]

    def test_error_leaves_context_untouched(self, make_orchestrator):
        results = []
        orch = make_orchestrator(results)

        orch.execute("c1", "x = 1")
        orch.execute("c2", "x = 2\nNope.call()")
        orch.execute("c3", "display(x)")
        assert orch.wait_idle(WAIT)

        assert results[1].cell_id == "c2"
        assert results[1].output.is_error
        assert results[1].output.data == "Unknown namespace: Nope"
        assert results[1].output.timing_ms == 0
        assert results[2].output.data == "1"
        assert orch.context.get("x") == 1.0

    def test_busy_requests_are_queued(self, make_orchestrator):
        results = []
        orch = make_orchestrator(results)

        orch.execute("slow", "Core.sleep(0.3)")
        orch.execute("second", "Core.echo(2)")

        assert orch.busy
        assert orch.running_cell == "slow"
        assert orch.pending == ["second"]

        assert orch.wait_idle(WAIT)
        assert not orch.busy
        assert [r.cell_id for r in results] == ["slow", "second"]

    def test_only_one_cell_in_flight(self, make_orchestrator, registry):
        """Execution never overlaps."""
        active = []
        overlaps = []
        lock = threading.Lock()

        def occupy(seconds):
            with lock:
                active.append(1)
                if len(active) > 1:
                    overlaps.append(True)
            time.sleep(seconds)
            with lock:
                active.pop()
            return seconds

        registry.register("Test", "occupy", occupy)
        orch = make_orchestrator([])
        for i in range(5):
            orch.execute(f"c{i}", "Test.occupy(0.02)")
        assert orch.wait_idle(WAIT)
        assert overlaps == []

    def test_handler_errors_do_not_stop_the_queue(self, make_orchestrator):
        handler = Mock(side_effect=RuntimeError("host blew up"))

        orch = make_orchestrator()
        orch.on_result = handler
        orch.execute("a", "Core.echo(1)")
        orch.execute("b", "Core.echo(2)")
        assert orch.wait_idle(WAIT)
        assert [c.args[0].cell_id for c in handler.call_args_list] == ["a", "b"]


class TestResultCallbacks:
    """on_result runs without the orchestrator lock held."""

    def test_callback_can_wait_idle(self, make_orchestrator):
        seen = []
        orch = make_orchestrator()

        def handler(result):
            seen.append(orch.wait_idle(timeout=2.0))

        orch.on_result = handler
        orch.execute("a", "Core.echo(1)")
        assert orch.wait_idle(WAIT)
        assert seen == [True]

    def test_callback_can_queue_from_another_thread(self, make_orchestrator):
        results = []
        orch = make_orchestrator()
        joined = []

        def handler(result):
            results.append(result.cell_id)
            if result.cell_id == "first":
                worker = threading.Thread(target=orch.execute, args=("second", "Core.echo(2)"))
                worker.start()
                worker.join(timeout=2.0)
                joined.append(not worker.is_alive())

        orch.on_result = handler
        orch.execute("first", "Core.echo(1)")
        assert orch.wait_idle(WAIT)
        assert joined == [True]
        assert results == ["first", "second"]

    def test_results_delivered_before_idle(self, make_orchestrator):
        """wait_idle returns only after the last callback has finished."""
        results = []

        def handler(result):
            time.sleep(0.2)
            results.append(result.cell_id)

        orch = make_orchestrator()
        orch.on_result = handler
        orch.execute("a", "Core.echo(1)")
        assert orch.wait_idle(WAIT)
        assert results == ["a"]


class TestRunAll:
    """execute_all semantics."""

    def test_results_in_cell_order_regardless_of_latency(self, make_orchestrator):
        results = []
        orch = make_orchestrator(results)

        orch.execute_all([
            {"id": "A", "source": "Core.sleep(0.2)"},
            {"id": "B", "source": "Core.sleep(0.01)"},
            {"id": "C", "source": "Core.echo(3)"},
        ])
        assert orch.wait_idle(WAIT)

        assert [r.cell_id for r in results] == ["A", "B", "C"]

    def test_run_all_starts_from_empty_context(self, make_orchestrator):
        results = []
        orch = make_orchestrator(results)
        orch.execute("old", "stale = 1")
        assert orch.wait_idle(WAIT)

        orch.execute_all([Cell(id="n1", source="display(stale)"), Cell(id="n2", source="fresh = 2")])
        assert orch.wait_idle(WAIT)

        assert results[1].output.data == "null"
        assert orch.context.names() == ["fresh"]

    def test_run_all_replaces_pending_queue(self, make_orchestrator):
        results = []
        orch = make_orchestrator(results)
        orch.execute("running", "Core.sleep(0.2)")
        orch.execute("dropped", "Core.echo('never')")

        orch.execute_all([{"id": "r1", "source": "x = 1"}])
        assert orch.wait_idle(WAIT)

        assert [r.cell_id for r in results] == ["running", "r1"]

    def test_cell_from_before_run_all_does_not_apply_context(self, make_orchestrator):
        """A cell in flight during the reset still reports, but its variables are dropped."""
        results = []
        orch = make_orchestrator(results)
        orch.execute("running", "before = 1\nCore.sleep(0.2)")

        orch.execute_all([{"id": "r1", "source": "after = 2"}])
        assert orch.wait_idle(WAIT)

        assert [r.cell_id for r in results] == ["running", "r1"]
        assert orch.context.names() == ["after"]

    def test_reset_clears_context(self, make_orchestrator):
        orch = make_orchestrator([])
        orch.execute("a", "x = 1")
        assert orch.wait_idle(WAIT)
        orch.reset()
        assert len(orch.context) == 0

    def test_restore_context(self, make_orchestrator):
        results = []
        orch = make_orchestrator(results)
        orch.restore_context(Context({"x": 7.0}))
        orch.execute("a", "display(x)")
        assert orch.wait_idle(WAIT)
        assert results[0].output.data == "7"


class TestTimeouts:
    """Deadline handling."""

    def test_timeout_produces_one_error_and_keeps_prior_context(self, make_orchestrator):
        results = []
        orch = make_orchestrator(results, cell_timeout=0.5)

        orch.execute("a", "x = 1")
        orch.execute("slow", "x = 99\ny = 2\nCore.sleep(5)")
        orch.execute("after", "display(x)")
        orch.execute("check", "display(y)")
        assert orch.wait_idle(WAIT)

        assert [r.cell_id for r in results] == ["a", "slow", "after", "check"]
        timeout = results[1].output
        assert timeout.is_error
        assert "timed out" in timeout.data
        assert timeout.data == "Execution timed out (0.5 seconds)"
        assert timeout.timing_ms == 500
        assert results[2].output.data == "1"
        assert results[3].output.data == "null"
        assert orch.context.names() == ["x"]

    def test_timeout_replaces_unit(self, make_orchestrator, registry):
        units = []

        def factory():
            unit = ThreadExecutionUnit(registry)
            units.append(unit)
            return unit

        results = []
        orch = make_orchestrator(results, unit_factory=factory, cell_timeout=0.3)
        orch.execute("slow", "Core.sleep(3)")
        assert orch.wait_idle(WAIT)

        assert len(units) == 2
        assert results[0].output.is_error


class TestCrashes:
    """Execution units that die mid-cell."""

    def test_crash_emits_nothing_by_default(self, make_orchestrator, registry):
        results = []
        orch = make_orchestrator(results, unit_factory=lambda: CrashingUnit(registry))

        orch.execute("a", "x = 1")
        orch.execute("boom", "x = 2\nTest.crash()")
        orch.execute("b", "display(x)")
        assert orch.wait_idle(WAIT)

        assert [r.cell_id for r in results] == ["a", "b"]
        assert results[1].output.data == "1"

    def test_crash_error_toggle(self, make_orchestrator, registry):
        results = []
        orch = make_orchestrator(
            results,
            unit_factory=lambda: CrashingUnit(registry),
            emit_crash_errors=True,
        )

        orch.execute("boom", "Test.crash()")
        orch.execute("b", "Core.echo(1)")
        assert orch.wait_idle(WAIT)

        assert [r.cell_id for r in results] == ["boom", "b"]
        assert results[0].output.is_error
        assert results[0].output.data == CRASH_MESSAGE


class TestStaleResponses:
    """Responses that don't belong to the running cell."""

    def test_mismatched_cell_id_is_ignored(self, make_orchestrator, registry):
        class MislabellingUnit(ThreadExecutionUnit):
            def receive(self, timeout):
                message = super().receive(timeout)
                if message is not None and message["cell_id"] == "a" and not getattr(self, "lied", False):
                    self.lied = True
                    return {"op": "result", "cell_id": "other", "output": {"kind": "text", "data": "x"}, "context": []}
                return message

        results = []
        orch = make_orchestrator(results, unit_factory=lambda: MislabellingUnit(registry), cell_timeout=0.5)
        orch.execute("a", "Core.echo(1)")
        assert orch.wait_idle(WAIT)

        # the real response was swallowed, so the cell ends by timing out
        assert [r.cell_id for r in results] == ["a"]
        assert results[0].output.is_error
