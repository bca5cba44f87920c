"""
ExecutionOrchestrator: serializes cell executions through one execution unit.

At most one cell is in flight. Requests that arrive while a cell is running
wait in a FIFO queue. Each dispatched cell has a deadline; when it passes,
the unit is thrown away and replaced, the cell gets a timeout error and the
queue moves on. The authoritative context is only ever replaced wholesale by
a successful result.
"""

import logging
import threading
import time
from collections import deque
from typing import Any, Callable, Iterable, Optional

from labbook.classifier import OutputDescriptor
from labbook.config import EngineConfig
from labbook.errors import ExecutionTimeout
from labbook.protocol import CellResult, ExecutionRequest, ExecutionResult, execute_message
from labbook.unit import create_unit
from labbook.values import Context

logger = logging.getLogger(__name__)

CRASH_MESSAGE = "Execution unit crashed"

ResultCallback = Callable[[CellResult], Any]


class _InFlight:
    def __init__(self, request: ExecutionRequest, deadline: float, generation: int):
        self.request = request
        self.deadline = deadline
        self.generation = generation


class ExecutionOrchestrator:
    """
    Owns the execution unit, the pending queue and the variable context.

    Host-facing operations (execute, execute_all, reset) may be called from
    any thread. Results are delivered through on_result from the
    orchestrator's pump thread, in dispatch order, with no internal lock
    held; a callback may itself call execute() or wait_idle().

    Usage:
        with ExecutionOrchestrator(on_result=handle) as orch:
            orch.execute("cell-1", "x = Stats.mean([1, 2, 3])")
            orch.wait_idle()
    """

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        on_result: Optional[ResultCallback] = None,
        unit_factory: Optional[Callable[[], Any]] = None,
    ):
        self.config = config or EngineConfig()
        self.on_result = on_result
        self._unit_factory = unit_factory or (lambda: create_unit(self.config))
        self._unit = None
        self._context = Context()
        self._queue: deque[ExecutionRequest] = deque()
        self._in_flight: Optional[_InFlight] = None
        # bumped by execute_all/reset; results of older cells don't touch the context
        self._generation = 0
        # results and replaced units are handed to the pump and dealt with outside the lock
        self._events: list[tuple[str, OutputDescriptor]] = []
        self._undelivered = 0
        self._retired: list[Any] = []
        self._lock = threading.RLock()
        self._idle = threading.Condition(self._lock)
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    # ------------------------------------------------------------------ #
    # Lifecycle
    # ------------------------------------------------------------------ #

    def start(self):
        """Spawn the execution unit and the pump thread."""
        with self._lock:
            if self._thread is not None and self._thread.is_alive():
                return
            if self._unit is None:
                self._spawn_unit()
            self._stop_event.clear()
            self._thread = threading.Thread(target=self._pump_loop, name="labbook-orchestrator", daemon=True)
            self._thread.start()

    def stop(self):
        """Stop the pump thread and terminate the execution unit."""
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=self.config.poll_interval + 2.0)
            self._thread = None
        with self._lock:
            if self._unit is not None:
                self._retired.append(self._unit)
                self._unit = None
            retired, self._retired = self._retired, []
            self._in_flight = None
            self._queue.clear()
            self._events.clear()
            self._undelivered = 0
            self._idle.notify_all()
        for unit in retired:
            unit.terminate()

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.stop()

    def _spawn_unit(self):
        self._unit = self._unit_factory()
        self._unit.start()

    def _replace_unit(self):
        # the old unit is terminated by the pump once the lock is released
        if self._unit is not None:
            self._retired.append(self._unit)
        self._spawn_unit()

    # ------------------------------------------------------------------ #
    # Host operations
    # ------------------------------------------------------------------ #

    def execute(self, cell_id: str, source: str):
        """Run a cell now if idle, otherwise queue it behind the others."""
        request = ExecutionRequest(cell_id=cell_id, source=source)
        with self._lock:
            if self._in_flight is not None:
                self._queue.append(request)
                logger.debug("Queued cell %s (%d waiting)", cell_id, len(self._queue))
                return
            self._dispatch(request)

    def execute_all(self, cells: Iterable):
        """
        Run every cell in order from an empty context.

        Args:
            cells: Cell objects, or dicts with "id" and "source"
        """
        with self._lock:
            self._generation += 1
            self._context = Context()
            self._queue.clear()
            for cell in cells:
                if isinstance(cell, dict):
                    self.execute(str(cell["id"]), cell.get("source", ""))
                else:
                    self.execute(cell.id, cell.source)

    def reset(self):
        """Forget all variables and drop queued cells."""
        with self._lock:
            self._generation += 1
            self._context = Context()
            self._queue.clear()

    @property
    def context(self) -> Context:
        """Copy of the authoritative context."""
        with self._lock:
            return self._context.copy()

    def restore_context(self, context: Context):
        """Replace the authoritative context, e.g. from a saved session."""
        with self._lock:
            self._context = context.copy()

    @property
    def busy(self) -> bool:
        with self._lock:
            return self._in_flight is not None

    @property
    def running_cell(self) -> Optional[str]:
        with self._lock:
            return self._in_flight.request.cell_id if self._in_flight else None

    @property
    def pending(self) -> list[str]:
        with self._lock:
            return [r.cell_id for r in self._queue]

    def wait_idle(self, timeout: Optional[float] = None) -> bool:
        """
        Block until nothing is running or queued and every result has been
        delivered. Returns False on timeout.

        Called from inside on_result, the result being delivered does not
        count as outstanding.
        """
        in_callback = threading.current_thread() is self._thread

        def idle():
            if self._in_flight is not None or self._queue:
                return False
            return in_callback or self._undelivered == 0

        with self._idle:
            return self._idle.wait_for(idle, timeout=timeout)

    # ------------------------------------------------------------------ #
    # Dispatch and completion (called with the lock held)
    # ------------------------------------------------------------------ #

    def _dispatch(self, request: ExecutionRequest):
        if self._unit is None:
            self._spawn_unit()
        deadline = time.monotonic() + self.config.cell_timeout
        self._in_flight = _InFlight(request, deadline, self._generation)
        self._unit.send(execute_message(request.cell_id, request.source, self._context))
        logger.debug("Dispatched cell %s", request.cell_id)

    def _dispatch_next(self):
        if self._queue:
            self._dispatch(self._queue.popleft())
        else:
            self._idle.notify_all()

    def _emit(self, cell_id: str, output: OutputDescriptor):
        self._events.append((cell_id, output))
        self._undelivered += 1

    def _complete(self, message: dict):
        flight = self._in_flight
        try:
            result = ExecutionResult.from_dict(message)
        except (KeyError, ValueError) as e:
            logger.warning("Ignoring malformed unit message: %s", e)
            return
        if result.cell_id != flight.request.cell_id:
            logger.debug("Ignoring response for cell %s while %s is running", result.cell_id, flight.request.cell_id)
            return

        self._in_flight = None
        if result.success:
            if flight.generation == self._generation:
                self._context = result.to_context()
            output = result.output
        else:
            output = OutputDescriptor.error(result.message or "")
        self._emit(result.cell_id, output)
        self._dispatch_next()

    def _timeout(self, flight: _InFlight):
        cell_id = flight.request.cell_id
        logger.warning("Cell %s exceeded %.3gs deadline; replacing execution unit", cell_id, self.config.cell_timeout)
        self._in_flight = None
        self._replace_unit()
        error = ExecutionTimeout(self.config.cell_timeout)
        self._emit(cell_id, OutputDescriptor.error(str(error), timing_ms=round(self.config.cell_timeout * 1000)))
        self._dispatch_next()

    def _crash(self, flight: _InFlight):
        cell_id = flight.request.cell_id
        logger.warning("Execution unit died while running cell %s", cell_id)
        self._in_flight = None
        self._replace_unit()
        if self.config.emit_crash_errors:
            self._emit(cell_id, OutputDescriptor.error(CRASH_MESSAGE))
        self._dispatch_next()

    # ------------------------------------------------------------------ #
    # Pump
    # ------------------------------------------------------------------ #

    def _deliver(self):
        """Terminate replaced units and hand queued results to on_result, without the lock."""
        with self._lock:
            events, self._events = self._events, []
            retired, self._retired = self._retired, []
        for unit in retired:
            unit.terminate()
        if not events:
            return
        for cell_id, output in events:
            if self.on_result is None:
                continue
            try:
                self.on_result(CellResult(cell_id=cell_id, output=output))
            except Exception:
                logger.exception("Result handler failed for cell %s", cell_id)
        with self._lock:
            self._undelivered = max(0, self._undelivered - len(events))
            self._idle.notify_all()

    def _pump_loop(self):
        """Wait for unit responses and deadlines; runs on the pump thread."""
        poll = self.config.poll_interval
        while not self._stop_event.is_set():
            self._deliver()
            with self._lock:
                unit = self._unit
                flight = self._in_flight

            if flight is None or unit is None:
                self._stop_event.wait(poll)
                continue

            remaining = flight.deadline - time.monotonic()
            if remaining <= 0:
                with self._lock:
                    if self._in_flight is flight:
                        self._timeout(flight)
                continue

            message = unit.receive(min(remaining, poll))
            if message is None and not unit.is_alive():
                # a response written just before the unit died still counts
                message = unit.receive(0)
                if message is None:
                    with self._lock:
                        if self._in_flight is flight and self._unit is unit:
                            self._crash(flight)
                    continue

            if message is None:
                continue
            with self._lock:
                if self._in_flight is flight and self._unit is unit:
                    self._complete(message)
                else:
                    logger.debug("Dropping stale unit response for cell %s", message.get("cell_id"))
