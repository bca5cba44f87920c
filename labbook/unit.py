"""
Execution units: the isolated runtimes that actually run cells.

A unit is started, fed execute messages, polled for responses and
terminated. Replacement after a timeout is terminate() on the old unit and
start() on a fresh one, the same path as normal startup.
"""

import logging
import multiprocessing
import queue
import threading
from typing import Optional, Union

from labbook.config import DEFAULT_REGISTRY, EngineConfig
from labbook.errors import LabbookError
from labbook.interpreter import CellInterpreter
from labbook.protocol import OP_EXECUTE, ExecutionResult
from labbook.registry import NamespaceRegistry, load_registry
from labbook.values import Context

logger = logging.getLogger(__name__)

TERMINATE_GRACE_SECONDS = 1.0


def serve_request(interpreter: CellInterpreter, message: dict) -> dict:
    """Execute one execute message and build the response message."""
    cell_id = message.get("cell_id")
    try:
        context = Context.from_entries(message.get("context"))
        output, context = interpreter.run(message.get("code") or "", context)
        return ExecutionResult(
            cell_id=cell_id,
            success=True,
            output=output,
            context=context.to_entries(),
        ).to_dict()
    except LabbookError as e:
        return ExecutionResult(cell_id=cell_id, success=False, message=str(e)).to_dict()
    except Exception as e:
        logger.exception("Unexpected failure executing cell %s", cell_id)
        return ExecutionResult(cell_id=cell_id, success=False, message=f"{type(e).__name__}: {e}").to_dict()


def unit_main(registry_path: str, inbox, outbox):
    """Entry point of the unit process. A None message stops the loop."""
    interpreter = CellInterpreter(load_registry(registry_path))
    while True:
        message = inbox.get()
        if message is None:
            break
        if message.get("op") != OP_EXECUTE:
            continue
        outbox.put(serve_request(interpreter, message))


class ProcessExecutionUnit:
    """
    Execution unit backed by a spawned child process.

    The child loads its registry from a dotted path, so the registry must be
    importable in a fresh interpreter. terminate() kills the child outright;
    anything it was doing is lost.
    """

    def __init__(self, registry: str = DEFAULT_REGISTRY):
        self.registry = registry
        self._mp = multiprocessing.get_context("spawn")
        self.process = None
        self._inbox = None
        self._outbox = None

    def start(self):
        self._inbox = self._mp.Queue()
        self._outbox = self._mp.Queue()
        self.process = self._mp.Process(
            target=unit_main,
            args=(self.registry, self._inbox, self._outbox),
            name="labbook-unit",
            daemon=True,
        )
        self.process.start()
        logger.debug("Started execution unit pid=%s", self.process.pid)

    def send(self, message: dict):
        self._inbox.put(message)

    def receive(self, timeout: float) -> Optional[dict]:
        try:
            return self._outbox.get(timeout=max(0.0, timeout))
        except queue.Empty:
            return None

    def is_alive(self) -> bool:
        return self.process is not None and self.process.is_alive()

    def terminate(self):
        if self.process is None:
            return
        if self.process.is_alive():
            self.process.terminate()
            self.process.join(TERMINATE_GRACE_SECONDS)
            if self.process.is_alive():
                self.process.kill()
                self.process.join()
        for q in (self._inbox, self._outbox):
            q.cancel_join_thread()
            q.close()
        logger.debug("Terminated execution unit pid=%s", self.process.pid)
        self.process = None


class ThreadExecutionUnit:
    """
    Execution unit backed by a daemon thread in the current process.

    Threads cannot be killed: terminate() detaches the thread and drops
    whatever it produces afterwards. Useful for embedding and for registries
    that are not importable by path.
    """

    def __init__(self, registry: Union[str, NamespaceRegistry] = DEFAULT_REGISTRY):
        self.registry = registry
        self._thread: Optional[threading.Thread] = None
        self._inbox: Optional[queue.Queue] = None
        self._outbox: Optional[queue.Queue] = None
        self._stopped: Optional[threading.Event] = None

    def start(self):
        registry = self.registry
        if not isinstance(registry, NamespaceRegistry):
            registry = load_registry(registry)
        self._inbox = queue.Queue()
        self._outbox = queue.Queue()
        self._stopped = threading.Event()
        self._thread = threading.Thread(
            target=self._serve,
            args=(CellInterpreter(registry), self._inbox, self._outbox, self._stopped),
            name="labbook-unit",
            daemon=True,
        )
        self._thread.start()

    @staticmethod
    def _serve(interpreter, inbox, outbox, stopped):
        while not stopped.is_set():
            message = inbox.get()
            if message is None:
                break
            if message.get("op") != OP_EXECUTE:
                continue
            response = serve_request(interpreter, message)
            if not stopped.is_set():
                outbox.put(response)

    def send(self, message: dict):
        self._inbox.put(message)

    def receive(self, timeout: float) -> Optional[dict]:
        try:
            return self._outbox.get(timeout=max(0.0, timeout))
        except queue.Empty:
            return None

    def is_alive(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def terminate(self):
        if self._thread is None:
            return
        self._stopped.set()
        self._inbox.put(None)
        self._thread = None


def create_unit(config: EngineConfig):
    """Build an execution unit of the configured kind."""
    if config.unit == "thread":
        return ThreadExecutionUnit(config.registry)
    return ProcessExecutionUnit(config.registry)
