"""Pytest fixtures shared across all test modules."""

import pytest

from labbook import CellInterpreter, EngineConfig, ExecutionOrchestrator
from labbook.library import default_registry
from labbook.unit import ThreadExecutionUnit


@pytest.fixture
def registry():
    """Built-in registry plus a few functions that misbehave on purpose."""
    reg = default_registry()

    @reg.register("Test")
    def boom(message="boom"):
        raise ValueError(message)

    @reg.register("Test")
    def odd():
        return object()

    @reg.register("Test")
    def append(items, item):
        items.append(item)
        return items

    @reg.register("Test")
    def pair(a, b):
        return (a, b)

    return reg


@pytest.fixture
def interpreter(registry):
    return CellInterpreter(registry)


@pytest.fixture
def make_orchestrator(registry):
    """Build started orchestrators on in-thread units; all are stopped at teardown."""
    created = []

    def factory(results=None, unit_factory=None, **config):
        config.setdefault("unit", "thread")
        orch = ExecutionOrchestrator(
            config=EngineConfig(**config),
            on_result=(results.append if results is not None else None),
            unit_factory=unit_factory or (lambda: ThreadExecutionUnit(registry)),
        )
        orch.start()
        created.append(orch)
        return orch

    yield factory

    for orch in created:
        orch.stop()
