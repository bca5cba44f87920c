"""
labbook: A notebook of library calls with variables carried across cells.

This package provides a small notebook execution engine where:
- Cells are short scripts of Namespace.function(args) calls, assignments and display()
- Variables persist across cells in an ordered context
- Cells run one at a time in an isolated execution unit with a hard deadline
"""

__version__ = "0.1.0"

from labbook.values import Context
from labbook.errors import LabbookError, UnknownNamespace, UnknownFunction, FunctionThrow, ExecutionTimeout
from labbook.parser import parse_line, parse_arguments
from labbook.registry import NamespaceRegistry
from labbook.classifier import OutputDescriptor, OutputKind, classify
from labbook.interpreter import CellInterpreter
from labbook.protocol import CellResult, AutoSaveRequest, ExecutionRequest, ExecutionResult
from labbook.config import EngineConfig
from labbook.orchestrator import ExecutionOrchestrator
from labbook.autosave import AutoSaver
from labbook.notebook import Notebook, Cell, CellType
from labbook.session import SessionManager

__all__ = [
    "Context",
    "LabbookError",
    "UnknownNamespace",
    "UnknownFunction",
    "FunctionThrow",
    "ExecutionTimeout",
    "parse_line",
    "parse_arguments",
    "NamespaceRegistry",
    "OutputDescriptor",
    "OutputKind",
    "classify",
    "CellInterpreter",
    "CellResult",
    "AutoSaveRequest",
    "ExecutionRequest",
    "ExecutionResult",
    "EngineConfig",
    "ExecutionOrchestrator",
    "AutoSaver",
    "Notebook",
    "Cell",
    "CellType",
    "SessionManager",
]
