"""
CellInterpreter: executes one cell of the command language against a context.
"""

import logging
import time
from typing import Any, Optional

from labbook.classifier import NO_OUTPUT, OutputDescriptor, OutputKind, classify
from labbook.errors import FunctionThrow, LabbookError
from labbook.parser import (
    Assign,
    AssignLiteral,
    Call,
    CallSpec,
    Display,
    Expression,
    Skip,
    parse_display_args,
    parse_line,
    parse_value,
)
from labbook.registry import NamespaceRegistry
from labbook.values import Context, to_value

logger = logging.getLogger(__name__)

_UNSET = object()


class CellInterpreter:
    """
    Runs cells line by line.

    Each line is parsed only when execution reaches it, against the context
    as left by the earlier lines of the same cell. The caller's context is
    never touched: run() works on a copy and returns it on success, and any
    error abandons the copy.
    """

    def __init__(self, registry: NamespaceRegistry):
        self.registry = registry

    def run(self, source: str, context: Optional[Context] = None) -> tuple[OutputDescriptor, Context]:
        """
        Execute a cell.

        Args:
            source: Cell source text
            context: Variables visible to the cell

        Returns:
            (output descriptor, updated context)

        Raises:
            LabbookError: on the first failing line; later lines are not run
        """
        context = context.copy() if context is not None else Context()
        started = time.perf_counter()
        last_result: Any = _UNSET
        displays: list[tuple[Any, Any]] = []

        for line in source.split("\n"):
            statement = parse_line(line, context)

            if isinstance(statement, Skip):
                continue

            if isinstance(statement, Display):
                displays.append(parse_display_args(statement.args_text, context))

            elif isinstance(statement, Assign):
                result = self.invoke(statement.call)
                context.set(statement.var, result)
                last_result = result

            elif isinstance(statement, AssignLiteral):
                value = parse_value(statement.expr, context)
                context.set(statement.var, value)
                last_result = value

            elif isinstance(statement, Call):
                last_result = self.invoke(statement.call)

            elif isinstance(statement, Expression):
                # unbound names are ignored
                if context.has(statement.text):
                    last_result = context.snapshot(statement.text)

        if displays:
            value, hint = displays[-1]
            output = classify(value, hint)
        elif last_result is not _UNSET:
            output = classify(last_result)
        else:
            output = OutputDescriptor(kind=OutputKind.TEXT, data=NO_OUTPUT)

        output.timing_ms = round((time.perf_counter() - started) * 1000)
        return output, context

    def invoke(self, call: CallSpec) -> Any:
        """Look up and call a library function, normalizing its result to a value."""
        func = self.registry.lookup(call.namespace, call.function)
        logger.debug("Calling %s.%s with %d argument(s)", call.namespace, call.function, len(call.args))
        try:
            result = func(*call.args)
        except LabbookError:
            raise
        except Exception as e:
            raise FunctionThrow(str(e) or type(e).__name__, e) from e

        try:
            return to_value(result)
        except (TypeError, OverflowError) as e:
            raise FunctionThrow(f"{call.namespace}.{call.function} returned {e}", e) from e
