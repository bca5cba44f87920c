"""
Values and Context: the typed value union and the ordered variable store.

A value is one of None, bool, float, str, list of values, or a dict mapping
str to values. Dicts keep insertion order, which doubles as key order across
the serialization boundary.
"""

import copy
import json
import math
from typing import Any, Iterable, Iterator, Optional


SCALAR_TYPES = (type(None), bool, float, str)


def is_value(obj: Any) -> bool:
    """Check whether obj is a well-formed value."""
    if isinstance(obj, SCALAR_TYPES):
        return True
    if isinstance(obj, list):
        return all(is_value(item) for item in obj)
    if isinstance(obj, dict):
        return all(isinstance(k, str) and is_value(v) for k, v in obj.items())
    return False


def to_value(obj: Any) -> Any:
    """
    Normalize a Python object returned by a library function into a value.

    Integers become floats, tuples become lists and pydantic models are
    dumped to dicts.

    Raises:
        TypeError: if obj contains something that has no value form.
    """
    if obj is None or isinstance(obj, (bool, str)):
        return obj
    if isinstance(obj, (int, float)):
        return float(obj)
    if isinstance(obj, (list, tuple)):
        return [to_value(item) for item in obj]
    if isinstance(obj, dict):
        return {str(k): to_value(v) for k, v in obj.items()}
    if hasattr(obj, "model_dump"):
        return to_value(obj.model_dump())
    raise TypeError(f"unsupported value of type {type(obj).__name__}")


def _jsonable(value: Any) -> Any:
    if isinstance(value, float) and math.isfinite(value) and value.is_integer():
        return int(value)
    if isinstance(value, list):
        return [_jsonable(v) for v in value]
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    return value


def format_number(value: float) -> str:
    """Format a number the way the notebook shows it: 2.0 is "2"."""
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "Infinity" if value > 0 else "-Infinity"
    if value.is_integer():
        return str(int(value))
    return repr(value)


def to_json(value: Any, indent: Optional[int] = 2) -> str:
    """JSON text of a value, with integral numbers written without decimals."""
    return json.dumps(_jsonable(value), indent=indent, ensure_ascii=False)


def format_value(value: Any) -> str:
    """
    String form of a value.

    Scalars are rendered bare (null, true, 2, 0.5, text), containers as
    indented JSON.
    """
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return format_number(float(value))
    if isinstance(value, str):
        return value
    return to_json(value)


class Context:
    """
    Ordered variable store carried across cells.

    Rebinding an existing name keeps its position. Values are stored as given;
    callers that need isolation use copy() or snapshot().
    """

    def __init__(self, variables: Optional[dict[str, Any]] = None):
        self._vars: dict[str, Any] = dict(variables or {})

    def get(self, name: str, default: Any = None) -> Any:
        return self._vars.get(name, default)

    def set(self, name: str, value: Any):
        self._vars[name] = value

    def has(self, name: str) -> bool:
        return name in self._vars

    def delete(self, name: str):
        self._vars.pop(name, None)

    def names(self) -> list[str]:
        return list(self._vars)

    def snapshot(self, name: str) -> Any:
        """Deep copy of a bound value, detached from later mutation."""
        return copy.deepcopy(self._vars[name])

    def copy(self) -> "Context":
        """Deep copy of the whole store."""
        return Context(copy.deepcopy(self._vars))

    def to_entries(self) -> list[list[Any]]:
        """Serialize as an ordered list of [name, value] pairs."""
        return [[name, copy.deepcopy(value)] for name, value in self._vars.items()]

    @classmethod
    def from_entries(cls, entries: Optional[Iterable]) -> "Context":
        """Rebuild a context from [name, value] pairs."""
        ctx = cls()
        for name, value in entries or []:
            ctx.set(name, value)
        return ctx

    def to_dict(self) -> dict[str, Any]:
        return copy.deepcopy(self._vars)

    def __contains__(self, name: object) -> bool:
        return name in self._vars

    def __iter__(self) -> Iterator[str]:
        return iter(self._vars)

    def __len__(self) -> int:
        return len(self._vars)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Context):
            return NotImplemented
        return list(self._vars.items()) == list(other._vars.items())

    def __repr__(self) -> str:
        return f"Context({self._vars!r})"
