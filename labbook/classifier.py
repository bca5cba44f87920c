"""
Output classifier: turns a raw cell value into a typed output descriptor.
"""

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel

from labbook.values import format_value, to_json


NO_OUTPUT = "(no output)"

ALIGNMENT_FIELDS = ("aligned_query", "aligned_target")
SUMMARY_FIELDS = ("mean", "count")


class OutputKind(str, Enum):
    """How the rendering layer should present an output."""
    TEXT = "text"
    TABLE = "table"
    SEQUENCE = "sequence"
    ALIGNMENT = "alignment"
    ERROR = "error"


class OutputDescriptor(BaseModel):
    """Renderer-facing result of a cell."""
    kind: OutputKind = OutputKind.TEXT
    data: Any = None
    timing_ms: int = 0

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "kind": self.kind.value,
            "data": self.data,
            "timing_ms": self.timing_ms,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "OutputDescriptor":
        """Create from dictionary."""
        return cls(
            kind=OutputKind(data.get("kind", "text")),
            data=data.get("data"),
            timing_ms=int(data.get("timing_ms", 0)),
        )

    @classmethod
    def error(cls, message: str, timing_ms: int = 0) -> "OutputDescriptor":
        return cls(kind=OutputKind.ERROR, data=message, timing_ms=timing_ms)

    @property
    def is_error(self) -> bool:
        return self.kind == OutputKind.ERROR


def _hint_kind(hint: Any) -> Optional[OutputKind]:
    if not isinstance(hint, str):
        return None
    try:
        return OutputKind(hint.strip().lower())
    except ValueError:
        return None


def detect_output(value: Any) -> OutputDescriptor:
    """Infer the output kind from the shape of a value."""
    if value is None or isinstance(value, (bool, int, float, str)):
        return OutputDescriptor(kind=OutputKind.TEXT, data=format_value(value))

    if isinstance(value, list):
        if value and isinstance(value[0], (dict, list)):
            return OutputDescriptor(kind=OutputKind.TABLE, data=value)
        return OutputDescriptor(kind=OutputKind.TEXT, data=to_json(value))

    if isinstance(value, dict):
        if all(value.get(f) for f in ALIGNMENT_FIELDS):
            return OutputDescriptor(kind=OutputKind.ALIGNMENT, data=value)
        if any(f in value for f in SUMMARY_FIELDS):
            return OutputDescriptor(kind=OutputKind.TABLE, data=[value])
        return OutputDescriptor(kind=OutputKind.TEXT, data=to_json(value))

    return OutputDescriptor(kind=OutputKind.TEXT, data=str(value))


def classify(value: Any, hint: Any = None) -> OutputDescriptor:
    """
    Build the output descriptor for a value.

    Args:
        value: Value produced by the cell
        hint: Optional kind forced by display(value, "kind"). "text"
            stringifies the value, other known kinds pass it through as is,
            unknown hints are ignored.

    Returns:
        OutputDescriptor with timing_ms left at 0
    """
    kind = _hint_kind(hint)
    if kind == OutputKind.TEXT:
        return OutputDescriptor(kind=kind, data=format_value(value))
    if kind is not None:
        return OutputDescriptor(kind=kind, data=value)
    return detect_output(value)
