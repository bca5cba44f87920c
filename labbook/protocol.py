"""
Messages exchanged with the execution unit, and events sent to the host.

Unit messages travel as plain dicts so they pickle across the process
boundary:

    {"op": "execute", "cell_id": ..., "code": ..., "context": [[name, value], ...]}
    {"op": "result",  "cell_id": ..., "output": {...}, "context": [[name, value], ...]}
    {"op": "error",   "cell_id": ..., "message": ...}
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field

from labbook.classifier import OutputDescriptor
from labbook.values import Context


OP_EXECUTE = "execute"
OP_RESULT = "result"
OP_ERROR = "error"


class ExecutionRequest(BaseModel):
    """A cell waiting to be executed."""
    cell_id: str
    source: str


class CellResult(BaseModel):
    """cell-result event: the terminal response for one cell."""
    cell_id: str
    output: OutputDescriptor

    def to_dict(self) -> dict:
        return {"cell_id": self.cell_id, "output": self.output.to_dict()}


class AutoSaveRequest(BaseModel):
    """auto-save event: asks the host to persist the notebook."""
    requested_at: str = Field(default_factory=lambda: datetime.now().isoformat())


@dataclass
class ExecutionResult:
    """Response of the execution unit for one cell."""
    cell_id: str
    success: bool
    output: Optional[OutputDescriptor] = None
    context: list[list[Any]] = field(default_factory=list)
    message: Optional[str] = None

    def to_dict(self) -> dict:
        """Convert to a wire message."""
        if self.success:
            return {
                "op": OP_RESULT,
                "cell_id": self.cell_id,
                "output": self.output.to_dict() if self.output else None,
                "context": self.context,
            }
        return {
            "op": OP_ERROR,
            "cell_id": self.cell_id,
            "message": self.message,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ExecutionResult":
        """Create from a wire message."""
        if data.get("op") == OP_RESULT:
            return cls(
                cell_id=data["cell_id"],
                success=True,
                output=OutputDescriptor.from_dict(data.get("output") or {}),
                context=data.get("context") or [],
            )
        if data.get("op") == OP_ERROR:
            return cls(
                cell_id=data["cell_id"],
                success=False,
                message=data.get("message") or "",
            )
        raise ValueError(f"Unexpected message op: {data.get('op')!r}")

    def to_context(self) -> Context:
        return Context.from_entries(self.context)


def execute_message(cell_id: str, code: str, context: Context) -> dict:
    """Build the execute request sent to the unit."""
    return {
        "op": OP_EXECUTE,
        "cell_id": cell_id,
        "code": code,
        "context": context.to_entries(),
    }
