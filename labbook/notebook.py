"""
Notebook: .lbk file format - JSON-based notebook storage.
"""

import json
import uuid
from pathlib import Path
from typing import Any, Optional
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field

from labbook.classifier import OutputDescriptor


NOTEBOOK_SUFFIX = ".lbk"


def _new_cell_id() -> str:
    # ids key results coming back from the orchestrator, so they must not collide
    return f"cell_{uuid.uuid4().hex[:12]}"


class CellType(str, Enum):
    """Type of notebook cell."""
    CODE = "code"
    MARKDOWN = "markdown"


class Cell(BaseModel):
    """A single notebook cell."""
    id: str = Field(default_factory=_new_cell_id)
    type: CellType = CellType.CODE
    source: str = ""
    output: Optional[OutputDescriptor] = None
    execution_count: Optional[int] = None
    metadata: dict[str, Any] = Field(default_factory=dict)

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "id": self.id,
            "type": self.type.value,
            "source": self.source,
            "output": self.output.to_dict() if self.output else None,
            "execution_count": self.execution_count,
            "metadata": self.metadata,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Cell":
        """Create from dictionary."""
        output = data.get("output")
        return cls(
            id=data.get("id") or _new_cell_id(),
            type=CellType(data.get("type", "code")),
            source=data.get("source", ""),
            output=OutputDescriptor.from_dict(output) if output else None,
            execution_count=data.get("execution_count"),
            metadata=data.get("metadata", {}),
        )

    @property
    def is_runnable(self) -> bool:
        return self.type == CellType.CODE and bool(self.source.strip())


class Notebook(BaseModel):
    """
    .lbk file format - JSON-based notebook storage.

    A notebook contains:
    - Cells (code and markdown), in execution order
    - Metadata (name, created, modified, etc.)
    """

    version: str = "1.0"
    cells: list[Cell] = Field(default_factory=list)
    metadata: dict[str, Any] = Field(default_factory=dict)

    def __init__(self, **data):
        super().__init__(**data)
        if not self.metadata:
            self.metadata = {
                "name": "Untitled",
                "created": datetime.now().isoformat(),
                "modified": datetime.now().isoformat(),
            }

    def add_cell(self, cell: Optional[Cell] = None, **kwargs) -> Cell:
        """
        Add a new cell to the notebook.

        Args:
            cell: Cell to add, or create new one
            **kwargs: Arguments for new cell if cell not provided

        Returns:
            The added cell
        """
        if cell is None:
            cell = Cell(**kwargs)
        self.cells.append(cell)
        self._touch()
        return cell

    def insert_cell(self, index: int, cell: Optional[Cell] = None, **kwargs) -> Cell:
        """Insert a cell at a specific index."""
        if cell is None:
            cell = Cell(**kwargs)
        self.cells.insert(index, cell)
        self._touch()
        return cell

    def remove_cell(self, index: int) -> Cell:
        """Remove a cell by index."""
        cell = self.cells.pop(index)
        self._touch()
        return cell

    def get_cell(self, index: int) -> Cell:
        """Get a cell by index."""
        return self.cells[index]

    def find_cell(self, cell_id: str) -> Optional[Cell]:
        """Get a cell by id."""
        for cell in self.cells:
            if cell.id == cell_id:
                return cell
        return None

    def runnable_cells(self) -> list[Cell]:
        """Code cells with source, in notebook order."""
        return [c for c in self.cells if c.is_runnable]

    def _touch(self):
        """Update the modified timestamp."""
        self.metadata["modified"] = datetime.now().isoformat()

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "version": self.version,
            "cells": [cell.to_dict() for cell in self.cells],
            "metadata": self.metadata,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Notebook":
        """Create from dictionary."""
        cells = [Cell.from_dict(c) for c in data.get("cells", [])]
        return cls(
            version=data.get("version", "1.0"),
            cells=cells,
            metadata=data.get("metadata", {}),
        )

    def save(self, path: Path):
        """Save notebook to a .lbk file."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)

        with open(path, "w") as f:
            json.dump(self.to_dict(), f, indent=2)

    @classmethod
    def load(cls, path: Path) -> "Notebook":
        """Load notebook from a .lbk file."""
        path = Path(path)
        with open(path, "r") as f:
            data = json.load(f)
        return cls.from_dict(data)

    @classmethod
    def new(cls, name: str = "Untitled") -> "Notebook":
        """Create a new empty notebook."""
        return cls(
            metadata={
                "name": name,
                "created": datetime.now().isoformat(),
                "modified": datetime.now().isoformat(),
            }
        )
