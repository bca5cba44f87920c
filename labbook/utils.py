"""
Utility functions for labbook: console rendering of output descriptors.
"""

import textwrap
from typing import Any

from rich.console import Group
from rich.table import Table
from rich.text import Text

from labbook.classifier import OutputDescriptor, OutputKind
from labbook.values import format_value, to_json


MAX_TABLE_ROWS = 100
SEQUENCE_WIDTH = 60


def format_output(output: OutputDescriptor) -> str:
    """
    Format an output descriptor for display (plain text).

    Args:
        output: Descriptor produced by a cell

    Returns:
        Formatted string for display
    """
    kind = output.kind
    data = output.data

    if kind == OutputKind.ERROR:
        return f"Error: {format_value(data)}"

    if kind == OutputKind.ALIGNMENT and isinstance(data, dict):
        return "\n".join([
            str(data.get("aligned_query", "")),
            alignment_midline(data),
            str(data.get("aligned_target", "")),
        ])

    if kind == OutputKind.SEQUENCE:
        return "\n".join(textwrap.wrap(_sequence_text(data), SEQUENCE_WIDTH)) or ""

    if isinstance(data, str):
        return data
    return to_json(data)


def format_rich_output(output: OutputDescriptor):
    """
    Format an output descriptor as a Rich renderable.

    Args:
        output: Descriptor produced by a cell

    Returns:
        Rich renderable object for console display
    """
    kind = output.kind
    data = output.data

    if kind == OutputKind.ERROR:
        error_text = Text()
        error_text.append("Error", style="bold red")
        error_text.append(f": {format_value(data)}", style="red")
        return error_text

    if kind == OutputKind.TABLE and isinstance(data, list):
        return build_table(data)

    if kind == OutputKind.ALIGNMENT and isinstance(data, dict):
        lines = [
            Text(str(data.get("aligned_query", "")), style="cyan"),
            Text(alignment_midline(data), style="dim"),
            Text(str(data.get("aligned_target", "")), style="magenta"),
        ]
        if "score" in data:
            lines.append(Text(f"score: {format_value(data['score'])}", style="dim"))
        return Group(*lines)

    if kind == OutputKind.SEQUENCE:
        return Text(format_output(output), style="green")

    return Text(format_output(output))


def build_table(rows: list[Any]):
    """Rich table for a list of objects (header from the first row) or a list of arrays."""
    if not rows:
        return Text("Empty table", style="dim italic")

    shown = rows[:MAX_TABLE_ROWS]
    table = Table(border_style="blue", show_header=isinstance(shown[0], dict))

    if isinstance(shown[0], dict):
        keys = list(shown[0].keys())
        for key in keys:
            table.add_column(str(key), style="white")
        for row in shown:
            row = row if isinstance(row, dict) else {}
            table.add_row(*[format_cell_value(row.get(k)) for k in keys])
    elif isinstance(shown[0], list):
        width = max(len(r) for r in shown if isinstance(r, list))
        for _ in range(width):
            table.add_column()
        for row in shown:
            row = row if isinstance(row, list) else [row]
            table.add_row(*[format_cell_value(v) for v in row])
    else:
        return Text(to_json(rows))

    if len(rows) > MAX_TABLE_ROWS:
        table.caption = f"Showing {MAX_TABLE_ROWS} of {len(rows)} rows"
    return table


def format_cell_value(value: Any) -> str:
    """Compact single-line form of a value for a table cell."""
    if isinstance(value, (list, dict)):
        return to_json(value, indent=None)
    if isinstance(value, float) and not value.is_integer():
        return f"{value:.4g}"
    return format_value(value)


def alignment_midline(data: dict) -> str:
    """Match line between two aligned sequences: | for match, . for mismatch, blank for gap."""
    query = str(data.get("aligned_query", ""))
    target = str(data.get("aligned_target", ""))
    marks = []
    for a, b in zip(query, target):
        if a == "-" or b == "-":
            marks.append(" ")
        elif a == b:
            marks.append("|")
        else:
            marks.append(".")
    return "".join(marks)


def _sequence_text(data: Any) -> str:
    if isinstance(data, str):
        return data
    if isinstance(data, dict):
        return str(data.get("sequence", ""))
    return format_value(data)


def get_cell_status(cell) -> tuple[str, str]:
    """
    Get status indicator and style for a cell.

    Returns:
        Tuple of (indicator_string, rich_style)
    """
    if cell.output is not None:
        if cell.output.is_error:
            return ("err", "red")
        return ("ok", "green")
    return ("--", "dim")


def truncate_text(text: str, max_length: int = 100) -> str:
    """Truncate text to max_length, adding ellipsis if needed."""
    if len(text) <= max_length:
        return text
    return text[: max_length - 3] + "..."
