"""
CLI interface for labbook.
"""

import logging
import sys
import threading
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.syntax import Syntax
from rich.table import Table

from labbook import (
    AutoSaver,
    CellResult,
    EngineConfig,
    ExecutionOrchestrator,
    Notebook,
    CellType,
    SessionManager,
)
from labbook.registry import load_registry
from labbook.utils import format_rich_output, get_cell_status, truncate_text


console = Console()


def _print_result(result: CellResult, label: str):
    output = result.output
    rich_output = format_rich_output(output)
    if output.is_error:
        console.print(Panel(
            rich_output,
            title=f"[red]{label}[/red]",
            title_align="left",
            border_style="red",
            padding=(0, 1),
        ))
    else:
        console.print(Panel(
            rich_output,
            title=f"[blue]{label}[/blue]",
            title_align="left",
            subtitle=f"[dim]{output.timing_ms} ms[/dim]",
            subtitle_align="right",
            border_style="blue",
            padding=(0, 1),
        ))


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Log engine activity")
def main(verbose: bool):
    """labbook: a notebook of library calls with variables carried across cells."""
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(message)s",
            handlers=[RichHandler(console=console, show_path=False)],
        )


@main.command()
@click.argument("path", type=click.Path(), default="notebook.lbk")
@click.option("--name", "-n", default=None, help="Notebook name")
def new(path: str, name: str):
    """Create a new notebook."""
    if name is None:
        name = Path(path).stem

    nb = Notebook.new(name=name)
    nb.metadata["path"] = path
    nb.add_cell(
        type=CellType.CODE,
        source="# Welcome to labbook!\ndata = [1, 2, 3, 4]\nStats.describe(data)\n",
    )
    nb.add_cell(
        type=CellType.MARKDOWN,
        source="## Notes\n\nAdd your notes here.",
    )
    nb.save(Path(path))

    console.print(Panel(
        f"[green]Created:[/green] {path}\n"
        f"[dim]Name:[/dim] {name}\n"
        f"[dim]Cells:[/dim] 2 (1 code, 1 markdown)",
        title="[bold blue]labbook[/bold blue]",
        border_style="green",
    ))
    console.print(f"\n[dim]Run with:[/dim] labbook run {path}")


@main.command()
@click.argument("path", type=click.Path(exists=True))
@click.option("--save-session", "-s", is_flag=True, help="Save the final context as a checkpoint")
@click.option("--timeout", "-t", type=float, default=None, help="Deadline per cell in seconds")
def run(path: str, save_session: bool, timeout: Optional[float]):
    """Run every code cell of a notebook in order."""
    nb = Notebook.load(Path(path))
    config = EngineConfig.from_env(cell_timeout=timeout)

    nb_name = nb.metadata.get("name", Path(path).stem)
    console.print(Panel(
        f"[bold]{nb_name}[/bold]  [dim]{path}[/dim]",
        title="[bold blue]labbook[/bold blue]",
        border_style="blue",
    ))
    console.print()

    code_cells = nb.runnable_cells()
    if not code_cells:
        console.print("[yellow]No code cells to execute[/yellow]")
        return

    for cell in code_cells:
        cell.output = None
        cell.execution_count = None

    positions = {cell.id: i for i, cell in enumerate(nb.cells)}
    counter = {"executed": 0, "errors": 0}
    # results arrive on the orchestrator thread, saves on the timer thread
    nb_lock = threading.Lock()

    def save_notebook(request):
        with nb_lock:
            nb.save(Path(path))
        saver.acknowledge()

    saver = AutoSaver(save_notebook, delay=config.auto_save_delay)

    def on_result(result: CellResult):
        cell = nb.find_cell(result.cell_id)
        if cell is None:
            return
        with nb_lock:
            counter["executed"] += 1
            if result.output.is_error:
                counter["errors"] += 1
            cell.output = result.output
            cell.execution_count = counter["executed"]

        console.print(f"[dim]--- Cell {positions[cell.id]} ---[/dim]")
        console.print(Syntax(cell.source, "text", theme="monokai", line_numbers=True))
        _print_result(result, f"Out [{cell.execution_count}]")
        console.print()
        saver.schedule()

    with ExecutionOrchestrator(config=config, on_result=on_result) as orchestrator:
        orchestrator.execute_all(code_cells)
        orchestrator.wait_idle()
        final_context = orchestrator.context

    saver.cancel()
    with nb_lock:
        nb.save(Path(path))

    if save_session:
        session_manager = SessionManager()
        session_manager.save_checkpoint(final_context, Path(path))
        console.print("[dim]Session saved[/dim]")

    status = Table(title="Cells", border_style="dim")
    status.add_column("#", justify="right", style="bold cyan")
    status.add_column("Status")
    status.add_column("Source", style="dim")
    for cell in code_cells:
        indicator, style = get_cell_status(cell)
        status.add_row(
            str(positions[cell.id]),
            f"[{style}]{indicator}[/{style}]",
            truncate_text(cell.source.strip().splitlines()[0], 60),
        )
    console.print(status)

    total = len(code_cells)
    succeeded = counter["executed"] - counter["errors"]
    if succeeded == total:
        console.print(f"[green]All {total} cells executed successfully[/green]")
    else:
        console.print(f"[yellow]Executed {succeeded}/{total} cells[/yellow]")


@main.command(name="exec")
@click.argument("lines", nargs=-1, required=True)
@click.option("--timeout", "-t", type=float, default=None, help="Deadline in seconds")
def exec_code(lines: tuple[str, ...], timeout: Optional[float]):
    """Execute LINES as a single cell and print its output.

    Each argument is one line of the cell.
    """
    source = "\n".join(lines)
    config = EngineConfig.from_env(cell_timeout=timeout)
    results: list[CellResult] = []

    with ExecutionOrchestrator(config=config, on_result=results.append) as orchestrator:
        orchestrator.execute("cli", source)
        orchestrator.wait_idle()

    if not results:
        console.print("[red]Execution unit crashed[/red]")
        sys.exit(1)

    _print_result(results[0], "Out")
    if results[0].output.is_error:
        sys.exit(1)


@main.command()
def sessions():
    """List saved sessions."""
    sm = SessionManager()
    sessions_list = sm.list_sessions()

    if not sessions_list:
        console.print("[yellow]No saved sessions found[/yellow]")
        console.print("[dim]Save a session with --save-session when running[/dim]")
        return

    table = Table(
        title="Saved Sessions",
        border_style="blue",
        show_lines=True,
    )
    table.add_column("#", style="bold cyan", justify="right")
    table.add_column("Name", style="white")
    table.add_column("Saved At", style="dim")
    table.add_column("Variables", justify="right", style="green")

    for i, session in enumerate(sessions_list):
        table.add_row(
            str(i),
            session.get("name", ""),
            session.get("saved_at") or "",
            str(session.get("var_count", 0)),
        )

    console.print(table)


@main.command()
def functions():
    """List the namespaces and functions available to cells."""
    config = EngineConfig.from_env()
    try:
        registry = load_registry(config.registry)
    except (ImportError, AttributeError, TypeError, ValueError) as e:
        console.print(f"[red]Could not load registry {config.registry}: {e}[/red]")
        sys.exit(1)

    table = Table(title="Functions", border_style="blue")
    table.add_column("Namespace", style="bold cyan")
    table.add_column("Functions", style="white")
    for namespace in registry.namespaces():
        table.add_row(namespace, ", ".join(registry.functions(namespace)))
    console.print(table)


if __name__ == "__main__":
    main()
