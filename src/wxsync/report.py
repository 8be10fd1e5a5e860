"""Human-readable summary of a reconciliation run."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from rich.console import Console

    from wxsync.pipeline import ReconcileResult


def render_report(result: ReconcileResult, console: Console) -> None:
    """Render a ReconcileResult using Rich console output.

    Removed ids are marked ``-`` (red), added ids ``+`` (green), followed
    by a summary table of counts.
    """
    from rich.table import Table

    if not result.has_changes:
        console.print("Descriptor already matches the source tree.")
        return

    sections = (
        ("Directories removed", result.removed_directories, "red", "-"),
        ("Components removed (directory gone)", result.orphan_components, "red", "-"),
        ("Components removed (source missing)", result.missing_file_components, "red", "-"),
        ("Directories added", result.added_directories, "green", "+"),
        ("Components added", result.added_components, "green", "+"),
    )

    for title, ids, style, marker in sections:
        if not ids:
            continue
        console.print(f"[bold]{title}:[/bold]")
        for item in ids:
            console.print(f"  [{style}]{marker} {item}[/{style}]")
        console.print()

    table = Table(show_header=True, box=None, padding=(0, 1))
    table.add_column("Change")
    table.add_column("Count", justify="right")
    for title, ids, _style, _marker in sections:
        table.add_row(title, str(len(ids)))
    console.print(table)
