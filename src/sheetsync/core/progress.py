"""User-facing console feedback for CLI operations.

Usage::

    from sheetsync.core.progress import pluralize, status

    status("Watching export.xlsx")
    status("Ready", style="success")  # ✓ Ready
    pluralize(3, "row")  # "3 rows"
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from rich.console import Console

if TYPE_CHECKING:
    from structlog.stdlib import BoundLogger

_console = Console(stderr=True)

_STYLES = {
    "success": "[green]✓[/green] ",
    "error": "[red]✗[/red] ",
    "warning": "[yellow]![/yellow] ",
    "info": "  ",
    "none": "",
}


def _get_logger() -> BoundLogger:
    """Get logger lazily to respect runtime config."""
    from sheetsync.core.logging import get_logger

    return get_logger("progress")


def status(message: str, *, style: str = "info", indent: int = 0) -> None:
    """Print a styled status message to stderr."""
    prefix = _STYLES.get(style, "")
    padding = " " * indent
    _console.print(f"{padding}{prefix}{message}", highlight=False)
    _get_logger().debug("status", message=message, style=style)


def pluralize(count: int, singular: str, plural: str | None = None) -> str:
    """Return "1 row" / "3 rows" style counts."""
    if plural is None:
        plural = singular + "s"
    word = singular if count == 1 else plural
    return f"{count} {word}"
