"""Console output for the pys3sync CLI."""

import json
from typing import Any, Optional

from rich.console import Console
from rich.table import Table

from .utils import format_size


class OutputFormatter:
    """Renders messages, tables and summaries with rich.

    In JSON mode only ``output_json`` writes to stdout; informational
    messages are suppressed. Errors always go to stderr.
    """

    def __init__(
        self,
        json_output: bool = False,
        quiet: bool = False,
        console: Optional[Console] = None,
        err_console: Optional[Console] = None,
    ):
        """Initialize output formatter.

        Args:
            json_output: Emit machine-readable JSON instead of text
            quiet: Suppress non-essential output
            console: Console for regular output (default: stdout)
            err_console: Console for errors (default: stderr)
        """
        self.json_output = json_output
        self.quiet = quiet
        self.console = console or Console(highlight=False)
        self.err_console = err_console or Console(stderr=True, highlight=False)

    @property
    def _silent(self) -> bool:
        return self.quiet or self.json_output

    def info(self, message: str) -> None:
        if not self._silent:
            self.console.print(message, markup=False)

    def success(self, message: str) -> None:
        if not self._silent:
            self.console.print(f"[green]{message}[/green]")

    def warning(self, message: str) -> None:
        if not self.json_output:
            self.err_console.print(f"[yellow]Warning:[/yellow] {message}")

    def error(self, message: str) -> None:
        self.err_console.print(f"[red]Error:[/red] {message}")

    def print(self, message: str) -> None:
        """Print a message regardless of quiet mode (command results)."""
        if not self.json_output:
            self.console.print(message, markup=False)

    def progress_message(self, message: str) -> None:
        if not self._silent:
            self.console.print(f"[dim]{message}[/dim]")

    def output_json(self, data: Any) -> None:
        self.console.print_json(json.dumps(data, default=str))

    def output_table(
        self,
        rows: list[dict[str, Any]],
        columns: list[str],
        headers: Optional[dict[str, str]] = None,
    ) -> None:
        """Render rows as a table.

        Args:
            rows: Row dictionaries
            columns: Keys of the columns to show, in order
            headers: Optional display names of the columns
        """
        if self.json_output:
            self.output_json(rows)
            return
        headers = headers or {}
        table = Table(show_header=True, header_style="bold")
        for column in columns:
            table.add_column(headers.get(column, column))
        for row in rows:
            table.add_row(*(str(row.get(column, "")) for column in columns))
        self.console.print(table)

    def print_summary(self, title: str, items: list[tuple[str, str]]) -> None:
        """Print a titled list of label/value pairs."""
        if self._silent:
            return
        table = Table(title=title, show_header=False, title_style="bold")
        table.add_column("Label", style="cyan")
        table.add_column("Value")
        for label, value in items:
            table.add_row(label, value)
        self.console.print(table)

    @staticmethod
    def format_size(size_bytes: int) -> str:
        return format_size(size_bytes)
