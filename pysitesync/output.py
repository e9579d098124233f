"""Console output formatting for the pysitesync CLI."""

import json
from typing import Any

from rich.console import Console
from rich.markup import escape
from rich.table import Table


class OutputFormatter:
    """Writes status messages, tables and JSON to the terminal.

    Informational messages are suppressed in quiet mode and in JSON mode
    (so that stdout stays machine readable). Warnings and errors are always
    written to stderr.
    """

    def __init__(self, json_output: bool = False, quiet: bool = False):
        """Initialize output formatter.

        Args:
            json_output: Emit results as JSON instead of human readable text
            quiet: Suppress non-essential output
        """
        self.json_output = json_output
        self.quiet = quiet
        self.console = Console(highlight=False, soft_wrap=True)
        self.err_console = Console(stderr=True, highlight=False, soft_wrap=True)

    @property
    def _silent(self) -> bool:
        return self.quiet or self.json_output

    def print(self, message: str = "") -> None:
        """Print a plain line."""
        if not self._silent:
            self.console.print(escape(message))

    def info(self, message: str) -> None:
        """Print an informational message."""
        if not self._silent:
            self.console.print(escape(message))

    def success(self, message: str) -> None:
        """Print a success message."""
        if not self._silent:
            self.console.print(f"[green]{escape(message)}[/green]")

    def warning(self, message: str) -> None:
        """Print a warning message to stderr."""
        self.err_console.print(f"[yellow]Warning: {escape(message)}[/yellow]")

    def error(self, message: str) -> None:
        """Print an error message to stderr."""
        self.err_console.print(f"[red]Error: {escape(message)}[/red]")

    def output_json(self, data: Any) -> None:
        """Print data as indented JSON."""
        self.console.print_json(json.dumps(data))

    def print_table(
        self, title: str, columns: list[str], rows: list[tuple[str, ...]]
    ) -> None:
        """Print rows as a rich table.

        Args:
            title: Table title
            columns: Column headers
            rows: Row values (already formatted as strings)
        """
        if self._silent:
            return
        table = Table(title=title)
        for column in columns:
            table.add_column(column)
        for row in rows:
            table.add_row(*(escape(value) for value in row))
        self.console.print(table)

    def print_summary(self, title: str, items: list[tuple[str, str]]) -> None:
        """Print a titled list of key/value pairs.

        Args:
            title: Summary heading
            items: (label, value) pairs
        """
        if self._silent:
            return
        self.console.print(f"[bold]{escape(title)}[/bold]")
        width = max((len(label) for label, _ in items), default=0)
        for label, value in items:
            self.console.print(f"  {escape(label.ljust(width))}  {escape(value)}")
