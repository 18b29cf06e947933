import json
import typer
from typing import Any, Dict
from pydantic import BaseModel
from rich.console import Console
from rich.markup import escape
from rich.table import Table
from nutella.core.models import AppEntry

# Create a stderr console for logging
error_console = Console(stderr=True)

class OutputFormatter:
    """
    Handles output formatting for the CLI and the framework bots.
    System messages go to stderr, data goes to stdout.
    """

    @staticmethod
    def log(message: str, severity: str = "info") -> None:
        """
        Print system messages to stderr with color coding.
        """
        style = "white"
        prefix = "[NUTELLA]"

        if severity == "warning":
            style = "yellow"
        elif severity == "error":
            style = "red"
        elif severity == "critical":
            style = "bold red"
        elif severity == "success":
            style = "green"

        error_console.print(f"[{style}]{prefix} {escape(message)}[/{style}]")

    @staticmethod
    def print_runs(runs: Dict[str, AppEntry]) -> None:
        """Print the run list as a table."""
        if not runs:
            OutputFormatter.log("There are no runs.", severity="info")
            return

        table = Table(title="Nutella Runs", header_style="bold")
        table.add_column("Application", style="bold")
        table.add_column("Runs")
        table.add_column("Path")

        for app_id, entry in runs.items():
            table.add_row(escape(app_id), escape(", ".join(entry.runs)), escape(entry.path))

        error_console.print(table)

    @staticmethod
    def print_data(data: Any) -> None:
        """
        Print data to stdout as JSON. Raw strings are echoed unchanged.
        """
        if isinstance(data, str):
            typer.echo(data)
            return

        def json_serializer(obj):
            if isinstance(obj, BaseModel):
                return obj.model_dump(mode='json')
            if hasattr(obj, "isoformat"):
                return obj.isoformat()
            return str(obj)

        try:
            output = json.dumps(data, indent=2, default=json_serializer)
            typer.echo(output)
        except TypeError as e:
            OutputFormatter.log(f"JSON Serialization failed: {e}", severity="error")
            typer.echo(str(data))
