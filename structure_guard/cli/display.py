"""
Rich terminal display utilities for CLI.

Provides formatted output using the Rich library for:
- Progress indicators
- Syntax-highlighted JSON
- Validation errors
- Statistics and step tables
"""

import json
from typing import Any, Dict, List, Optional, Sequence, Tuple

from rich.console import Console
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.syntax import Syntax
from rich.table import Table
from rich.text import Text

from structure_guard.validation.validator import ValidationError

console = Console()


def print_header(title: str) -> None:
    """Print a formatted header."""
    console.print()
    console.print(f"[bold cyan]{title}[/bold cyan]")
    console.print("=" * len(title))
    console.print()


def print_success(message: str) -> None:
    """Print a success message with checkmark."""
    console.print(f"[green]✓[/green] {message}")


def print_error(message: str) -> None:
    """Print an error message with X mark."""
    console.print(f"[red]✗[/red] {message}")


def print_warning(message: str) -> None:
    """Print a warning message."""
    console.print(f"[yellow]⚠[/yellow] {message}")


def print_info(message: str) -> None:
    """Print an info message."""
    console.print(f"[blue]ℹ[/blue] {message}")


def print_json(data: Any, title: Optional[str] = None) -> None:
    """
    Print JSON data with syntax highlighting.

    Args:
        data: JSON-serializable data or JSON string
        title: Optional title for the panel
    """
    if isinstance(data, str):
        json_str = data
    else:
        json_str = json.dumps(data, indent=2, default=str)

    syntax = Syntax(json_str, "json", theme="monokai", line_numbers=False)

    if title:
        console.print(Panel(syntax, title=f"[bold]{title}[/bold]", border_style="cyan"))
    else:
        console.print(syntax)


def print_schema(schema: Dict, title: str = "Schema") -> None:
    print_json(schema, title)


def print_validation_errors(errors: Sequence[ValidationError]) -> None:
    """
    Print validation errors in a formatted list.

    Errors the grammar should already have prevented are flagged.
    """
    if not errors:
        return

    console.print()
    console.print("[bold red]Validation Errors:[/bold red]")
    for error in errors:
        marker = " [dim](grammar)[/dim]" if error.enforced_by_grammar else ""
        console.print(f"  [red]•[/red] [cyan]{error.path}[/cyan]: {error.message}{marker}")
    console.print()


def print_segments(segments: Sequence[Tuple[str, Any]]) -> None:
    """Print labelled output segments."""
    if not segments:
        return

    table = Table(title="Segments", show_header=True, header_style="bold cyan")
    table.add_column("Identifier", style="cyan")
    table.add_column("Value", style="white")
    for identifier, value in segments:
        table.add_row(identifier, json.dumps(value, default=str))

    console.print()
    console.print(table)


def print_result_stats(
    is_valid: bool,
    latency_ms: float,
    tokens_generated: int,
) -> None:
    """
    Print generation result statistics in a table.

    Args:
        is_valid: Whether output is valid
        latency_ms: Generation latency in milliseconds
        tokens_generated: Number of tokens generated
    """
    table = Table(title="Generation Statistics", show_header=True, header_style="bold cyan")
    table.add_column("Metric", style="cyan", width=20)
    table.add_column("Value", style="white", width=30)

    valid_text = Text("✓ Valid", style="green bold") if is_valid else Text("✗ Invalid", style="red bold")
    table.add_row("Status", valid_text)
    table.add_row("Latency", f"{latency_ms:.0f} ms")
    table.add_row("Tokens Generated", str(tokens_generated))

    console.print()
    console.print(table)
    console.print()


def print_check_trace(steps: List[Dict[str, Any]]) -> None:
    """
    Print the token-by-token trace of a check run.

    Args:
        steps: Dicts with keys token, token_id, accepted, active_steppers, accepting
    """
    table = Table(title="Token Trace", show_header=True, header_style="bold cyan")
    table.add_column("#", style="dim", width=4)
    table.add_column("Token", style="cyan")
    table.add_column("Id", justify="right")
    table.add_column("Consumed", justify="center")
    table.add_column("Steppers", justify="right")
    table.add_column("Accepting", justify="center")

    for i, step in enumerate(steps, 1):
        table.add_row(
            str(i),
            repr(step["token"]),
            str(step["token_id"]),
            "[green]✓[/green]" if step["accepted"] else "[red]✗[/red]",
            str(step["active_steppers"]),
            "[green]yes[/green]" if step["accepting"] else "[dim]no[/dim]",
        )

    console.print()
    console.print(table)
    console.print()


def create_progress_spinner() -> Progress:
    """Create a progress spinner for long-running operations."""
    return Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console
    )


def print_separator() -> None:
    console.print("[dim]" + "─" * 70 + "[/dim]")


def print_model_loading(model_id: str, backend: str) -> None:
    """Print model loading information."""
    console.print()
    print_info(f"Loading model: [bold]{model_id}[/bold]")
    print_info(f"Backend: [bold]{backend}[/bold]")
    console.print()
