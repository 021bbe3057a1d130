"""Interactive prompts for API key entry and model selection."""

from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from ..core.client import KNOWN_MODELS, DEFAULT_MODEL

API_KEY_URL = "https://z.ai/subscribe"


def prompt_api_key(console: Console, message: str = "Enter your Z.ai API key") -> str:
    """Ask for an API key (hidden input) until a non-empty one is entered."""
    console.print(f"\n  [blue]ℹ[/blue] Get your API key at: [cyan]{API_KEY_URL}[/cyan]")

    while True:
        key = typer.prompt(message, hide_input=True, default="", show_default=False)
        key = key.strip()
        if key:
            return key
        console.print("  [red]API key cannot be empty[/red]")


def render_model_table(console: Console, current: Optional[str] = None) -> None:
    """Print the known models as a numbered table."""
    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("#", style="cyan", no_wrap=True)
    table.add_column("Model", style="green")
    table.add_column("Context", justify="right")
    table.add_column("Description", style="dim")

    for index, model in enumerate(KNOWN_MODELS, 1):
        marker = " [yellow](current)[/yellow]" if model.name == current else ""
        table.add_row(
            str(index),
            f"{model.display_name}{marker}",
            f"{model.context_limit // 1000}K",
            model.description,
        )

    console.print(table)


def select_model(console: Console, current: Optional[str] = None) -> str:
    """
    Let the user pick a model by number or name.

    Returns:
        The API identifier of the chosen model
    """
    console.print("\n  [blue]ℹ[/blue] Select your preferred model:")
    render_model_table(console, current)

    names = [model.name for model in KNOWN_MODELS]
    default_name = current if current in names else DEFAULT_MODEL
    default_index = str(names.index(default_name) + 1)

    while True:
        choice = typer.prompt("Choose a model", default=default_index).strip().lower()

        if choice.isdigit() and 1 <= int(choice) <= len(names):
            return names[int(choice) - 1]
        if choice in names:
            return choice
        console.print(f"  [red]Invalid choice '{choice}'.[/red] Enter 1-{len(names)} or a model name.")
