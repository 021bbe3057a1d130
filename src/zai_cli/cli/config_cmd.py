"""
Handlers behind ``zai config``.

Each handler returns a process exit code; the typer command in app.py only
parses options and dispatches here.
"""

import logging
from typing import Optional

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from ..core.client import DEFAULT_MODEL, ZaiError, create_user_friendly_message
from ..core.config import API_KEY_ENV_VAR, ZaiConfig
from ..ui.prompts import prompt_api_key, select_model

logger = logging.getLogger(__name__)


async def test_configuration(config: ZaiConfig, api_key: Optional[str] = None) -> Optional[ZaiError]:
    """
    Send a test message with the current settings.

    Returns:
        None on success, otherwise the error that occurred
    """
    try:
        async with config.create_client(api_key=api_key) as client:
            await client.test_connection()
    except ZaiError as e:
        logger.info(f"Configuration test failed: {e}")
        return e
    return None


async def run_setup_wizard(config: ZaiConfig, console: Console, test: bool = True) -> int:
    """Full interactive setup: API key, model, connection test."""
    console.print(Panel.fit("[bold]Z.ai Coding Agent Setup[/bold]", border_style="cyan"))

    if config.api_key_source() == "environment":
        console.print(f"  [green]✓[/green] Z.ai API key found in environment variables ({API_KEY_ENV_VAR})")
    else:
        api_key = prompt_api_key(console)
        config.set_api_key(api_key)
        console.print("  [green]✓[/green] API key saved")

    model = select_model(console, current=config.settings.model)
    model = config.set_model(model)
    console.print(f"  [green]✓[/green] Model set to: [cyan]{model}[/cyan]")

    if test:
        with console.status("Testing configuration..."):
            error = await test_configuration(config)
        if error is not None:
            console.print(f"  [red]✗[/red] Configuration test failed: {create_user_friendly_message(error)}")
            console.print("  [yellow]Please check your API key and try again.[/yellow]")
            return 1
        console.print("  [green]✓[/green] Configuration test successful!")

    console.print("\n[green]✓ Configuration completed![/green] You can now use 'zai' to start coding with AI.")
    return 0


async def run_set_model(config: ZaiConfig, console: Console, model: Optional[str], test: bool = True) -> int:
    """Change the default model, choosing interactively when no name is given."""
    if model is None:
        model = select_model(console, current=config.settings.model)

    try:
        model = config.set_model(model)
    except ValueError as e:
        console.print(f"[red]Error:[/red] {e}")
        return 1

    console.print(f"  [green]✓[/green] Model updated to: [cyan]{model}[/cyan]")

    if not config.settings.is_configured:
        console.print("  [yellow]⚠[/yellow] API key not set. Please run 'zai config' to set up your API key.")
        return 0

    if test:
        with console.status("Testing configuration..."):
            error = await test_configuration(config)
        if error is not None:
            console.print(f"  [red]✗[/red] Model test failed: {create_user_friendly_message(error)}")
            return 1
        console.print("  [green]✓[/green] Model test successful!")

    return 0


async def run_set_key(config: ZaiConfig, console: Console, test: bool = True) -> int:
    """Replace the stored API key."""
    api_key = prompt_api_key(console, "Enter your new Z.ai API key")
    config.set_api_key(api_key)
    console.print("  [green]✓[/green] API key updated")

    if config.api_key_source() == "environment":
        console.print(
            f"  [yellow]⚠[/yellow] {API_KEY_ENV_VAR} is set and takes precedence over the saved key."
        )

    if test:
        with console.status("Testing API key..."):
            error = await test_configuration(config, api_key=api_key)
        if error is not None:
            console.print(f"  [red]✗[/red] API key test failed: {create_user_friendly_message(error)}")
            return 1
        console.print("  [green]✓[/green] API key test successful!")

    return 0


def show_config(config: ZaiConfig, console: Console) -> int:
    """Print the effective configuration with the key masked."""
    summary = config.get_config_summary()

    config_table = Table(title="Z.ai Configuration", show_header=True, header_style="bold magenta")
    config_table.add_column("Setting", style="cyan")
    config_table.add_column("Value", style="green")

    if summary["api_key"]:
        source = summary["api_key_source"]
        config_table.add_row("API Key", f"{summary['api_key']} [dim]({source})[/dim]" if source else summary["api_key"])
    else:
        config_table.add_row("API Key", "[red]Not set[/red]")

    if summary["model_is_default"]:
        config_table.add_row("Model", f"{DEFAULT_MODEL} [dim](default)[/dim]")
    else:
        config_table.add_row("Model", summary["model"])

    config_table.add_row("Host", summary["host"])
    config_table.add_row("Timeout", f"{summary['timeout']}s")
    config_table.add_row("Config File", summary["config_file"]["path"])
    if "env_file" in summary:
        config_table.add_row("Env File", summary["env_file"])

    console.print(config_table)

    for error in summary["config_file"]["errors"]:
        console.print(f"[yellow]Warning:[/yellow] {error}")
    for key, value in summary.get("invalid_settings", {}).items():
        console.print(f"[yellow]Warning:[/yellow] ignored invalid value for '{key}': {value}")

    return 0
