"""
Main CLI application entry point.

This module contains the main Typer application and command handlers
for the ``zai`` command.
"""

from typing import Any, List, Optional
import asyncio
import logging
import sys

import typer
from rich.console import Console

from zai_cli import VERSION
from zai_cli.core.config import API_KEY_ENV_VAR, ZaiConfig
from zai_cli.core.client import ConfigurationError
from zai_cli.core.prompts import get_system_prompt
from zai_cli.core.session import ChatSession
from zai_cli.utils.log_setup import setup_logging
from zai_cli.ui.prompts import render_model_table
from .chat import read_stdin_prompt, run_interactive, run_single_query
from .config_cmd import run_set_key, run_set_model, run_setup_wizard, show_config

logger = logging.getLogger(__name__)

# Create the main Typer application
app = typer.Typer(
    name="zai",
    help="Zai - AI coding assistant powered by Z.ai GLM models",
    add_completion=False,
    rich_markup_mode="rich",
)

# Rich console for output
console = Console()

COMMANDS = ("chat", "config", "models")
GLOBAL_FLAGS = ("--debug", "--version", "-v")
HELP_FLAGS = ("--help", "-h")
STDIN_PROMPT = "-"
EXIT_INTERRUPTED = 130


def version_callback(value: bool) -> None:
    """Display version information and exit."""
    if value:
        console.print(f"[bold cyan]Zai CLI[/bold cyan] version [green]{VERSION}[/green]")
        raise typer.Exit()


@app.callback()
def main_callback(
    ctx: typer.Context,
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        "-v",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
    debug: bool = typer.Option(False, "--debug", help="Enable debug logging"),
) -> None:
    """
    Zai - AI coding assistant powered by Z.ai GLM models.

    Run [cyan]zai[/cyan] for an interactive session or [cyan]zai "your prompt"[/cyan]
    for a single answer. Use [cyan]zai config[/cyan] to set up your API key.
    """
    ctx.obj = {"debug": debug}


def _load_config(ctx: typer.Context, **overrides: Any) -> ZaiConfig:
    """Build the configuration and set up logging from it."""
    obj = ctx.obj or {}
    if obj.get("debug"):
        overrides["debug"] = True

    try:
        config = ZaiConfig(overrides=overrides)
    except ConfigurationError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    settings = config.settings
    setup_logging(settings.effective_log_level, settings.log_dir)
    logger.debug(f"Loaded configuration: {settings.to_dict()}")
    return config


@app.command("chat")
def chat_command(
    ctx: typer.Context,
    message: Optional[str] = typer.Argument(None, help="Prompt to send ('-' reads it from stdin)"),
    model: Optional[str] = typer.Option(None, "--model", "-m", help="Model to use for this run"),
    stream: Optional[bool] = typer.Option(
        None, "--stream/--no-stream", help="Enable/disable streaming responses"
    ),
    system: Optional[str] = typer.Option(None, "--system", "-s", help="Custom system prompt"),
) -> None:
    """Start an interactive session or send a single prompt."""
    if message == STDIN_PROMPT:
        message = read_stdin_prompt()
        if message is None:
            console.print("[red]Error:[/red] No prompt received on stdin")
            raise typer.Exit(1)
    elif message is not None and not message.strip():
        console.print("[red]Error:[/red] Prompt cannot be empty")
        raise typer.Exit(1)

    config = _load_config(ctx, model=model)
    settings = config.settings

    if not settings.is_configured:
        console.print("[red]Error:[/red] No Z.ai API key configured.")
        console.print(f"[dim]Run 'zai config' or set the {API_KEY_ENV_VAR} environment variable[/dim]")
        raise typer.Exit(1)

    try:
        system_prompt = get_system_prompt(system, config.working_directory)
    except FileNotFoundError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    use_stream = settings.stream if stream is None else stream
    session = ChatSession(config.create_client(), system_prompt=system_prompt)

    if message is None:
        exit_code = run_interactive(session, use_stream, console)
    else:
        try:
            exit_code = run_single_query(session, message, use_stream, console)
        except KeyboardInterrupt:
            console.print("\n[dim]Interrupted[/dim]")
            raise typer.Exit(EXIT_INTERRUPTED)

    if exit_code:
        raise typer.Exit(exit_code)


@app.command("config")
def config_command(
    ctx: typer.Context,
    value: Optional[str] = typer.Argument(None, help="Model name for --model (omit to choose from a list)"),
    model: bool = typer.Option(False, "--model", "-m", help="Change the default model"),
    key: bool = typer.Option(False, "--key", "-k", help="Enter a new API key"),
    show: bool = typer.Option(False, "--show", "-s", help="Show current configuration"),
    test: bool = typer.Option(True, "--test/--no-test", help="Send a test message after changes"),
) -> None:
    """Set up the API key and default model."""
    if value is not None and not model:
        console.print("[red]Error:[/red] A model name is only accepted with --model")
        raise typer.Exit(1)

    config = _load_config(ctx)
    exit_code = asyncio.run(_async_config_command(config, value, model, key, show, test))
    if exit_code:
        raise typer.Exit(exit_code)


async def _async_config_command(
    config: ZaiConfig,
    value: Optional[str],
    model: bool,
    key: bool,
    show: bool,
    test: bool,
) -> int:
    """Async implementation of config command."""
    try:
        if show:
            return show_config(config, console)

        if key:
            exit_code = await run_set_key(config, console, test=test and not model)
            if exit_code or not model:
                return exit_code

        if model:
            return await run_set_model(config, console, value, test=test)

        return await run_setup_wizard(config, console, test=test)

    except (ConfigurationError, OSError) as e:
        console.print(f"[red]Error:[/red] {e}")
        return 1


@app.command("models")
def models_command(ctx: typer.Context) -> None:
    """List the available models."""
    config = _load_config(ctx)
    render_model_table(console, current=config.settings.model)


def route_args(args: List[str]) -> List[str]:
    """
    Insert the ``chat`` command when the arguments do not name one.

    ``zai`` and ``zai "prompt"`` are shorthands for ``zai chat`` and
    ``zai chat "prompt"``. A prompt that is itself a command name needs the
    explicit form.
    """
    index = 0
    while index < len(args) and args[index] in GLOBAL_FLAGS:
        index += 1

    if index < len(args) and (args[index] in COMMANDS or args[index] in HELP_FLAGS):
        return list(args)

    return args[:index] + ["chat"] + args[index:]


def main() -> None:
    """Entry point for the CLI application."""
    app(args=route_args(sys.argv[1:]), prog_name="zai")


if __name__ == "__main__":
    main()
