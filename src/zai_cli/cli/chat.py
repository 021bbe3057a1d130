"""
Chat front end: one-shot queries and the interactive session loop.

The interactive loop reads input synchronously and runs each reply in its
own event loop, so Ctrl+C at the prompt ends the session while Ctrl+C
during a reply only cancels that reply.
"""

import asyncio
import sys
from typing import Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from ..core.client import ZaiError, create_user_friendly_message, get_model_info
from ..core.session import ChatSession

EXIT_COMMANDS = {"exit", "quit", "q"}


async def send_message(
    session: ChatSession,
    message: str,
    stream: bool,
    console: Console,
    show_usage: bool = False,
) -> None:
    """
    Send one message and print the reply.

    The session's client is opened for the duration of the request.

    Raises:
        ZaiError: If the request fails
    """
    async with session.client:
        if stream:
            received = False
            async for chunk in session.send_stream(message):
                received = True
                console.print(chunk, end="", markup=False, highlight=False, soft_wrap=True)
            if received:
                console.print()
        else:
            with console.status("[dim]Thinking...[/dim]"):
                response = await session.send(message)
            console.print(response.text, markup=False, highlight=False, soft_wrap=True)

    if show_usage and session.usage.total_tokens:
        stats = session.statistics()
        console.print(
            f"[dim]({stats['input_tokens']} in / {stats['output_tokens']} out tokens this session)[/dim]"
        )


def run_single_query(session: ChatSession, message: str, stream: bool, console: Console) -> int:
    """
    Answer one prompt and return the process exit code.

    Raises:
        KeyboardInterrupt: If the user interrupts the request
    """
    try:
        asyncio.run(send_message(session, message, stream, console))
    except ZaiError as e:
        print_error(console, e)
        return 1
    return 0


def run_interactive(session: ChatSession, stream: bool, console: Console) -> int:
    """Run the interactive chat loop until the user leaves."""
    model_info = get_model_info(session.model)
    console.print("[bold cyan]Zai[/bold cyan] - AI coding assistant")
    console.print(f"[dim]Model: {model_info.display_name if model_info else session.model}[/dim]")
    console.print(f"[dim]Streaming: {'enabled' if stream else 'disabled'}[/dim]")
    console.print("[dim]Type 'exit', 'quit', or press Ctrl+C to exit[/dim]")
    console.print("[dim]Type '/help' for commands[/dim]\n")

    while True:
        try:
            user_input = typer.prompt("You", prompt_suffix=": ")
        except (KeyboardInterrupt, EOFError, typer.Abort):
            console.print("\n[dim]Goodbye![/dim]")
            return 0

        command = user_input.strip()
        lowered = command.lower()

        if not command:
            continue

        if lowered in EXIT_COMMANDS:
            console.print("[dim]Goodbye![/dim]")
            return 0

        elif lowered == "/help":
            show_chat_help(console)

        elif lowered == "/clear":
            session.clear()
            console.print("[dim]Conversation history cleared[/dim]")

        elif lowered == "/stats":
            show_chat_stats(session, console)

        elif lowered == "/stream":
            stream = not stream
            console.print(f"[dim]Streaming {'enabled' if stream else 'disabled'}[/dim]")

        elif lowered == "/model" or lowered.startswith("/model "):
            _switch_model(session, command[len("/model"):].strip(), console)

        elif lowered.startswith("/"):
            console.print(f"[yellow]Unknown command:[/yellow] {command}. Type '/help' for commands.")

        else:
            console.print("[blue]Zai:[/blue] ", end="")
            try:
                asyncio.run(send_message(session, command, stream, console, show_usage=True))
            except ZaiError as e:
                console.print()
                print_error(console, e)
            except KeyboardInterrupt:
                console.print("\n[dim]Response cancelled[/dim]")


def _switch_model(session: ChatSession, name: str, console: Console) -> None:
    if not name:
        console.print(f"[dim]Current model: {session.model}[/dim]")
        return
    try:
        session.model = name
    except ValueError as e:
        console.print(f"[red]Error:[/red] {e}")
        return
    console.print(f"[dim]Model switched to {session.model} for this session[/dim]")


def show_chat_help(console: Console) -> None:
    """Show help for chat commands."""
    help_text = """[bold]Chat Commands:[/bold]

[cyan]/help[/cyan]          - Show this help message
[cyan]/stats[/cyan]         - Show conversation statistics
[cyan]/clear[/cyan]         - Clear conversation history
[cyan]/stream[/cyan]        - Toggle streaming mode
[cyan]/model <name>[/cyan]  - Switch model for this session
[cyan]exit[/cyan]           - Exit the chat session

[dim]Press Ctrl+C or type 'exit' to quit[/dim]"""

    console.print(Panel(help_text, title="Help", border_style="blue"))


def show_chat_stats(session: ChatSession, console: Console) -> None:
    """Show chat session statistics."""
    stats = session.statistics()

    stats_table = Table(title="Chat Session Statistics", show_header=True, header_style="bold magenta")
    stats_table.add_column("Metric", style="cyan")
    stats_table.add_column("Value", style="green")

    stats_table.add_row("Model", stats["model"])
    stats_table.add_row("Turns", str(stats["turn_count"]))
    stats_table.add_row("Messages in History", str(stats["history_messages"]))
    stats_table.add_row("Input Tokens", str(stats["input_tokens"]))
    stats_table.add_row("Output Tokens", str(stats["output_tokens"]))
    stats_table.add_row("Total Tokens", str(stats["total_tokens"]))
    stats_table.add_row(
        "Context Used (est.)",
        f"{stats['estimated_context_tokens']} / {stats['context_limit']}",
    )
    stats_table.add_row("Session Duration", f"{round(stats['duration_minutes'], 1)} min")

    console.print(stats_table)

    if stats["trimmed_messages"]:
        console.print(f"[dim]Older messages trimmed to fit context: {stats['trimmed_messages']}[/dim]")


def print_error(console: Console, error: ZaiError) -> None:
    console.print(f"[red]Error:[/red] {create_user_friendly_message(error)}")
    if error.status:
        console.print(f"[dim]{error}[/dim]")


def read_stdin_prompt() -> Optional[str]:
    """Read a prompt piped on stdin."""
    text = sys.stdin.read().strip()
    return text or None
