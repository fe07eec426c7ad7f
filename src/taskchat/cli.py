"""Typer CLI for taskchat."""

from __future__ import annotations

import json
import logging
from typing import Annotated, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from taskchat.config import get_settings
from taskchat.gateway import GatewayError, ToolGateway
from taskchat.llm import OllamaClient
from taskchat.memory import ConversationWindow
from taskchat.session import ChatSession

app = typer.Typer(
    name="taskchat",
    help="Chat with your task scheduler through a local language model.",
    no_args_is_help=True,
)
console = Console()

EXIT_COMMANDS = ("exit", "quit")
HISTORY_COMMANDS = ("memory", "history")
CLEAR_COMMAND = "clear memory"


def _confirm(message: str) -> bool:
    return typer.confirm(message, default=False)


def _get_gateway() -> ToolGateway:
    settings = get_settings()
    return ToolGateway(settings.gateway_url, timeout=settings.request_timeout)


def _build_session(max_turns: int | None = None) -> ChatSession:
    settings = get_settings()
    window = ConversationWindow(
        max_turns=max_turns or settings.max_turns,
        keywords=settings.summary_keywords,
    )
    llm = OllamaClient(
        settings.ollama_url,
        model=settings.ollama_model,
        temperature=settings.temperature,
        timeout=settings.request_timeout,
    )
    return ChatSession(window, llm, _get_gateway(), console=console, confirm=_confirm)


@app.callback()
def main(
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Enable debug logging")] = False,
) -> None:
    level = logging.DEBUG if verbose else get_settings().log_level.upper()
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


@app.command()
def chat(
    max_turns: Annotated[Optional[int], typer.Option("--max-turns", min=1, help="Turns kept in the conversation window")] = None,
) -> None:
    """Start an interactive chat with the task scheduler."""
    session = _build_session(max_turns)
    try:
        if not session.llm.is_available():
            console.print(f"[red]Ollama not reachable at {session.llm.base_url}.[/red]")
            raise typer.Exit(1)

        console.print("Connecting to tool gateway...")
        try:
            tools = session.connect()
        except GatewayError as e:
            console.print(f"[red]Failed to connect to tool gateway: {escape(str(e))}[/red]")
            raise typer.Exit(1)

        console.print("[green]Connected![/green] Available tools:")
        for tool in tools:
            console.print(f"  - {tool['name']}")
        console.print(
            '\nType [bold]memory[/bold] to see history, [bold]clear memory[/bold] to reset, '
            "or [bold]exit[/bold] to quit.\n"
        )

        try:
            _converse(session)
        except KeyboardInterrupt:
            console.print("\nShutting down...")
            session.farewell()
    finally:
        session.close()


def _converse(session: ChatSession) -> None:
    while True:
        try:
            user_input = console.input("[bold]You:[/bold] ").strip()
        except EOFError:
            session.farewell()
            return

        command = user_input.lower()
        if not command:
            continue
        if command in EXIT_COMMANDS:
            session.farewell()
            return
        if command in HISTORY_COMMANDS:
            session.show_history()
            continue
        if command == CLEAR_COMMAND:
            session.reset()
            continue

        session.handle(user_input)
        console.print("\n" + "-" * 50)


@app.command()
def tools() -> None:
    """List the tools exposed by the gateway."""
    gateway = _get_gateway()
    try:
        catalog = gateway.list_tools()
    except GatewayError as e:
        console.print(f"[red]{escape(str(e))}[/red]")
        raise typer.Exit(1)
    finally:
        gateway.close()

    if not catalog:
        console.print("No tools found.")
        return

    table = Table(title="Tools")
    table.add_column("Name")
    table.add_column("Description")
    table.add_column("Required")
    for tool in catalog:
        required = tool.get("inputSchema", {}).get("required", [])
        table.add_row(tool["name"], tool.get("description", ""), ", ".join(required) or "-")
    console.print(table)


@app.command()
def call(
    action: Annotated[str, typer.Argument(help="Tool name, e.g. list_tasks")],
    args: Annotated[str, typer.Option("--args", "-a", help="Tool arguments as a JSON object")] = "{}",
) -> None:
    """Invoke one tool directly, without the language model."""
    try:
        parameters = json.loads(args)
    except json.JSONDecodeError as e:
        console.print(f"[red]Invalid JSON: {e}[/red]")
        raise typer.Exit(1)
    if not isinstance(parameters, dict):
        console.print("[red]Arguments must be a JSON object.[/red]")
        raise typer.Exit(1)

    gateway = _get_gateway()
    try:
        result = gateway.execute(action, parameters)
    except GatewayError as e:
        console.print(f"[red]{escape(str(e))}[/red]")
        raise typer.Exit(1)
    finally:
        gateway.close()

    console.print_json(json.dumps(result))
    if not result.get("success"):
        raise typer.Exit(1)
