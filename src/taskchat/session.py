"""One chat session: window, model, gateway and console wired together."""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from taskchat.gateway import GatewayError, ToolGateway, describe_tools
from taskchat.llm import CompletionError, OllamaClient, ReplyParseError, build_prompt, parse_reply
from taskchat.memory import ConversationWindow
from taskchat.models import AssistantReply, Role

logger = logging.getLogger(__name__)

TASK_LIST_ACTIONS = ("list_tasks", "search_tasks")


def _format_when(value) -> str:
    if not value:
        return "-"
    try:
        return datetime.fromisoformat(value).strftime("%a %b %d, %H:%M")
    except (TypeError, ValueError):
        return str(value)


def _text(value) -> str:
    return "" if value is None else str(value)


def _task_table(tasks: list[dict], title: str) -> Table:
    table = Table(title=title)
    table.add_column("ID")
    table.add_column("Title")
    table.add_column("Start")
    table.add_column("End")
    table.add_column("Tags")
    table.add_column("Description")
    for t in tasks:
        table.add_row(
            str(t.get("id") or t.get("_id") or "-"),
            escape(_text(t.get("title"))),
            _format_when(t.get("start")),
            _format_when(t.get("end")),
            ", ".join(_text(tag) for tag in t.get("tags") or []) or "-",
            escape(_text(t.get("description"))),
        )
    return table


class ChatSession:
    """Drives one conversation: prompt, parse, confirm, execute, remember."""

    def __init__(
        self,
        window: ConversationWindow,
        llm: OllamaClient,
        gateway: ToolGateway,
        console: Console | None = None,
        confirm: Callable[[str], bool] | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.window = window
        self.llm = llm
        self.gateway = gateway
        self.console = console or Console()
        self.confirm = confirm or (lambda message: False)
        self.clock = clock
        self.tools: list[dict] = []
        self.tools_info = ""

    def connect(self) -> list[dict]:
        """Fetch the tool catalog; raises GatewayError if the gateway is down."""
        self.tools = self.gateway.list_tools()
        self.tools_info = describe_tools(self.tools)
        logger.info("Loaded %d tool(s) from gateway", len(self.tools))
        return self.tools

    # ------------------------------------------------------------------
    # Conversation
    # ------------------------------------------------------------------

    def ask_model(self, user_input: str) -> AssistantReply:
        self.window.record(Role.USER, user_input)
        prompt = build_prompt(
            self.tools_info, self.window.render(), user_input, self.clock().date()
        )
        with self.console.status("Thinking..."):
            text = self.llm.generate(prompt)
        return parse_reply(text)

    def handle(self, user_input: str) -> None:
        """Process one user message end to end. Boundary errors never escape."""
        try:
            reply = self.ask_model(user_input)

            if reply.needs_clarification:
                self._clarify(reply)
                return

            if reply.explanation:
                self.console.print(f"\n[bold]Assistant:[/bold] {escape(reply.explanation)}")

            if reply.validation_summary:
                self.console.print(f"\n[cyan]Action summary:[/cyan] {escape(reply.validation_summary)}")
                if not self.confirm("Do you want me to proceed with this action?"):
                    self.console.print("[yellow]Action cancelled.[/yellow]")
                    self.window.record(Role.ASSISTANT, "Action was cancelled by user")
                    return

            self.console.print("[dim]Executing...[/dim]")
            result = self.gateway.execute(reply.action, reply.parameters)
            self.window.record(Role.ASSISTANT, self._report(reply, result))

        except (CompletionError, ReplyParseError, GatewayError) as e:
            logger.warning("Turn failed: %s", e)
            self.console.print(f"[red]Error: {escape(str(e))}[/red]")
            self.console.print("Please try rephrasing your request.")
            self.window.record(Role.ASSISTANT, f"Error occurred: {e}")

    def _clarify(self, reply: AssistantReply) -> None:
        self.console.print(f"\n[yellow]{escape(reply.explanation)}[/yellow]")
        if not reply.missing_info:
            return
        self.console.print("\nI need the following information:")
        for i, item in enumerate(reply.missing_info, 1):
            self.console.print(f"  {i}. {escape(item)}")
        self.console.print("\nPlease provide more details and try again.")
        self.window.record(
            Role.ASSISTANT, f"Asked for clarification: {', '.join(reply.missing_info)}"
        )

    def _report(self, reply: AssistantReply, result: dict) -> str:
        """Show a tool result and return the assistant turn describing it."""
        response = reply.explanation or "Action completed"

        if not result.get("success"):
            error = _text(result.get("error")) or "Unknown error"
            self.console.print(f"[red]Error: {escape(error)}[/red]")
            return f"{response}. Error: {error}"

        if reply.action in TASK_LIST_ACTIONS and "tasks" in result:
            raw = result["tasks"]
            tasks = [t for t in raw if isinstance(t, dict)] if isinstance(raw, list) else []
            if not tasks:
                self.console.print("No tasks found.")
                return f"{response}. No tasks found."
            self.console.print(_task_table(tasks, f"Found {len(tasks)} task(s)"))
            titles = ", ".join(_text(t.get("title")) for t in tasks)
            return f"{response}. Found {len(tasks)} tasks: {titles}."

        task = result.get("task")
        if isinstance(task, dict) and task:
            message = _text(result.get("message")) or "Task saved"
            self.console.print(f"[green]{escape(message)}[/green]")
            self.console.print(_task_table([task], "Task"))
            return (
                f"{response}. {message}: \"{_text(task.get('title'))}\" "
                f"scheduled for {_format_when(task.get('start'))}."
            )

        if result.get("message"):
            message = _text(result["message"])
            self.console.print(f"[green]{escape(message)}[/green]")
            return f"{response}. {message}"

        self.console.print("[green]Action completed successfully![/green]")
        return f"{response}. Action completed successfully."

    # ------------------------------------------------------------------
    # Memory commands
    # ------------------------------------------------------------------

    def show_history(self) -> None:
        snap = self.window.snapshot()
        self.console.print("\n[bold]Conversation history[/bold]")
        if snap.summary:
            self.console.print(f"Summary: {snap.summary}\n", markup=False)
        for i, t in enumerate(snap.turns, 1):
            speaker = "You" if t.role == Role.USER else "Assistant"
            self.console.print(
                f"{i}. [{t.timestamp.strftime('%H:%M:%S')}] {speaker}: {t.content}",
                markup=False,
            )
        self.console.print(f"\nTotal messages: {snap.total_turns}")

    def reset(self) -> None:
        self.window.clear()
        self.console.print("[green]Conversation history cleared![/green]")

    def farewell(self) -> None:
        snap = self.window.snapshot()
        self.console.print("\n[bold]Conversation summary[/bold]")
        if snap.summary:
            self.console.print(snap.summary, markup=False)
        self.console.print(f"Total messages in this session: {snap.total_turns}")
        self.console.print("Goodbye!")

    def close(self) -> None:
        self.llm.close()
        self.gateway.close()
