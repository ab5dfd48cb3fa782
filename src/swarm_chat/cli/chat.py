"""CLI: swarm-chat chat, swarm-chat send"""

import asyncio
from typing import Optional

import click
from rich.console import Console
from rich.text import Text

from swarm_chat.formatting import (
    KIND_LABELS,
    credits_label,
    explorer_url,
    friendly_link_name,
    group_messages,
    plan_url,
    short_hash,
    split_links,
)
from swarm_chat.errors import SwarmChatError
from swarm_chat.models.conversation import Conversation
from swarm_chat.models.message import TRANSACTION_KINDS, Message, MessageKind
from swarm_chat.view import TranscriptView

console = Console()

KIND_STYLES = {
    MessageKind.REASONING: "dim",
    MessageKind.ANSWER: "green",
    MessageKind.FINAL_ANSWER: "bold green",
    MessageKind.TRANSACTION: "bold green",
    MessageKind.USER_TRANSACTION: "bold green",
    MessageKind.AGENT_TRANSACTION: "bold yellow",
    MessageKind.ERROR: "bold red",
    MessageKind.WARNING: "yellow",
    MessageKind.AGENT_CALL: "blue",
    MessageKind.COST_INFO: "cyan",
}


def _get_client(**kwargs):
    from swarm_chat.cli.main import _get_client
    return _get_client(**kwargs)


def _run(coro):
    from swarm_chat.cli.main import _run
    return _run(coro)


class ConsoleView(TranscriptView):
    """Types agent messages straight onto the terminal."""

    def __init__(self, out: Console):
        self._out = out
        self._printed: dict[tuple[int, int], int] = {}

    def reset(self, conversation: Optional[Conversation], messages: list[Message]) -> None:
        self._printed.clear()
        if conversation is not None:
            self._out.rule(f"{conversation.title or 'New conversation'} [dim]#{conversation.id}[/dim]")
        for group in group_messages(messages):
            for message in group:
                self._header(message)
                self._out.print(self._linked(message.content, message), end="")
                self._printed[message.key] = len(message.content)
                if message.is_user:
                    self._out.print()
                self.complete(message)

    def reveal(self, message: Message, visible: str) -> None:
        if message.is_user:
            self._printed[message.key] = len(visible)
            return
        printed = self._printed.get(message.key)
        if printed is None:
            self._header(message)
            printed = 0
        delta = visible[printed:]
        if delta:
            self._out.print(Text(delta, style=KIND_STYLES.get(message.kind, "")), end="")
        self._printed[message.key] = len(visible)

    def complete(self, message: Message) -> None:
        if message.is_user:
            return
        self._out.print()
        for line in self._details(message):
            self._out.print(line, style="dim")

    def supersede(self, old: Message, new: Message) -> None:
        self._printed[new.key] = self._printed.pop(old.key, 0)

    def conversations_changed(self, conversations: list[Conversation]) -> None:
        pass

    def _header(self, message: Message) -> None:
        if message.is_user:
            self._out.print("[bold]You:[/bold] ", end="")
            return
        label = KIND_LABELS.get(message.kind, message.kind.value)
        self._out.print(f"[bold]Agent[/bold] [dim]({label})[/dim]: ", end="")

    def _linked(self, text: str, message: Message) -> Text:
        out = Text(style=KIND_STYLES.get(message.kind, "") if not message.is_user else "")
        for chunk, is_url in split_links(text):
            if is_url:
                out.append(friendly_link_name(chunk), style=f"underline link {chunk}")
            else:
                out.append(chunk)
        return out

    @staticmethod
    def _details(message: Message) -> list[str]:
        lines = []
        if message.kind in TRANSACTION_KINDS and message.transaction_hash:
            extra = credits_label(message.credits_consumed)
            lines.append(f"  tx {short_hash(message.transaction_hash)} {explorer_url(message.transaction_hash)}"
                         + (f" ({extra})" if extra else ""))
            url = plan_url(message.plan_id)
            if url:
                lines.append(f"  plan {url}")
        if message.attachments and message.attachments.parts:
            media = message.attachments.media_type or message.attachments.mime_type
            for part in message.attachments.parts:
                lines.append(f"  [{media}] {part}")
        return lines


class JsonView(TranscriptView):
    """Prints one JSON document per completed message."""

    def complete(self, message: Message) -> None:
        click.echo(message.model_dump_json(exclude_none=True))


@click.command("chat")
@click.option("--no-router", is_flag=True, help="Send straight to the agent, skip the credit gate")
def chat_cmd(no_router: bool):
    """Interactive chat. /new starts a conversation, /list shows them, /switch N changes."""

    async def _chat():
        client = _get_client(view=ConsoleView(console), use_router=not no_router)
        await client.connect()
        if client.credits is not None:
            console.print(f"[dim]Credits: {client.credits}[/dim]")
        console.print("[cyan]Type your message (/new, /list, /switch N, /quit)[/cyan]\n")
        try:
            while True:
                msg = await asyncio.to_thread(click.prompt, "You", prompt_suffix=": ")
                cmd = msg.strip()
                if cmd.lower() in ("/quit", "/exit"):
                    break
                if cmd == "/new":
                    client.new_conversation()
                elif cmd == "/list":
                    for conv in client.conversations():
                        marker = "*" if conv.id == client.engine.active_id else " "
                        console.print(f"{marker} {conv.id}: {conv.title}")
                elif cmd.startswith("/switch"):
                    _, _, target = cmd.partition(" ")
                    if not target.strip().isdigit():
                        console.print("[yellow]Usage: /switch N[/yellow]")
                        continue
                    try:
                        client.switch(int(target))
                    except SwarmChatError as e:
                        console.print(f"[red]{e}[/red]")
                else:
                    await client.send(msg)
        except (KeyboardInterrupt, EOFError, click.Abort):
            pass
        finally:
            await client.aclose()

    _run(_chat())


@click.command("send")
@click.argument("message")
@click.option("--json-output", "--json", is_flag=True)
@click.option("--timeout", default=600.0, type=float, help="Seconds to follow the task")
@click.option("--no-router", is_flag=True)
def send_cmd(message: str, json_output: bool, timeout: float, no_router: bool):
    """Send a one-shot message and follow the task until its stream ends."""

    async def _send():
        view = JsonView() if json_output else ConsoleView(console)
        client = _get_client(view=view, use_router=not no_router)
        await client.connect()
        try:
            task_id = await client.send(message)
            if task_id and not json_output:
                console.print(f"[dim]Task: {task_id}[/dim]")
            if not await client.follow(timeout=timeout):
                console.print("[yellow]Stopped following: timeout reached.[/yellow]")
        finally:
            await client.aclose()

    _run(_send())
