"""
swarm-chat CLI: `swarm-chat` command.

Commands:
  swarm-chat auth login            Save an API key
  swarm-chat chat                  Interactive chat with live typing
  swarm-chat send <message>        One-shot message, follows the task to the end
  swarm-chat credits <cmd>         Balance, plan cost, plan purchase
"""

import asyncio
import logging
from typing import Optional

try:
    import click
    from rich.console import Console
except ImportError:
    raise SystemExit("CLI requires extras: pip install swarm-chat[cli]")

from swarm_chat.client import AsyncSwarmChat
from swarm_chat.config import load_config
from swarm_chat.view import TranscriptView

console = Console()


def _get_client(view: Optional[TranscriptView] = None, use_router: bool = True) -> AsyncSwarmChat:
    cfg = load_config()
    if not cfg.api_key:
        console.print("[red]No API key configured. Run `swarm-chat auth login` first.[/red]")
        raise SystemExit(1)
    return AsyncSwarmChat(cfg, view, use_router=use_router)


def _run(coro):
    return asyncio.run(coro)


@click.group()
@click.version_option("0.1.0")
@click.option("-v", "--verbose", is_flag=True, help="Log debug output to stderr")
def main(verbose: bool):
    """swarm-chat: talk to an agent orchestrator and watch it work."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


# Register subcommands from separate modules
from swarm_chat.cli.auth import auth
from swarm_chat.cli.chat import chat_cmd, send_cmd
from swarm_chat.cli.credits import credits

main.add_command(auth)
main.add_command(chat_cmd)
main.add_command(send_cmd)
main.add_command(credits)


if __name__ == "__main__":
    main()
