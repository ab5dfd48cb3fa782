"""CLI: swarm-chat auth login|status|logout"""

from typing import Optional

import click
from rich.console import Console

from swarm_chat.config import CONFIG_FILE, load_config, save_config

console = Console()


@click.group()
def auth():
    """API key management."""


@auth.command("login")
@click.option("--base-url", default=None, help="Backend base URL")
@click.option("--events-url", default=None, help="Orchestrator event stream URL")
def auth_login(base_url: Optional[str], events_url: Optional[str]):
    """Save an API key (and optionally endpoints) to the config file."""
    cfg = load_config(env={})
    api_key = click.prompt("API key", hide_input=True)
    updates = {"api_key": api_key.strip()}
    if base_url:
        updates["base_url"] = base_url
    if events_url:
        updates["events_url"] = events_url
    save_config(cfg.model_copy(update=updates))
    console.print("[green]API key saved.[/green]")
    console.print(f"[dim]Config written to {CONFIG_FILE}[/dim]")


@auth.command("status")
def auth_status():
    """Show the configured endpoints and whether a key is set."""
    cfg = load_config()
    if cfg.api_key:
        console.print(f"[green]API key set[/green] ({cfg.api_key[:4]}…)")
    else:
        console.print("[yellow]No API key. Run `swarm-chat auth login`.[/yellow]")
    console.print(f"Backend: {cfg.base_url}")
    console.print(f"Events:  {cfg.events_url}")


@auth.command("logout")
def auth_logout():
    """Forget the saved API key."""
    cfg = load_config(env={})
    save_config(cfg.model_copy(update={"api_key": None}))
    console.print("[green]Logged out.[/green]")
