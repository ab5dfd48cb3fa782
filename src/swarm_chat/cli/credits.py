"""CLI: swarm-chat credits balance|cost|order"""

import click
from rich.console import Console

from swarm_chat.formatting import explorer_url, short_hash

console = Console()


def _get_client():
    from swarm_chat.cli.main import _get_client
    return _get_client()


def _run(coro):
    from swarm_chat.cli.main import _run
    return _run(coro)


@click.group()
def credits():
    """Credit balance and plan purchase."""


@credits.command("balance")
def credits_balance():
    """Show the current credit balance."""

    async def _balance():
        async with _get_client() as client:
            balance = await client.refresh_credits()
        if balance is None:
            console.print("[yellow]Could not fetch the credit balance.[/yellow]")
        else:
            console.print(f"Credits: [bold]{balance}[/bold]")

    _run(_balance())


@credits.command("cost")
def credits_cost():
    """Show what a plan purchase costs."""

    async def _cost():
        async with _get_client() as client:
            cost = await client.plan_cost()
        console.print(f"Plan price: [bold]{cost.plan_price}[/bold] for {cost.plan_credits} credits")

    _run(_cost())


@credits.command("order")
@click.confirmation_option(prompt="Buy a new plan?")
def credits_order():
    """Order a plan and top up credits."""

    async def _order():
        async with _get_client() as client:
            with console.status("Ordering plan..."):
                result = await client.order_plan()
            balance = client.credits
        if not result.success:
            console.print(f"[red]{result.message or 'Order failed.'}[/red]")
            raise SystemExit(1)
        console.print(f"[green]Plan ordered.[/green] {result.message or ''}")
        if result.tx_hash:
            console.print(f"[dim]tx {short_hash(result.tx_hash)} {explorer_url(result.tx_hash)}[/dim]")
        if balance is not None:
            console.print(f"Credits: [bold]{balance}[/bold]")

    _run(_order())
