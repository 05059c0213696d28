"""Typer CLI for Entitlement-Engine."""

import asyncio
from datetime import datetime

import typer
from rich.console import Console
from rich.table import Table

app = typer.Typer(
    name="entitlements",
    help="Entitlement-Engine: plans, seat capacity and sales quotas",
)
console = Console()


async def _with_session(func):
    from entitlement_engine.deps import get_db

    db = get_db()
    await db.init()
    try:
        async with db.get_session() as session:
            return await func(session)
    finally:
        await db.close()


@app.command()
def serve(
    host: str = typer.Option("0.0.0.0", help="Bind host"),
    port: int = typer.Option(8080, help="Bind port"),
):
    """Start the Entitlement-Engine API server."""
    import uvicorn
    from entitlement_engine.app import create_app
    from entitlement_engine.common.config import get_settings
    from entitlement_engine.common.logging import setup_logging

    setup_logging(get_settings().log_level)
    console.print(f"[bold green]Starting Entitlement-Engine on {host}:{port}[/bold green]")
    uvicorn.run(create_app(), host=host, port=port)


@app.command()
def plan(
    owner_id: str = typer.Argument(..., help="Owner account id"),
):
    """Show the authoritative plan of an owner."""
    from entitlement_engine.common.exceptions import EntitlementError
    from entitlement_engine.deps import get_plan_resolver
    from entitlement_engine.plans.resolver import NOT_PROVISIONED

    resolver = get_plan_resolver()
    try:
        current = asyncio.run(
            _with_session(lambda s: resolver.refresh(s, owner_id))
        )
    except EntitlementError as e:
        console.print(f"[bold red]{e.code}[/bold red] — {e.message}")
        raise typer.Exit(1)

    if current is NOT_PROVISIONED:
        console.print(f"[yellow]NOT_PROVISIONED[/yellow] — no subscription for {owner_id}")
        raise typer.Exit(2)

    table = Table(title=f"Plan for {owner_id}")
    table.add_column("Field")
    table.add_column("Value")
    table.add_row("Plan", current.display_name)
    table.add_row("Status", current.status.value)
    table.add_row("Max sellers", "unlimited" if current.unlimited else str(current.max_sellers))
    table.add_row("Price / month", f"{current.price_per_month / 100:.2f}")
    table.add_row("Trial days left", str(current.trial_days_left()))
    console.print(table)


@app.command()
def capacity(
    owner_id: str = typer.Argument(..., help="Owner account id"),
):
    """Show seat usage (real + virtual) against the plan limit."""
    from entitlement_engine.common.exceptions import EntitlementError
    from entitlement_engine.deps import get_capacity_guard

    guard = get_capacity_guard()
    try:
        report = asyncio.run(
            _with_session(lambda s: guard.check_capacity(s, owner_id))
        )
    except EntitlementError as e:
        console.print(f"[bold red]{e.code}[/bold red] — {e.message}")
        raise typer.Exit(1)

    limit = "unlimited" if report.remaining is None else str(report.max_sellers)
    colour = "green" if report.can_add_more else "red"
    console.print(
        f"[bold {colour}]{report.total_sellers}/{limit}[/bold {colour}] "
        f"({report.real_sellers} real + {report.virtual_sellers} virtual)"
    )
    if report.degraded:
        console.print("[yellow]Seat counts unavailable, reporting no capacity[/yellow]")
    if not report.can_add_more:
        raise typer.Exit(1)


@app.command()
def reconcile(
    account_id: str = typer.Argument(..., help="Account id to repair"),
):
    """Run the integrity sweep for one account."""
    from entitlement_engine.common.exceptions import EntitlementError
    from entitlement_engine.deps import get_reconciler

    reconciler = get_reconciler()
    try:
        report = asyncio.run(
            _with_session(lambda s: reconciler.sweep(s, account_id))
        )
    except EntitlementError as e:
        console.print(f"[bold red]{e.code}[/bold red] — {e.message}")
        raise typer.Exit(1)

    if report.clean:
        console.print(f"[bold green]CLEAN[/bold green] — nothing to repair for {account_id}")
        return
    console.print(f"[bold]{report.changes} change(s)[/bold] for {account_id}")
    console.print(f"  Role repaired: {report.role_repaired}")
    console.print(f"  Pending requests removed: {report.pending_requests_removed}")
    console.print(f"  Memberships removed: {report.memberships_removed}")
    console.print(f"  Entitlement created: {report.entitlement_created}")
    console.print(f"  Stale requests removed: {report.stale_requests_removed}")
    console.print(f"  Team flag synced: {report.team_flag_synced}")


@app.command("trial-days")
def trial_days(
    end_date: str = typer.Argument(..., help="Trial end date (ISO 8601)"),
):
    """Compute whole trial days left until END_DATE (offline)."""
    from entitlement_engine.plans.trial import days_left

    try:
        end = datetime.fromisoformat(end_date)
    except ValueError:
        console.print(f"[bold red]Invalid date:[/bold red] {end_date}")
        raise typer.Exit(1)
    console.print(f"[bold]{days_left(end)}[/bold]")


@app.command()
def health(
    url: str = typer.Option("http://localhost:8080", help="Server URL"),
):
    """Check Entitlement-Engine server health."""
    import httpx

    try:
        resp = httpx.get(f"{url}/health", timeout=5)
        data = resp.json()
        console.print(
            f"[bold green]{data['status']}[/bold green] — v{data['version']} "
            f"(database: {data['database']})"
        )
    except Exception as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


if __name__ == "__main__":
    app()
