"""Main CLI entry point."""

from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

app = typer.Typer(
    name="nada",
    help="NADA wallet guard operator CLI",
    add_completion=False,
)

console = Console()


@app.command("init-db")
def init_db(
    force: bool = typer.Option(False, "--force", "-f", help="Drop and recreate tables"),
):
    """Initialize the database schema."""
    from db.connection import init_database

    with console.status("Initializing database..."):
        init_database(drop=force)
        if force:
            console.print("[yellow]Dropped existing tables[/yellow]")

    console.print("[green]Database initialized successfully[/green]")


@app.command()
def audit(
    user: str = typer.Option(..., "--user", "-u", help="User ID"),
    limit: int = typer.Option(20, "--limit", "-n", help="Number of entries"),
    failed_only: bool = typer.Option(False, "--failed-only", help="Only denied attempts"),
):
    """Show recent audit entries for a user, most recent first."""
    from db.connection import get_session
    from nada.services.ledger import SqlTransactionLedger

    with get_session() as session:
        entries = SqlTransactionLedger(session).list_audit_entries(user, limit=limit, failed_only=failed_only)

    if not entries:
        console.print("[yellow]No audit entries found[/yellow]")
        return

    table = Table(title=f"Audit Log: {user}")
    table.add_column("Timestamp", style="cyan")
    table.add_column("Action")
    table.add_column("Result", justify="center")
    table.add_column("Failed Check", style="red")
    table.add_column("Risk", justify="right")
    table.add_column("IP Address")

    for e in entries:
        details = e["details"] or {}
        fraud = details.get("fraud")
        risk = str(fraud.get("risk_score")) if isinstance(fraud, dict) else "-"
        table.add_row(
            e["timestamp"],
            e["action"],
            "[green]ok[/green]" if e["success"] else "[red]denied[/red]",
            str(details.get("failed_check") or ""),
            risk,
            e["ip_address"] or "",
        )

    console.print(table)


@app.command()
def limits(
    user: str = typer.Option(..., "--user", "-u", help="User ID"),
):
    """Show a user's current exchange quota."""
    from db.connection import get_session
    from nada.services.errors import AccountNotFoundError
    from nada.services.exchange import ExchangeService

    with get_session() as session:
        try:
            view = ExchangeService(session).get_limits(user)
        except AccountNotFoundError as e:
            console.print(f"[red]{e}[/red]")
            raise typer.Exit(code=1)

    table = Table(title=f"Exchange Limits: {user}")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("Points", str(view.points))
    table.add_row("NADA Points", str(view.nada_points))
    table.add_row("Exchange Rate", f"{view.exchange_rate} points / NADA")
    table.add_row("Max Single Exchange", str(view.max_single_exchange))
    table.add_row("Remaining Today", f"{view.remaining_today} / {view.daily_limit}")
    table.add_row("Rate Limited", "Yes" if view.rate_limited else "No")
    if view.retry_after:
        table.add_row("Retry After", f"{view.retry_after}s")

    console.print(table)


@app.command()
def score(
    user: str = typer.Option(..., "--user", "-u", help="User ID"),
    points: int = typer.Option(..., "--points", "-p", help="Points to exchange"),
    ip: Optional[str] = typer.Option(None, "--ip", help="Request IP address"),
):
    """Dry-run fraud scoring for a hypothetical exchange. Writes nothing."""
    from db.connection import get_session
    from nada.services.ledger import SqlTransactionLedger, SqlUserProfileStore
    from nada.services.wallet_guard import WalletGuard

    with get_session() as session:
        guard = WalletGuard(SqlTransactionLedger(session), SqlUserProfileStore(session))
        result = guard.check_fraud_patterns(user, points, ip_address=ip)

    colour = "red" if result.suspicious else "green"
    console.print(f"Risk score: [{colour}]{result.risk_score}[/{colour}]")
    console.print(f"Suspicious: [{colour}]{'yes' if result.suspicious else 'no'}[/{colour}]")
    for reason in result.reasons:
        console.print(f"  - {reason}")


if __name__ == "__main__":
    app()
