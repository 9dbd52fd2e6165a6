"""Main CLI entry point using Typer."""

from datetime import timedelta
from typing import List, NoReturn, Optional

import typer
from rich.console import Console
from rich.table import Table

from ..cache import CostCache, FileBackend
from ..cost.orchestrator import AccountFailure, CostOrchestrator
from ..errors import AuthError, CloudBridgeError, ConfigError, UnsupportedProviderError
from ..models.cost import CostSummary, CostTrend
from ..utils.dates import parse_day
from ..utils.export import export_data, summary_rows, trend_rows
from ..utils.logging import setup_logging
from ..utils.progress import spinner
from .config import Config

EXIT_CONFIG = 1
EXIT_UNEXPECTED = 2
EXIT_AUTH = 3

app = typer.Typer(
    name="cloudbridge",
    help="Multi-cloud cost reporting CLI",
    add_completion=False,
)

console = Console()

config: Optional[Config] = None


@app.callback()
def main(
    config_file: Optional[str] = typer.Option(None, "--config", "-c", help="Path to config YAML"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Suppress output except errors"),
    no_color: bool = typer.Option(False, "--no-color", help="Disable colored output"),
):
    """Multi-cloud cost reporting CLI."""
    global config

    try:
        config = Config.load(config_file)
    except ConfigError as e:
        console.print(f"✗ {e}", style="bold red")
        raise typer.Exit(code=EXIT_CONFIG)

    log_level = "ERROR" if quiet else ("DEBUG" if verbose else config.log_level)
    setup_logging(level=log_level, log_file=config.log_file)

    if no_color:
        console.no_color = True


def _fail(error: Exception) -> NoReturn:
    """Print an error and exit with the code matching its kind."""
    if isinstance(error, AuthError):
        console.print(f"✗ {error}", style="bold red")
        console.print("Check the account's access key and secret.")
        raise typer.Exit(code=EXIT_AUTH)
    if isinstance(error, (ConfigError, UnsupportedProviderError)):
        console.print(f"✗ {error}", style="bold red")
        raise typer.Exit(code=EXIT_CONFIG)
    console.print(f"✗ Error: {error}", style="bold red")
    raise typer.Exit(code=EXIT_UNEXPECTED)


def build_orchestrator(cfg: Config) -> CostOrchestrator:
    """Wire accounts, the file cache and timeouts from config."""
    cache = CostCache(FileBackend(cfg.cache_dir), ttl=timedelta(hours=cfg.cache_ttl_hours))
    return CostOrchestrator(
        cfg.build_accounts(),
        cache=cache,
        fetch_timeout=cfg.fetch_timeout,
        batch_timeout=cfg.batch_timeout,
        max_workers=cfg.max_workers,
    )


def _money(amount, currency: str) -> str:
    return f"{amount:,.2f} {currency}"


@app.command()
def version():
    """Show version information."""
    import sys

    import httpx

    from .. import __version__

    console.print(f"cloudbridge version {__version__}")
    console.print(f"Python {sys.version.split()[0]}")
    console.print(f"httpx {httpx.__version__}")


@app.command()
def accounts():
    """List configured accounts."""
    try:
        configured = config.build_accounts()
    except CloudBridgeError as e:
        _fail(e)

    if not configured:
        console.print("No accounts configured.", style="yellow")
        console.print(f"Add accounts to {config.path}")
        return

    table = Table(title="Accounts", show_header=True, header_style="bold magenta")
    table.add_column("ID", style="cyan")
    table.add_column("Name")
    table.add_column("Provider")
    table.add_column("Region")
    table.add_column("Access Key")
    table.add_column("Enabled", justify="center")

    for account in configured:
        info = account.to_dict()
        table.add_row(
            info["id"],
            info["name"],
            account.provider_type.short_name,
            info["region"] or "-",
            info["access_key_id"],
            "✓" if account.enabled else "✗",
        )

    console.print(table)


@app.command()
def validate(account_id: str = typer.Argument(..., help="Account ID to validate")):
    """Check an account's credentials against its provider."""
    try:
        with build_orchestrator(config) as orchestrator:
            with spinner(f"Validating credentials for {account_id}...", console):
                valid = orchestrator.validate_account(account_id)
    except CloudBridgeError as e:
        _fail(e)

    if valid:
        console.print(f"✓ Credentials valid for {account_id}", style="green")
    else:
        console.print(f"✗ Credentials rejected or provider unreachable for {account_id}", style="bold red")
        raise typer.Exit(code=EXIT_AUTH)


def _print_failures(failures: List[AccountFailure]) -> None:
    if not failures:
        return
    console.print(f"\n[bold yellow]⚠️  {len(failures)} account(s) failed:[/bold yellow]")
    for failure in failures:
        label = "credentials rejected" if failure.kind == "auth" else failure.kind
        console.print(f"  • {failure.account_id} ({label}): {failure.message}")


def _summary_table(summaries: List[CostSummary]) -> Table:
    table = Table(title="Cost Summary", show_header=True, header_style="bold magenta")
    table.add_column("Account", style="cyan")
    table.add_column("Provider")
    table.add_column("Current Month", justify="right")
    table.add_column("Last Month", justify="right")
    table.add_column("Change", justify="right")
    table.add_column("Top Service")

    for summary in summaries:
        change = summary.month_over_month_change_pct
        style = "red" if change > 0 else "green"
        top = summary.current_month_details[0].service if summary.current_month_details else "-"
        table.add_row(
            summary.account_name or summary.account_id,
            summary.provider,
            _money(summary.current_month_cost, summary.currency),
            _money(summary.last_month_cost, summary.currency),
            f"[{style}]{change:+.1f}%[/{style}]",
            top,
        )
    return table


@app.command()
def summary(
    force: bool = typer.Option(False, "--force", "-f", help="Ignore cached data"),
    details: bool = typer.Option(False, "--details", help="Show per-service breakdown"),
    export: Optional[str] = typer.Option(None, "--export", help="Export to .json or .csv"),
):
    """Current vs. last month cost for every enabled account."""
    try:
        with build_orchestrator(config) as orchestrator:
            with spinner("Fetching cost summaries...", console):
                batch = orchestrator.refresh_batch(force=force)
    except CloudBridgeError as e:
        _fail(e)

    summaries, failures = batch.summaries, batch.failures

    if summaries:
        console.print(_summary_table(summaries))
    else:
        console.print("No cost data available.", style="yellow")

    if details:
        for item in summaries:
            if not item.current_month_details:
                continue
            console.print(f"\n[bold]{item.account_name}[/bold]")
            for service in item.current_month_details:
                console.print(f"  {service.service}: {_money(service.amount, service.currency)}")

    _print_failures(failures)

    if export:
        try:
            path = export_data([s.to_dict() for s in summaries], summary_rows(summaries), export)
        except ValueError as e:
            console.print(f"✗ {e}", style="bold red")
            raise typer.Exit(code=EXIT_CONFIG)
        console.print(f"\n✓ Exported to {path}", style="green")


def _trend_table(trend: CostTrend) -> Table:
    table = Table(title=f"Daily Cost: {trend.account_id}", show_header=True, header_style="bold magenta")
    table.add_column("Date", style="cyan")
    table.add_column("Amount", justify="right")

    for day in trend.daily_costs:
        table.add_row(day.date.isoformat(), _money(day.amount, trend.currency))
    return table


@app.command()
def trend(
    account_id: str = typer.Argument(..., help="Account ID"),
    start: Optional[str] = typer.Option(None, "--start", help="First day (YYYY-MM-DD)"),
    end: Optional[str] = typer.Option(None, "--end", help="Last day (YYYY-MM-DD)"),
    force: bool = typer.Option(False, "--force", "-f", help="Ignore cached data"),
    export: Optional[str] = typer.Option(None, "--export", help="Export to .json or .csv"),
):
    """Daily cost trend for one account."""
    try:
        start_day = parse_day(start) if start else None
        end_day = parse_day(end) if end else None
        with build_orchestrator(config) as orchestrator:
            with spinner(f"Fetching cost trend for {account_id}...", console):
                result = orchestrator.refresh_trend(account_id, start=start_day, end=end_day, force=force)
    except CloudBridgeError as e:
        _fail(e)

    if not result.daily_costs:
        console.print(f"No daily cost data for {account_id}.", style="yellow")
    else:
        console.print(_trend_table(result))
        console.print(
            f"\nTotal: {_money(result.total, result.currency)}  "
            f"Average: {_money(result.average, result.currency)}  "
            f"Max: {_money(result.maximum, result.currency)}  "
            f"Min: {_money(result.minimum, result.currency)}"
        )

    if export:
        try:
            path = export_data(result.to_dict(), trend_rows(result), export)
        except ValueError as e:
            console.print(f"✗ {e}", style="bold red")
            raise typer.Exit(code=EXIT_CONFIG)
        console.print(f"\n✓ Exported to {path}", style="green")


cache_app = typer.Typer(help="Cache management commands")
app.add_typer(cache_app, name="cache")


@cache_app.command("clear")
def cache_clear(account_id: Optional[str] = typer.Argument(None, help="Only clear this account")):
    """Drop cached cost data so the next refresh hits the providers."""
    cache = CostCache(FileBackend(config.cache_dir))
    if account_id:
        removed = cache.invalidate_account(account_id)
    else:
        removed = cache.invalidate_all()
    console.print(f"✓ Removed {removed} cache entr{'y' if removed == 1 else 'ies'}", style="green")


def cli_main():
    """Entry point for console script."""
    app()


if __name__ == "__main__":
    cli_main()
