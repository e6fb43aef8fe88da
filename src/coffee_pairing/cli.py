"""CLI for Coffee Pairing."""

from __future__ import annotations

import asyncio
import logging
import random
from datetime import date, datetime
from pathlib import Path
from typing import Annotated

import pydantic
import structlog
import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from coffee_pairing import __version__
from coffee_pairing.core.config import DEFAULT_COFFEE_DAYS, PairingConfig, load_config
from coffee_pairing.core.errors import ConfigurationError, PairingError
from coffee_pairing.services.matching.service import MatchingService, MatchRunResult
from coffee_pairing.services.notify import FakeNotifier, create_notifier
from coffee_pairing.services.storage import (
    MatchRepository,
    UserRepository,
    create_db_engine,
)

# Configure structlog
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.dev.ConsoleRenderer(),
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)

app = typer.Typer(
    name="coffee-pairing",
    help="Coffee Pairing - weekly coffee chat introductions that avoid repeats",
    add_completion=False,
)
console = Console()


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"coffee-pairing v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        bool | None,
        typer.Option("--version", "-v", callback=version_callback, is_eager=True),
    ] = None,
) -> None:
    """Coffee Pairing CLI."""


def _configure_logging(verbose: bool) -> None:
    log_level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=log_level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True)],
    )


def _load(config_path: Path) -> PairingConfig:
    try:
        return load_config(config_path)
    except FileNotFoundError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from e
    except ConfigurationError as e:
        console.print(f"[red]{e}")
        raise typer.Exit(1) from e
    except pydantic.ValidationError as e:
        console.print(f"[red]Invalid configuration:[/red] {e}")
        raise typer.Exit(1) from e


def _parse_date(value: str | None) -> date | None:
    if value is None:
        return None
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()  # noqa: DTZ007
    except ValueError as e:
        console.print(f"[red]Invalid date:[/red] {value} (expected YYYY-MM-DD)")
        raise typer.Exit(1) from e


def _print_pairs(result: MatchRunResult) -> None:
    table = Table("#", "Person A", "Person B", "Fallback", title=f"Pairs for {result.date}")
    for i, pair in enumerate(result.pairs, start=1):
        table.add_row(str(i), pair.a, pair.b, "yes" if pair.is_fallback else "")
    console.print(table)


def _print_messages(notifier: FakeNotifier) -> None:
    for message in notifier.sent:
        console.print(f"To: {', '.join(message.recipients)}", style="dim")
        console.print(message.content, markup=False)


@app.command()
def run(
    config_path: Annotated[Path, typer.Argument(help="Path to config YAML file")],
    dry_run: Annotated[
        bool, typer.Option("--dry-run", help="Print messages instead of sending them")
    ] = False,
    on: Annotated[
        str | None, typer.Option("--date", help="Run as if today were YYYY-MM-DD")
    ] = None,
    seed: Annotated[int | None, typer.Option("--seed", help="Random seed override")] = None,
    verbose: Annotated[bool, typer.Option("--verbose", "-V", help="Verbose output")] = False,
) -> None:
    """Pair everyone scheduled for today and notify them.

    Args:
        config_path: Path to YAML configuration file.
        dry_run: If True, record messages without sending or storing matches.
        on: Date to run for (default today).
        seed: Override config seed.
        verbose: Enable verbose logging.
    """
    _configure_logging(verbose)
    config = _load(config_path)
    run_date = _parse_date(on)
    if seed is not None:
        config.seed = seed
    if dry_run:
        console.print("[yellow]DRY RUN MODE - no messages sent, no matches stored[/yellow]")
        config.persist = False

    try:
        notifier = create_notifier(config.notify, dry_run=dry_run)
    except ConfigurationError as e:
        console.print(f"[red]{e}")
        raise typer.Exit(1) from e

    engine = create_db_engine(config.database_url)
    service = MatchingService(
        config,
        UserRepository(engine),
        MatchRepository(engine),
        notifier,
        random.Random(config.seed),  # noqa: S311
    )

    async def _run() -> MatchRunResult:
        try:
            return await service.run(run_date)
        finally:
            await notifier.close()

    try:
        result = asyncio.run(_run())
    except PairingError as e:
        console.print(f"[red]Pairing failed:[/red] {e}")
        raise typer.Exit(1) from e
    except Exception as e:
        console.print(f"[red]Unexpected error:[/red] {e}")
        if verbose:
            console.print_exception()
        raise typer.Exit(1) from e
    finally:
        engine.dispose()

    if not result.pairs:
        console.print("[yellow]Nobody is scheduled for this day.[/yellow]")
        return
    _print_pairs(result)
    if isinstance(notifier, FakeNotifier):
        _print_messages(notifier)
    console.print(
        f"[bold green]{len(result.pairs)} pairs made, "
        f"{result.messages_sent} messages sent[/bold green]"
    )


@app.command()
def validate(
    config_path: Annotated[Path, typer.Argument(help="Path to config YAML file")],
) -> None:
    """Validate a configuration file without running."""
    try:
        config = load_config(config_path)
    except FileNotFoundError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from e
    except ConfigurationError as e:
        console.print(f"[red]{e}")
        raise typer.Exit(1) from e
    except Exception as e:
        console.print(f"[red]Validation error:[/red] {e}")
        raise typer.Exit(1) from e

    console.print("[green]Configuration is valid![/green]")
    console.print(f"  Database: {config.database_url}")
    console.print(f"  Fallback emails: {len(config.fallback_emails)}")
    console.print(f"  Shuffle: {config.shuffle}")
    console.print(f"  Zulip site: {config.notify.site}")


@app.command("add-user")
def add_user(
    config_path: Annotated[Path, typer.Argument(help="Path to config YAML file")],
    email: Annotated[str, typer.Argument(help="User email")],
    full_name: Annotated[str, typer.Argument(help="Full name")],
    days: Annotated[
        str, typer.Option("--days", help="Weekday digits to match on, Sunday = 0")
    ] = DEFAULT_COFFEE_DAYS,
) -> None:
    """Register a user for coffee chats."""
    config = _load(config_path)
    engine = create_db_engine(config.database_url)
    try:
        user = asyncio.run(UserRepository(engine).add_user(email, full_name, days))
    except (PairingError, ValueError) as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from e
    finally:
        engine.dispose()
    console.print(
        f"[green]Added[/green] {user.full_name} <{user.email}> on days {user.coffee_days}"
    )


@app.command()
def skip(
    config_path: Annotated[Path, typer.Argument(help="Path to config YAML file")],
    email: Annotated[str, typer.Argument(help="User email")],
) -> None:
    """Skip a user's next scheduled match."""
    config = _load(config_path)
    engine = create_db_engine(config.database_url)
    try:
        asyncio.run(UserRepository(engine).update_user(email, skip_next_match=True))
    except PairingError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from e
    finally:
        engine.dispose()
    console.print(f"[green]{email} will skip their next match[/green]")


@app.command()
def history(
    config_path: Annotated[Path, typer.Argument(help="Path to config YAML file")],
    email: Annotated[str, typer.Argument(help="User email")],
) -> None:
    """Show a user's past matches."""
    config = _load(config_path)
    engine = create_db_engine(config.database_url)
    try:
        matches = asyncio.run(MatchRepository(engine).get_history(email))
    finally:
        engine.dispose()

    if not matches:
        console.print(f"[yellow]No matches for {email}[/yellow]")
        return
    table = Table("Date", "Partner", title=f"Matches for {email}")
    for m in matches:
        partner = m.user_2_email if m.user_1_email == email else m.user_1_email
        table.add_row(m.matched_on.isoformat(), partner)
    console.print(table)


if __name__ == "__main__":
    app()
