"""
CLI entry point: papertrade quote | stocks | buy | sell | deposit | portfolio | history | ...

Every command loads config from --config (default config.yaml), prints
human-readable output, and logs executed trades, rejections and deposits to
the journal.
"""

import logging
import sys
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any

import click
from dotenv import load_dotenv

from config import AppConfig, load_config, load_ledger_config

load_dotenv()

logger = logging.getLogger("papertrade")

ACCOUNT_CHOICE = click.Choice(["paper", "real"])


def _setup_logging() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(name)s %(levelname)s  %(message)s",
        stream=sys.stderr,
    )


@dataclass
class Session:
    cfg: AppConfig
    user_id: str
    store: Any
    accounts: Any
    journal: Any
    events: Any


def _open_session(ctx: click.Context) -> Session:
    """Load config and wire store, ledgers, journal and event logger."""
    if "session" in ctx.obj:
        return ctx.obj["session"]
    cfg = load_config(ctx.obj["config_path"])
    from cli.structured_log import StructuredEventLogger
    from execution import open_accounts
    from journal import JournalWriter
    from storage import open_store

    user_id = ctx.obj.get("user") or cfg.user_id
    ledger_cfg = load_ledger_config(
        cfg.ledger_config_path or None,
        override_path=cfg.ledger_override_path or None,
    )
    journal = JournalWriter(cfg.journal.path, echo_stdout=cfg.journal.echo_stdout)
    events = StructuredEventLogger(
        user_id,
        enabled=cfg.alerting.structured_logs,
        webhook_url=cfg.alerting.webhook_url,
    )

    def on_event(event_type: str, payload: dict) -> None:
        if event_type == "trade":
            journal.trade(**payload)
            events.trade_executed(
                payload["account"], payload["symbol"], payload["side"],
                payload["shares"], payload["price"], payload["fees"],
            )
        elif event_type == "rejection":
            journal.rejection(**payload)
            events.trade_rejected(payload["account"], payload["symbol"], payload["reason"])
        elif event_type == "deposit":
            journal.deposit(**payload)
            events.funds_added(payload["account"], payload["amount"], payload["cash_balance"])

    store = open_store(cfg.storage.backend, cfg.storage.path)
    accounts = open_accounts(ledger_cfg, store, on_event=on_event)
    session = Session(cfg=cfg, user_id=user_id, store=store, accounts=accounts, journal=journal, events=events)
    ctx.obj["session"] = session
    return session


@click.group()
@click.option("--config", "config_path", default="config.yaml", help="Path to config file.")
@click.option("--user", default=None, help="Act as this user id (overrides config and PAPERTRADE_USER).")
@click.pass_context
def cli(ctx: click.Context, config_path: str, user: str | None) -> None:
    """papertrade: paper and demo real-money stock trading ledger."""
    _setup_logging()
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    ctx.obj["user"] = user


# ---------- market ----------


@cli.command()
@click.argument("symbol")
@click.pass_context
def quote(ctx: click.Context, symbol: str) -> None:
    """Show the current quote for SYMBOL."""
    from cli.output import format_quote

    s = _open_session(ctx)
    q = s.accounts.oracle.get_price(symbol)
    if q is None:
        click.echo(f"Unknown symbol: {symbol.upper()}")
        raise SystemExit(1)
    click.echo(format_quote(q))


@cli.command()
@click.option("--search", "query", default=None, help="Filter by symbol or company name.")
@click.pass_context
def stocks(ctx: click.Context, query: str | None) -> None:
    """List tradable stocks."""
    from cli.output import format_quote

    s = _open_session(ctx)
    quotes = s.accounts.oracle.search(query) if query else s.accounts.oracle.list_stocks()
    if not quotes:
        click.echo("No matching stocks.")
        return
    for q in quotes:
        click.echo(format_quote(q))


# ---------- trading ----------


def _trade(ctx: click.Context, symbol: str, shares: int, side: str, account: str) -> None:
    from cli.output import format_trade_result
    from trading_core.errors import StorageUnavailable

    s = _open_session(ctx)
    try:
        result = s.accounts[account].execute_trade(s.user_id, symbol, shares, side)
    except StorageUnavailable as exc:
        s.events.error("storage unavailable", str(exc))
        click.echo(f"Storage unavailable: {exc}")
        raise SystemExit(2)
    click.echo(format_trade_result(result))
    if not result.success:
        raise SystemExit(1)


@cli.command()
@click.argument("symbol")
@click.argument("shares", type=int)
@click.option("--account", default="paper", type=ACCOUNT_CHOICE, help="Account to trade in.")
@click.pass_context
def buy(ctx: click.Context, symbol: str, shares: int, account: str) -> None:
    """Buy SHARES of SYMBOL at market."""
    _trade(ctx, symbol, shares, "buy", account)


@cli.command()
@click.argument("symbol")
@click.argument("shares", type=int)
@click.option("--account", default="paper", type=ACCOUNT_CHOICE, help="Account to trade in.")
@click.pass_context
def sell(ctx: click.Context, symbol: str, shares: int, account: str) -> None:
    """Sell SHARES of SYMBOL at market."""
    _trade(ctx, symbol, shares, "sell", account)


@cli.command()
@click.argument("amount")
@click.pass_context
def deposit(ctx: click.Context, amount: str) -> None:
    """Add AMOUNT of demo funds to the real-money account."""
    from trading_core.errors import LedgerError

    s = _open_session(ctx)
    try:
        value = Decimal(amount)
    except InvalidOperation:
        click.echo(f"Not a valid amount: {amount}")
        raise SystemExit(1)
    try:
        portfolio = s.accounts.real.add_funds(s.user_id, value)
    except LedgerError as exc:
        click.echo(str(exc))
        raise SystemExit(1)
    click.echo(f"Deposited ${value:,.2f}. Cash balance: ${portfolio.cash_balance:,.2f}")


@cli.command()
@click.option("--account", default="paper", type=ACCOUNT_CHOICE)
@click.pass_context
def portfolio(ctx: click.Context, account: str) -> None:
    """Show cash, total value, gain/loss and positions."""
    from cli.output import format_portfolio

    s = _open_session(ctx)
    ledger = s.accounts[account]
    click.echo(
        format_portfolio(
            account,
            ledger.get_portfolio_snapshot(s.user_id),
            ledger.get_positions(s.user_id),
            label=ledger.profile.label,
        )
    )


@cli.command()
@click.option("--account", default="paper", type=ACCOUNT_CHOICE)
@click.option("--symbol", default=None, help="Only this symbol.")
@click.option("--limit", default=10, type=click.IntRange(min=1), help="Number of recent transactions to show.")
@click.pass_context
def history(ctx: click.Context, account: str, symbol: str | None, limit: int) -> None:
    """Show recent transactions, newest first."""
    from cli.output import format_transactions

    s = _open_session(ctx)
    click.echo(format_transactions(s.accounts[account].get_transactions(s.user_id, symbol=symbol, limit=limit)))


@cli.command()
@click.option("--account", default="paper", type=ACCOUNT_CHOICE)
@click.pass_context
def audit(ctx: click.Context, account: str) -> None:
    """Replay the transaction log and check it against stored holdings and cash."""
    from cli.output import format_audit

    s = _open_session(ctx)
    report = s.accounts[account].audit(s.user_id)
    click.echo(format_audit(account, report))
    raise SystemExit(0 if report.consistent else 1)


# ---------- watchlist ----------


def _watchlist(s: Session):
    from market.watchlist import Watchlist

    return Watchlist(s.store, s.accounts.oracle)


@cli.command()
@click.argument("symbol")
@click.pass_context
def watch(ctx: click.Context, symbol: str) -> None:
    """Add SYMBOL to the watchlist."""
    s = _open_session(ctx)
    if _watchlist(s).add(s.user_id, symbol):
        click.echo(f"Watching {symbol.upper()}.")
    else:
        click.echo(f"{symbol.upper()} is unknown or already on the watchlist.")


@cli.command()
@click.argument("symbol")
@click.pass_context
def unwatch(ctx: click.Context, symbol: str) -> None:
    """Remove SYMBOL from the watchlist."""
    s = _open_session(ctx)
    if _watchlist(s).remove(s.user_id, symbol):
        click.echo(f"Removed {symbol.upper()}.")
    else:
        click.echo(f"{symbol.upper()} is not on the watchlist.")


@cli.command()
@click.pass_context
def watchlist(ctx: click.Context) -> None:
    """Show the watchlist with current quotes."""
    from cli.output import format_watchlist

    s = _open_session(ctx)
    click.echo(format_watchlist(_watchlist(s).list(s.user_id)))


# ---------- subscription ----------


@cli.command()
@click.argument("action", type=click.Choice(["status", "trial", "upgrade"]), default="status")
@click.pass_context
def subscription(ctx: click.Context, action: str) -> None:
    """Show the subscription, start a trial, or upgrade to premium."""
    from cli.output import format_subscription

    s = _open_session(ctx)
    subs = s.accounts.subscriptions
    if action == "trial":
        sub = subs.start_trial(s.user_id)
        s.journal.subscription(s.user_id, sub.plan.value, sub.status.value)
    elif action == "upgrade":
        sub = subs.upgrade_to_premium(s.user_id)
        s.journal.subscription(s.user_id, sub.plan.value, sub.status.value)
    allowed = subs.is_trading_allowed(s.user_id)
    sub = subs.get_subscription(s.user_id)
    click.echo(format_subscription(sub, subs.trial_days_remaining(s.user_id), allowed))


# ---------- health ----------


@cli.command()
@click.pass_context
def health(ctx: click.Context) -> None:
    """Check system health: config, ledger config, state store.

    Exit code 0 = healthy, 1 = unhealthy.
    """
    checks: list[tuple[str, bool, str]] = []

    try:
        cfg = load_config(ctx.obj["config_path"])
        checks.append(("config", True, f"loaded (user={cfg.user_id}, storage={cfg.storage.backend})"))
    except Exception as e:
        checks.append(("config", False, str(e)))
        _print_health(checks)
        raise SystemExit(1)

    try:
        ledger_cfg = load_ledger_config(
            cfg.ledger_config_path or None,
            override_path=cfg.ledger_override_path or None,
        )
        checks.append(("ledger_config", True, f"validated ({len(ledger_cfg.catalog)} stocks, accounts={sorted(ledger_cfg.accounts)})"))
    except Exception as e:
        checks.append(("ledger_config", False, str(e)))

    try:
        from storage import open_store
        store = open_store(cfg.storage.backend, cfg.storage.path)
        store.get("health:probe")
        checks.append(("store", True, f"{cfg.storage.backend} at {cfg.storage.path}"))
    except Exception as e:
        checks.append(("store", False, str(e)))

    _print_health(checks)
    healthy = all(ok for _, ok, _ in checks)
    raise SystemExit(0 if healthy else 1)


def _print_health(checks: list[tuple[str, bool, str]]) -> None:
    for name, ok, detail in checks:
        status = "OK" if ok else "FAIL"
        click.echo(f"  [{status}] {name}: {detail}")
    healthy = all(ok for _, ok, _ in checks)
    click.echo(f"\nHealth: {'HEALTHY' if healthy else 'UNHEALTHY'}")


if __name__ == "__main__":
    cli()
