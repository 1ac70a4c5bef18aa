"""
Human-readable terminal output for the ledger CLI.

Every command uses these formatters. The journal receives the same data as JSON.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from trading_core.contracts import PortfolioSnapshot, PositionView, Quote, TradeResult, Transaction

if TYPE_CHECKING:
    from execution.ledger import AuditReport
    from market.watchlist import WatchlistItem
    from subscription.service import Subscription


def _fmt_volume(vol: int) -> str:
    if vol >= 1_000_000_000_000:
        return f"{vol / 1_000_000_000_000:.2f}T"
    if vol >= 1_000_000_000:
        return f"{vol / 1_000_000_000:.2f}B"
    if vol >= 1_000_000:
        return f"{vol / 1_000_000:.2f}M"
    if vol >= 1_000:
        return f"{vol / 1_000:.0f}K"
    return str(int(vol))


def format_quote(q: Quote) -> str:
    return (
        f"{q.symbol:6s} {q.company_name:22s} ${q.current_price:>9,.2f}  "
        f"{q.change:+.2f} ({q.change_percent:+.2f}%)  vol {_fmt_volume(q.volume)}"
    )


def format_trade_result(result: TradeResult) -> str:
    if not result.success:
        return f"  Order rejected [{result.reason.value}]: {result.message}"
    tx = result.transaction
    lines = [
        f"  {result.message}",
        f"  Fill         : {tx.side.value} {tx.shares} {tx.symbol} @ ${tx.price:,.2f}",
        f"  Notional     : ${tx.total_amount:,.2f}",
    ]
    if tx.fees:
        lines.append(f"  Fees         : ${tx.fees:,.2f}")
    lines.append(f"  Transaction  : {tx.id}")
    return "\n".join(lines)


def format_portfolio(
    account: str, snapshot: PortfolioSnapshot, positions: list[PositionView], label: str = ""
) -> str:
    """Format cash, total value, gain/loss and open positions."""
    lines = [f"=== {account.capitalize()} Account ==="]
    if label:
        lines.append(f"Type         : {label}")
    lines += [
        f"Cash         : ${snapshot.cash_balance:,.2f}",
        f"Total value  : ${snapshot.total_value:,.2f}",
        f"Gain/Loss    : ${snapshot.total_gain_loss:+,.2f} ({snapshot.total_gain_loss_percent:+.2f}%)",
    ]
    if positions:
        lines.append("")
        for p in positions:
            h = p.holding
            lines.append(
                f"  {h.symbol:6s} {h.shares:>6d} sh @ avg ${h.average_price:,.2f}  "
                f"now ${p.current_price:,.2f}  value ${p.market_value:,.2f}  "
                f"{p.gain_loss:+,.2f} ({p.gain_loss_percent:+.2f}%)"
            )
    else:
        lines.append("Positions    : none")
    lines.append("===")
    return "\n".join(lines)


def format_transactions(transactions: list[Transaction]) -> str:
    if not transactions:
        return "No transactions yet."
    lines = [f"Recent transactions ({len(transactions)}):"]
    for t in transactions:
        fee = f"  fee ${t.fees:,.2f}" if t.fees else ""
        lines.append(
            f"  {t.timestamp.isoformat()}  {t.side.value:4s} {t.shares} {t.symbol} "
            f"@ ${t.price:,.2f} = ${t.total_amount:,.2f}{fee}"
        )
    return "\n".join(lines)


def format_watchlist(items: list[WatchlistItem]) -> str:
    if not items:
        return "Watchlist is empty."
    lines = ["=== Watchlist ==="]
    for item in items:
        lines.append(f"  {format_quote(item.quote)}" if item.quote else f"  {item.symbol:6s} (no quote)")
    return "\n".join(lines)


def format_subscription(sub: Subscription, trial_days_left: int, allowed: bool) -> str:
    lines = [
        "=== Subscription ===",
        f"Plan         : {sub.plan.value}",
        f"Status       : {sub.status.value}",
        f"Real money   : {'enabled' if allowed else 'disabled'}",
    ]
    if sub.trial_ends_at:
        lines.append(f"Trial ends   : {sub.trial_ends_at.isoformat()} ({trial_days_left} days left)")
    if sub.subscription_ends_at:
        lines.append(f"Renews       : {sub.subscription_ends_at.isoformat()}")
    return "\n".join(lines)


def format_audit(account: str, report: AuditReport) -> str:
    lines = [
        f"=== Audit: {account} / {report.user_id} ===",
        f"Transactions : {report.transactions}",
        f"Cash         : stored ${report.actual_cash:,.2f}  replayed ${report.expected_cash:,.2f}",
    ]
    if report.consistent:
        lines.append("Result       : CONSISTENT")
    else:
        lines.append("Result       : MISMATCH")
        lines.extend(f"  {m}" for m in report.mismatches)
    return "\n".join(lines)
