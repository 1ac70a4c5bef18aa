"""Tests for the account ledger. Single writer per account; all-or-nothing orders."""

import threading
from dataclasses import replace
from decimal import Decimal

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from execution.ledger import PAPER, REAL_MONEY, AccountLedger, AccountProfile
from storage.kv_store import InMemoryKVStore
from storage.repository import AccountRepository
from trading_core.contracts import Side, TradeFailure
from trading_core.errors import DepositsNotAllowed, InvalidAmount, StorageUnavailable
from trading_core.fees import FeeSchedule

from conftest import SettableOracle, StubGate, TickingClock


def _state(ledger: AccountLedger, user: str):
    return (
        ledger.get_portfolio(user).cash_balance,
        ledger.get_holdings(user),
        ledger.get_transactions(user),
    )


class TestPaperScenario:
    """Buy 50 @160, buy 50 @200, sell 40 @190 from 100,000."""

    def test_walkthrough(self, paper: AccountLedger, oracle: SettableOracle, user: str) -> None:
        assert paper.get_portfolio(user).cash_balance == Decimal("100000")

        r1 = paper.execute_trade(user, "AAPL", 50, "buy")
        assert r1.success
        assert paper.get_portfolio(user).cash_balance == Decimal("92000")
        (h,) = paper.get_holdings(user)
        assert (h.symbol, h.shares, h.average_price) == ("AAPL", 50, Decimal("160"))

        oracle.set_price("AAPL", "200")
        assert paper.execute_trade(user, "AAPL", 50, Side.BUY).success
        (h,) = paper.get_holdings(user)
        assert h.shares == 100
        assert h.average_price == Decimal("180")
        assert paper.get_portfolio(user).cash_balance == Decimal("82000")

        oracle.set_price("AAPL", "190")
        r3 = paper.execute_trade(user, "AAPL", 40, "sell")
        assert r3.success
        (h,) = paper.get_holdings(user)
        assert h.shares == 60
        assert h.average_price == Decimal("180")
        assert paper.get_portfolio(user).cash_balance == Decimal("89600")

    def test_paper_trades_have_no_fees(self, paper: AccountLedger, user: str) -> None:
        tx = paper.execute_trade(user, "AAPL", 1, "buy").transaction
        assert tx.fees == Decimal("0")
        assert tx.total_amount == Decimal("160")

    def test_full_sell_removes_holding(self, paper: AccountLedger, user: str) -> None:
        paper.execute_trade(user, "AAPL", 10, "buy")
        assert paper.execute_trade(user, "AAPL", 10, "sell").success
        assert paper.get_holdings(user) == []
        assert paper.get_portfolio(user).cash_balance == Decimal("100000")

    def test_symbol_is_normalized(self, paper: AccountLedger, user: str) -> None:
        result = paper.execute_trade(user, " aapl ", 1, "buy")
        assert result.transaction.symbol == "AAPL"
        assert paper.get_holdings(user)[0].symbol == "AAPL"

    @pytest.mark.parametrize("side", ["BUY", "Buy", " buy "])
    def test_side_is_normalized(self, paper: AccountLedger, user: str, side: str) -> None:
        result = paper.execute_trade(user, "AAPL", 1, side)
        assert result.success
        assert result.transaction.side is Side.BUY


class TestRejections:
    def test_unknown_symbol(self, paper: AccountLedger, user: str) -> None:
        result = paper.execute_trade(user, "ZZZZ", 1, "buy")
        assert not result.success
        assert result.reason is TradeFailure.SYMBOL_NOT_FOUND
        assert result.message == "Stock not found"

    @pytest.mark.parametrize("shares", [0, -5, 1.5, True, "10", None])
    def test_invalid_quantity(self, paper: AccountLedger, user: str, shares) -> None:
        result = paper.execute_trade(user, "AAPL", shares, "buy")
        assert result.reason is TradeFailure.INVALID_QUANTITY
        assert paper.get_transactions(user) == []

    def test_no_overdraft_leaves_everything_unchanged(self, paper: AccountLedger, user: str) -> None:
        paper.execute_trade(user, "AAPL", 100, "buy")
        before = _state(paper, user)
        result = paper.execute_trade(user, "AAPL", 1000, "buy")
        assert result.reason is TradeFailure.INSUFFICIENT_FUNDS
        assert _state(paper, user) == before

    def test_exact_cash_is_enough(self, paper: AccountLedger, oracle: SettableOracle, user: str) -> None:
        oracle.set_price("MSFT", "1000")
        assert paper.execute_trade(user, "MSFT", 100, "buy").success
        assert paper.get_portfolio(user).cash_balance == Decimal("0")

    def test_sell_without_holding(self, paper: AccountLedger, user: str) -> None:
        result = paper.execute_trade(user, "AAPL", 1, "sell")
        assert result.reason is TradeFailure.INSUFFICIENT_SHARES

    def test_oversell_leaves_everything_unchanged(self, paper: AccountLedger, user: str) -> None:
        paper.execute_trade(user, "AAPL", 10, "buy")
        before = _state(paper, user)
        result = paper.execute_trade(user, "AAPL", 11, "sell")
        assert result.reason is TradeFailure.INSUFFICIENT_SHARES
        assert _state(paper, user) == before

    def test_rejections_are_reported(self, paper: AccountLedger, user: str, events: list) -> None:
        paper.execute_trade(user, "ZZZZ", 1, "buy")
        kind, payload = events[-1]
        assert kind == "rejection"
        assert payload["reason"] == "SYMBOL_NOT_FOUND"
        assert payload["account"] == "paper"


class TestRealMoney:
    def test_starts_with_zero_cash(self, real: AccountLedger, user: str) -> None:
        assert real.get_portfolio(user).cash_balance == Decimal("0")

    def test_fee_example(self, real: AccountLedger, oracle: SettableOracle, user: str) -> None:
        oracle.set_price("MSFT", "100")
        real.add_funds(user, Decimal("1001.99"))
        result = real.execute_trade(user, "MSFT", 10, "buy")
        assert result.success
        tx = result.transaction
        assert tx.total_amount == Decimal("1000")
        assert tx.fees == Decimal("1.99")
        assert real.get_portfolio(user).cash_balance == Decimal("0")
        assert "fees: $1.99" in result.message

    def test_fee_makes_buy_unaffordable(self, real: AccountLedger, user: str) -> None:
        real.add_funds(user, "1001.98")
        result = real.execute_trade(user, "MSFT", 10, "buy")
        assert result.reason is TradeFailure.INSUFFICIENT_FUNDS
        assert real.get_portfolio(user).cash_balance == Decimal("1001.98")

    def test_sell_credits_net_of_fees(self, real: AccountLedger, oracle: SettableOracle, user: str) -> None:
        real.add_funds(user, 5000)
        real.execute_trade(user, "MSFT", 10, "buy")
        cash_before = real.get_portfolio(user).cash_balance
        oracle.set_price("MSFT", "120")
        result = real.execute_trade(user, "MSFT", 10, "sell")
        tx = result.transaction
        assert tx.fees == Decimal("0.99") + Decimal("1.2")
        assert real.get_portfolio(user).cash_balance == cash_before + Decimal("1200") - tx.fees
        assert "sold 10 shares of MSFT for $1197.81 (fees: $2.19)" in result.message

    def test_not_eligible_short_circuits(self, real: AccountLedger, gate: StubGate, user: str) -> None:
        real.add_funds(user, 5000)
        gate.allowed = False
        before = _state(real, user)
        result = real.execute_trade(user, "ZZZZ", -1, "buy")
        assert result.reason is TradeFailure.NOT_ELIGIBLE
        assert _state(real, user) == before

    def test_gate_is_consulted_per_order(self, real: AccountLedger, gate: StubGate, user: str) -> None:
        real.execute_trade(user, "MSFT", 1, "buy")
        assert gate.calls == [user]

    def test_requires_gate(self, store: InMemoryKVStore, oracle: SettableOracle) -> None:
        with pytest.raises(ValueError):
            AccountLedger(REAL_MONEY, AccountRepository(store, "real"), oracle)


class TestAddFunds:
    def test_deposit_credits_cash_and_funding(self, real: AccountLedger, user: str) -> None:
        p = real.add_funds(user, Decimal("2500"))
        assert p.cash_balance == Decimal("2500")
        assert p.total_deposits == Decimal("2500")
        p = real.add_funds(user, "500.50")
        assert p.cash_balance == Decimal("3000.50")
        assert real.get_portfolio(user).total_deposits == Decimal("3000.50")

    @pytest.mark.parametrize("amount", [0, -10, "abc", "NaN", "Infinity"])
    def test_rejects_bad_amounts(self, real: AccountLedger, user: str, amount) -> None:
        with pytest.raises(InvalidAmount):
            real.add_funds(user, amount)
        assert real.get_portfolio(user).cash_balance == Decimal("0")

    def test_paper_accounts_refuse_deposits(self, paper: AccountLedger, user: str) -> None:
        with pytest.raises(DepositsNotAllowed):
            paper.add_funds(user, 100)

    def test_deposit_event(self, real: AccountLedger, user: str, events: list) -> None:
        real.add_funds(user, 100)
        kind, payload = events[-1]
        assert kind == "deposit"
        assert payload["amount"] == "100"


class TestTransactionLog:
    def test_newest_first_and_grows_by_one(self, paper: AccountLedger, user: str) -> None:
        paper.execute_trade(user, "AAPL", 1, "buy")
        first = paper.get_transactions(user)
        paper.execute_trade(user, "MSFT", 2, "buy")
        paper.execute_trade(user, "ZZZZ", 1, "buy")  # rejected
        txs = paper.get_transactions(user)
        assert len(txs) == 2
        assert [t.symbol for t in txs] == ["MSFT", "AAPL"]
        assert txs[1] == first[0]
        assert txs[0].timestamp > txs[1].timestamp

    def test_ids_unique(self, paper: AccountLedger, user: str) -> None:
        for _ in range(5):
            paper.execute_trade(user, "AAPL", 1, "buy")
        ids = [t.id for t in paper.get_transactions(user)]
        assert len(set(ids)) == 5

    def test_filter_and_limit(self, paper: AccountLedger, user: str) -> None:
        paper.execute_trade(user, "AAPL", 1, "buy")
        paper.execute_trade(user, "MSFT", 1, "buy")
        paper.execute_trade(user, "AAPL", 2, "buy")
        assert [t.shares for t in paper.get_transactions(user, symbol="aapl")] == [2, 1]
        assert len(paper.get_transactions(user, limit=1)) == 1

    def test_negative_limit_is_rejected(self, paper: AccountLedger, user: str) -> None:
        for _ in range(3):
            paper.execute_trade(user, "AAPL", 1, "buy")
        with pytest.raises(ValueError, match="limit"):
            paper.get_transactions(user, limit=-1)
        assert paper.get_transactions(user, limit=0) == []
        assert len(paper.get_transactions(user, limit=10)) == 3


class TestSnapshot:
    def test_snapshot_derives_value_and_gain(self, paper: AccountLedger, oracle: SettableOracle, user: str) -> None:
        paper.execute_trade(user, "AAPL", 50, "buy")
        oracle.set_price("AAPL", "170")
        snap = paper.get_portfolio_snapshot(user)
        assert snap.cash_balance == Decimal("92000")
        assert snap.total_value == Decimal("100500")
        assert snap.total_gain_loss == Decimal("500")
        assert snap.total_gain_loss_percent == Decimal("0.5")

    def test_positions_are_derived_from_live_price(self, paper: AccountLedger, oracle: SettableOracle, user: str) -> None:
        paper.execute_trade(user, "AAPL", 10, "buy")
        oracle.set_price("AAPL", "144")
        (pos,) = paper.get_positions(user)
        assert pos.current_price == Decimal("144")
        assert pos.market_value == Decimal("1440")
        assert pos.gain_loss == Decimal("-160")
        assert pos.gain_loss_percent == Decimal("-10")
        # stored holding untouched by valuation
        assert paper.get_holdings(user)[0].average_price == Decimal("160")

    def test_empty_real_account_snapshot(self, real: AccountLedger, user: str) -> None:
        snap = real.get_portfolio_snapshot(user)
        assert snap.total_value == Decimal("0")
        assert snap.total_gain_loss_percent == Decimal("0")

    def test_deposits_do_not_count_as_gain(self, real: AccountLedger, user: str) -> None:
        real.add_funds(user, 1000)
        real.execute_trade(user, "MSFT", 5, "buy")
        snap = real.get_portfolio_snapshot(user)
        # fees are the only loss at unchanged prices
        assert snap.total_gain_loss == -(Decimal("0.99") + Decimal("0.5"))


class TestAtomicity:
    class FailingStore(InMemoryKVStore):
        def __init__(self) -> None:
            super().__init__()
            self.fail_writes = False

        def put_many(self, items) -> None:
            if self.fail_writes:
                raise StorageUnavailable("disk gone")
            super().put_many(items)

    def test_storage_failure_propagates_without_partial_state(self, oracle: SettableOracle, user: str) -> None:
        store = self.FailingStore()
        ledger = AccountLedger(PAPER, AccountRepository(store, "paper"), oracle)
        ledger.execute_trade(user, "AAPL", 10, "buy")
        before = _state(ledger, user)
        store.fail_writes = True
        with pytest.raises(StorageUnavailable):
            ledger.execute_trade(user, "AAPL", 10, "buy")
        store.fail_writes = False
        assert _state(ledger, user) == before

    def test_concurrent_buys_never_overdraw(self, oracle: SettableOracle, user: str) -> None:
        profile = AccountProfile(name="paper", initial_cash=Decimal("1600"))
        ledger = AccountLedger(profile, AccountRepository(InMemoryKVStore(), "paper"), oracle)
        results = []

        def worker() -> None:
            results.append(ledger.execute_trade(user, "AAPL", 1, "buy"))

        threads = [threading.Thread(target=worker) for _ in range(25)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert sum(r.success for r in results) == 10
        assert ledger.get_portfolio(user).cash_balance == Decimal("0")
        assert ledger.get_holdings(user)[0].shares == 10
        assert len(ledger.get_transactions(user)) == 10


class TestAudit:
    def test_consistent_after_trades(self, real: AccountLedger, oracle: SettableOracle, user: str) -> None:
        real.add_funds(user, 10_000)
        real.execute_trade(user, "MSFT", 10, "buy")
        oracle.set_price("MSFT", "110")
        real.execute_trade(user, "MSFT", 4, "buy")
        real.execute_trade(user, "MSFT", 3, "sell")
        real.execute_trade(user, "AAPL", 2, "buy")
        report = real.audit(user)
        assert report.consistent, report.mismatches
        assert report.transactions == 4
        assert report.expected_cash == report.actual_cash

    def test_detects_tampered_cash(self, paper: AccountLedger, store: InMemoryKVStore, user: str) -> None:
        paper.execute_trade(user, "AAPL", 1, "buy")
        repo = AccountRepository(store, "paper")
        p = repo.load_portfolio(user)
        repo.commit(user, portfolio=replace(p, cash_balance=p.cash_balance + 1))
        report = paper.audit(user)
        assert not report.consistent
        assert any(m.startswith("cash") for m in report.mismatches)


class TradeDuringRead(AccountRepository):
    """Runs a hook once, the first time holdings are loaded."""

    hook = None

    def load_holdings(self, user_id: str):
        hook, self.hook = self.hook, None
        if hook is not None:
            hook()
        return super().load_holdings(user_id)


class TestReadConsistency:
    """Reads that combine cash, holdings and log see one committed state."""

    def _ledger_with_pending_trade(self, oracle: SettableOracle, user: str):
        repo = TradeDuringRead(InMemoryKVStore(), "paper")
        ledger = AccountLedger(PAPER, repo, oracle)
        ledger.get_portfolio(user)
        workers: list[threading.Thread] = []

        def start_trade() -> None:
            t = threading.Thread(target=ledger.execute_trade, args=(user, "AAPL", 50, "buy"))
            workers.append(t)
            t.start()
            t.join(timeout=0.2)

        repo.hook = start_trade
        return ledger, workers

    def test_snapshot_does_not_mix_states(self, oracle: SettableOracle, user: str) -> None:
        ledger, workers = self._ledger_with_pending_trade(oracle, user)
        snap = ledger.get_portfolio_snapshot(user)
        workers[0].join()
        assert snap.total_value == Decimal("100000")
        assert snap.total_gain_loss == Decimal("0")
        after = ledger.get_portfolio_snapshot(user)
        assert after.cash_balance == Decimal("92000")
        assert after.total_value == Decimal("100000")

    def test_audit_does_not_report_false_mismatch(self, oracle: SettableOracle, user: str) -> None:
        ledger, workers = self._ledger_with_pending_trade(oracle, user)
        report = ledger.audit(user)
        workers[0].join()
        assert report.consistent, report.mismatches
        assert ledger.audit(user).transactions == 1


orders = st.lists(
    st.tuples(st.sampled_from(["buy", "sell"]), st.sampled_from(["AAPL", "MSFT"]), st.integers(1, 40)),
    min_size=1,
    max_size=25,
)


class TestProperties:
    @given(orders)
    @settings(max_examples=60, deadline=None)
    def test_cash_conservation_and_log_growth(self, sequence) -> None:
        """Every fill moves cash by exactly total +/- fees; rejections move nothing."""
        oracle = SettableOracle({"AAPL": "160", "MSFT": "99.95"})
        profile = AccountProfile(
            name="real",
            initial_cash=Decimal("20000"),
            fee_schedule=FeeSchedule(flat=Decimal("0.99"), rate=Decimal("0.001")),
            requires_eligibility=True,
        )
        ledger = AccountLedger(
            profile,
            AccountRepository(InMemoryKVStore(), "real"),
            oracle,
            eligibility=StubGate(True),
            clock=TickingClock(),
        )
        user = "prop"
        for side, symbol, shares in sequence:
            cash = ledger.get_portfolio(user).cash_balance
            n = len(ledger.get_transactions(user))
            result = ledger.execute_trade(user, symbol, shares, side)
            after = ledger.get_portfolio(user).cash_balance
            if result.success:
                tx = result.transaction
                delta = -(tx.total_amount + tx.fees) if side == "buy" else tx.total_amount - tx.fees
                assert after == cash + delta
                assert len(ledger.get_transactions(user)) == n + 1
            else:
                assert after == cash
                assert len(ledger.get_transactions(user)) == n
            assert after >= 0
        assert ledger.audit(user).consistent
