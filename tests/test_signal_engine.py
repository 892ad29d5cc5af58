"""Tests for the shared signal state machine."""

from __future__ import annotations

from datetime import date
from decimal import Decimal

import pytest

from signal_trader.brokers.mock_broker import BacktestBroker
from signal_trader.core.broker_api import OrderStatus
from signal_trader.core.signal import (
    BACKTEST_PROFILE,
    LIVE_PROFILE,
    SignalStatus,
    Trade,
    quantize_quantity,
)
from signal_trader.engine.allocation import WeightedAllocator, WindowAllocator
from signal_trader.engine.dip_buy import DipBuyEvaluator
from signal_trader.engine.signal_engine import SignalEngine

DAY0 = date(2024, 1, 1)


@pytest.fixture
def engine(broker: BacktestBroker) -> SignalEngine:
    return SignalEngine(broker, BACKTEST_PROFILE, WeightedAllocator(broker), DipBuyEvaluator())


def _hold(broker: BacktestBroker, make_signal, qty: str = "50", price: str = "100", **kwargs):
    """Active signal whose shares really sit in the ledger."""
    broker.buy_order(kwargs.get("ticker", "AAA"), Decimal(qty), Decimal(price))
    return make_signal(
        status=SignalStatus.ACTIVE,
        initial_trade=Trade(DAY0, Decimal(price), Decimal(qty) * Decimal(price), Decimal(qty)),
        high_price=Decimal(price),
        **kwargs,
    )


class TestEntry:
    def test_half_weight_buys_half_the_account(self, engine, make_signal, make_quote) -> None:
        signal = make_signal(weight=50)
        result = engine.run_tick([signal], {"AAA": make_quote(100)}, DAY0)

        assert result.bought == ["00000"]
        assert signal.status == SignalStatus.ACTIVE
        assert signal.initial_trade.quantity == Decimal("50")
        assert signal.initial_trade.cost == Decimal("5000")
        assert signal.initial_trade.buy_date == DAY0
        assert signal.high_price == Decimal("100")
        assert engine.broker.get_position("AAA") == Decimal("50")

    def test_not_due_yet_stays_pending(self, engine, make_signal, make_quote) -> None:
        signal = make_signal(buy_date=date(2024, 1, 5))
        result = engine.run_tick([signal], {"AAA": make_quote(100)}, DAY0)
        assert signal.status == SignalStatus.PENDING
        assert result.bought == []
        assert result.processed == 1

    def test_late_entry_uses_current_date(self, engine, make_signal, make_quote) -> None:
        signal = make_signal()
        engine.run_tick([signal], {"AAA": make_quote(100)}, date(2024, 1, 3))
        assert signal.initial_trade.buy_date == date(2024, 1, 3)

    def test_buys_at_ask_when_present(self, engine, make_signal, make_quote) -> None:
        signal = make_signal(weight=50)
        engine.run_tick([signal], {"AAA": make_quote(100, ask=101)}, DAY0)
        expected_qty = quantize_quantity(Decimal("5000") / Decimal("101"))
        assert signal.initial_trade.buy_price == Decimal("101")
        assert signal.initial_trade.quantity == expected_qty
        assert signal.initial_trade.cost == expected_qty * Decimal("101")

    def test_quantity_is_rounded_down(self, engine, make_signal, make_quote) -> None:
        signal = make_signal(weight=50)
        engine.run_tick([signal], {"AAA": make_quote(3)}, DAY0)
        assert signal.initial_trade.quantity == Decimal("1666.666666666")

    def test_stable_id_order(self, engine, make_signal, make_quote) -> None:
        b = make_signal(id="b", weight=60)
        a = make_signal(id="a", weight=60)
        result = engine.run_tick([b, a], {"AAA": make_quote(100)}, DAY0)
        assert result.bought == ["a", "b"]
        assert a.initial_trade.cost == Decimal("5000")
        assert b.initial_trade.cost == Decimal("5000")

    def test_entries_allocate_before_same_day_exit_proceeds(self, broker, engine, make_signal, make_quote) -> None:
        seller = _hold(broker, make_signal, id="a", ticker="AAA", sell_date=DAY0, weight=50)
        buyer = make_signal(id="b", ticker="BBB", weight=50)
        quotes = {"AAA": make_quote(200), "BBB": make_quote(100)}

        result = engine.run_tick([seller, buyer], quotes, DAY0)

        assert result.sold == ["a"]
        assert result.bought == ["b"]
        assert buyer.initial_trade.cost == Decimal("5000")
        assert broker.get_cash_balance() == Decimal("10000")


class TestExit:
    def test_sell_closes_trade_and_books_profit(self, broker, engine, make_signal, make_quote) -> None:
        signal = _hold(broker, make_signal)
        result = engine.run_tick([signal], {"AAA": make_quote(110)}, date(2024, 1, 11))

        assert result.sold == ["00000"]
        assert signal.status == SignalStatus.SOLD
        trade = signal.initial_trade
        assert trade.sell_date == date(2024, 1, 11)
        assert trade.sell_price == Decimal("110")
        assert trade.proceeds == Decimal("5500")
        assert trade.profit_loss == Decimal("500")
        assert broker.get_position("AAA") == Decimal("0")

    def test_sells_at_bid_when_present(self, broker, engine, make_signal, make_quote) -> None:
        signal = _hold(broker, make_signal)
        engine.run_tick([signal], {"AAA": make_quote(110, bid=109)}, date(2024, 1, 11))
        assert signal.initial_trade.sell_price == Decimal("109")

    def test_entered_today_is_not_sold_today(self, engine, make_signal, make_quote) -> None:
        signal = make_signal(sell_date=DAY0)
        result = engine.run_tick([signal], {"AAA": make_quote(100)}, DAY0)
        assert signal.status == SignalStatus.ACTIVE
        assert result.sold == []

        result = engine.run_tick([signal], {"AAA": make_quote(100)}, date(2024, 1, 2))
        assert signal.status == SignalStatus.SOLD
        assert result.sold == ["00000"]

    def test_position_mismatch_is_counted_and_state_kept(self, engine, make_signal, make_quote) -> None:
        signal = make_signal(
            status=SignalStatus.ACTIVE,
            initial_trade=Trade(DAY0, Decimal("100"), Decimal("5000"), Decimal("50")),
        )
        result = engine.run_tick([signal], {"AAA": make_quote(110)}, date(2024, 1, 11))

        assert result.errors == 1
        assert result.processed == 0
        assert "position mismatch" in result.error_messages[0]
        assert signal.status == SignalStatus.ACTIVE
        assert not signal.initial_trade.is_closed

    def test_proceeds_split_by_each_trade_quantity(self, broker, engine, make_signal, make_quote) -> None:
        signal = _hold(broker, make_signal)
        broker.buy_order("AAA", Decimal("25"), Decimal("80"))
        signal.dip_trades.append(Trade(date(2024, 1, 6), Decimal("80"), Decimal("2000"), Decimal("25")))

        pl = engine.execute_sell(signal, make_quote(120), date(2024, 1, 11))

        initial, dip = signal.trades
        assert initial.proceeds == Decimal("6000")
        assert initial.profit_loss == Decimal("1000")
        assert dip.proceeds == Decimal("3000")
        assert dip.profit_loss == Decimal("1000")
        assert pl == Decimal("2000")


class TestDipBuy:
    def test_no_sma_never_dip_buys(self, engine, make_signal, make_quote) -> None:
        signal = make_signal(weight=50, sell_date=date(2024, 1, 31))
        engine.run_tick([signal], {"AAA": make_quote(100)}, DAY0)
        for day, price in ((8, 95), (9, 80), (10, 60)):
            result = engine.run_tick([signal], {"AAA": make_quote(price)}, date(2024, 1, day))
            assert result.dip_bought == []
        assert signal.dip_trades == []

    def test_dip_buy_reuses_initial_cost(self, broker, engine, make_signal, make_quote) -> None:
        signal = make_signal(weight=50, sell_date=date(2024, 1, 31))
        engine.run_tick([signal], {"AAA": make_quote(100)}, DAY0)
        engine.run_tick([signal], {"AAA": make_quote(120)}, date(2024, 1, 2))
        assert signal.high_price == Decimal("120")

        result = engine.run_tick([signal], {"AAA": make_quote(95, sma=105)}, date(2024, 1, 8))

        assert result.dip_bought == ["00000"]
        dip = signal.dip_trades[0]
        assert dip.quantity == quantize_quantity(Decimal("5000") / Decimal("95"))
        assert dip.cost == dip.quantity * Decimal("95")
        assert broker.get_position("AAA") == signal.total_quantity

    def test_pnl_sum_matches_account_change(self, broker, engine, make_signal, make_quote) -> None:
        signal = make_signal(weight=50, sell_date=date(2024, 1, 20))
        engine.run_tick([signal], {"AAA": make_quote(100)}, DAY0)
        engine.run_tick([signal], {"AAA": make_quote(120)}, date(2024, 1, 2))
        engine.run_tick([signal], {"AAA": make_quote(95, sma=105)}, date(2024, 1, 8))
        engine.run_tick([signal], {"AAA": make_quote(110)}, date(2024, 1, 20))

        assert signal.status == SignalStatus.SOLD
        assert len(signal.trades) == 2
        assert signal.realized_profit_loss == broker.get_account_value() - broker.total_deposits

    def test_disabled_evaluator_skips_dip_buys(self, broker, make_signal, make_quote) -> None:
        engine = SignalEngine(broker, BACKTEST_PROFILE, WeightedAllocator(broker))
        signal = make_signal(weight=50, sell_date=date(2024, 1, 31))
        engine.run_tick([signal], {"AAA": make_quote(100)}, DAY0)
        engine.run_tick([signal], {"AAA": make_quote(120)}, date(2024, 1, 2))
        engine.run_tick([signal], {"AAA": make_quote(95, sma=105)}, date(2024, 1, 8))
        assert signal.dip_trades == []


class TestFailures:
    def test_missing_quote_is_skipped_and_retried(self, engine, make_signal, make_quote) -> None:
        signal = make_signal()
        result = engine.run_tick([signal], {}, DAY0)
        assert result.skipped == 1
        assert result.errors == 0
        assert result.processed == 0
        assert signal.status == SignalStatus.PENDING

        result = engine.run_tick([signal], {"AAA": make_quote(100)}, date(2024, 1, 2))
        assert result.bought == ["00000"]

    def test_insufficient_funds_keeps_pending(self, broker, engine, make_signal, make_quote) -> None:
        broker.buy_order("ZZZ", Decimal("50"), Decimal("100"))
        signal = make_signal(weight=100)
        result = engine.run_tick([signal], {"AAA": make_quote(100)}, DAY0)
        assert result.errors == 1
        assert signal.status == SignalStatus.PENDING
        assert signal.initial_trade is None

    def test_one_failure_does_not_stop_the_tick(self, engine, make_signal, make_quote) -> None:
        bad = make_signal(id="a", ticker="AAA")
        good = make_signal(id="b", ticker="BBB", weight=10)
        result = engine.run_tick([bad, good], {"BBB": make_quote(50)}, DAY0)
        assert result.skipped == 1
        assert result.bought == ["b"]
        assert result.processed == 1

    def test_terminal_signals_are_ignored(self, engine, make_signal, make_quote) -> None:
        done = make_signal(status=SignalStatus.SOLD)
        result = engine.run_tick([done], {"AAA": make_quote(100)}, DAY0)
        assert result.processed == 0
        assert result.bought == []


UNFILLED = [OrderStatus.FAILED, OrderStatus.CANCELLED, OrderStatus.PENDING, OrderStatus.FILLED]


class TestRejectedOrders:
    """A FILLED status with nothing filled counts as a rejection too."""

    @pytest.mark.parametrize("status", UNFILLED)
    def test_rejected_buy_keeps_pending(self, live_broker, make_signal, make_quote, status) -> None:
        engine = SignalEngine(live_broker, LIVE_PROFILE, WindowAllocator(None, Decimal("1000")))
        live_broker.reject_with = status
        signal = make_signal()

        result = engine.run_tick([signal], {"AAA": make_quote(100)}, DAY0)

        assert signal.status == SignalStatus.PENDING
        assert signal.initial_trade is None
        assert result.errors == 1
        assert result.bought == []
        assert "not filled" in result.error_messages[0]
        assert live_broker.get_position("AAA") == 0

    @pytest.mark.parametrize("status", UNFILLED)
    def test_rejected_sell_keeps_position_and_signal(self, live_broker, make_signal, make_quote, status) -> None:
        engine = SignalEngine(live_broker, LIVE_PROFILE, WindowAllocator(None, Decimal("1000")))
        live_broker.buy_order("AAA", Decimal("10"), Decimal("100"))
        signal = make_signal(
            status=SignalStatus.BOUGHT,
            initial_trade=Trade(DAY0, Decimal("100"), Decimal("1000"), Decimal("10")),
            high_price=Decimal("100"),
        )
        live_broker.reject_with = status

        result = engine.run_tick([signal], {"AAA": make_quote(120)}, signal.sell_date)

        assert signal.status == SignalStatus.BOUGHT
        assert not signal.initial_trade.is_closed
        assert result.errors == 1
        assert result.sold == []
        assert engine.retained([signal]) == [signal]
        assert live_broker.get_position("AAA") == Decimal("10")

    def test_rejection_then_fill_on_next_tick(self, live_broker, make_signal, make_quote) -> None:
        engine = SignalEngine(live_broker, LIVE_PROFILE, WindowAllocator(None, Decimal("1000")))
        signal = make_signal()

        live_broker.reject_with = OrderStatus.CANCELLED
        engine.run_tick([signal], {"AAA": make_quote(100)}, DAY0)
        live_broker.reject_with = None
        result = engine.run_tick([signal], {"AAA": make_quote(100)}, date(2024, 1, 2))

        assert result.bought == ["00000"]
        assert signal.initial_trade.quantity == live_broker.get_position("AAA")


class TestHighPrice:
    def test_high_price_only_rises(self, broker, engine, make_signal, make_quote) -> None:
        signal = _hold(broker, make_signal, sell_date=date(2024, 1, 31))
        engine.run_tick([signal], {"AAA": make_quote(130)}, date(2024, 1, 2))
        engine.run_tick([signal], {"AAA": make_quote(110)}, date(2024, 1, 3))
        assert signal.high_price == Decimal("130")

    def test_missing_quote_leaves_high_price(self, broker, engine, make_signal) -> None:
        signal = _hold(broker, make_signal, sell_date=date(2024, 1, 31))
        engine.run_tick([signal], {}, date(2024, 1, 2))
        assert signal.high_price == Decimal("100")


class TestLiveProfile:
    def test_live_flow_and_deletion(self, broker, make_signal, make_quote) -> None:
        engine = SignalEngine(broker, LIVE_PROFILE, WindowAllocator(None, Decimal("1000")))
        signal = make_signal(sell_date=date(2024, 1, 2))

        engine.run_tick([signal], {"AAA": make_quote(100)}, DAY0)
        assert signal.status == SignalStatus.BOUGHT
        assert signal.initial_trade.cost == Decimal("1000")
        assert engine.retained([signal]) == [signal]

        engine.run_tick([signal], {"AAA": make_quote(100)}, date(2024, 1, 2))
        assert signal.status == SignalStatus.COMPLETED
        assert engine.retained([signal]) == []

    def test_backtest_profile_retains_terminal(self, engine, make_signal) -> None:
        done = make_signal(status=SignalStatus.SOLD)
        assert engine.retained([done]) == [done]
