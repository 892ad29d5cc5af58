"""Shared fixtures: ledger, signal/quote factories, fake live broker and in-memory store."""

from __future__ import annotations

from datetime import date, timedelta
from decimal import Decimal
from typing import Optional

import pytest

from signal_trader.brokers.mock_broker import BacktestBroker, MockDataProvider
from signal_trader.core.broker_api import Holding, LiveBrokerAPI, OrderResult, OrderSide, OrderStatus
from signal_trader.core.data_provider import TickerQuote
from signal_trader.core.signal import AllocationWindow, Signal
from signal_trader.core.signal_store import SignalStore


class FakeLiveBroker(LiveBrokerAPI):
    """LiveBrokerAPI backed by an in-memory ledger with settable quotes.

    Setting `reject_with` to a non-FILLED status makes every order come back unfilled
    without touching the ledger, the way a real brokerage reports a rejection.
    """

    def __init__(self, cash: float = 10000):
        self.ledger = BacktestBroker(cash)
        self.quotes: dict[str, TickerQuote] = {}
        self.market_open = True
        self.reject_with: Optional[OrderStatus] = None

    def get_cash_balance(self) -> Decimal:
        return self.ledger.get_cash_balance()

    def get_position(self, ticker: str) -> Decimal:
        return self.ledger.get_position(ticker)

    def get_positions(self) -> dict[str, Holding]:
        return self.ledger.get_positions()

    def get_account_value(self) -> Decimal:
        return self.ledger.get_account_value()

    def deposit(self, amount: Decimal) -> None:
        self.ledger.deposit(amount)

    def buy_order(self, ticker: str, quantity: Decimal, price: Decimal) -> OrderResult:
        if self.reject_with is not None:
            return self._unfilled(ticker, OrderSide.BUY, quantity, price)
        return self.ledger.buy_order(ticker, quantity, price)

    def sell_order(self, ticker: str, quantity: Decimal, price: Decimal) -> OrderResult:
        if self.reject_with is not None:
            return self._unfilled(ticker, OrderSide.SELL, quantity, price)
        return self.ledger.sell_order(ticker, quantity, price)

    def get_latest_quote(self, ticker: str) -> Optional[TickerQuote]:
        return self.quotes.get(ticker)

    def is_market_open(self, on_date: Optional[date] = None) -> bool:
        return self.market_open

    def _unfilled(self, ticker: str, side: OrderSide, quantity: Decimal, price: Decimal) -> OrderResult:
        return OrderResult(
            order_id="rejected",
            ticker=ticker,
            side=side,
            quantity=quantity,
            price=price,
            status=self.reject_with,
            message="rejected by broker",
        )


class InMemorySignalStore(SignalStore):
    """Round-trips through to_dict/from_dict so tests see persisted state, not live objects."""

    def __init__(self, signals: Optional[list[Signal]] = None, window: Optional[AllocationWindow] = None):
        self._signals = [s.to_dict() for s in signals or []]
        self._window = window.to_dict() if window else None
        self.fail_on_save = False
        self.save_count = 0

    def load_all(self) -> tuple[list[Signal], Optional[AllocationWindow]]:
        window = AllocationWindow.from_dict(self._window) if self._window else None
        return [Signal.from_dict(d) for d in self._signals], window

    def save_all(self, signals: list[Signal], window: Optional[AllocationWindow]) -> None:
        if self.fail_on_save:
            raise OSError("disk full")
        self._signals = [s.to_dict() for s in signals]
        self._window = window.to_dict() if window else None
        self.save_count += 1


@pytest.fixture
def broker() -> BacktestBroker:
    return BacktestBroker(10000)


@pytest.fixture
def live_broker() -> FakeLiveBroker:
    return FakeLiveBroker(10000)


@pytest.fixture
def memory_store() -> InMemorySignalStore:
    return InMemorySignalStore()


@pytest.fixture
def make_signal():
    """Signal factory with sensible defaults."""

    def _make(
        id: str = "00000",
        ticker: str = "AAA",
        buy_date: date = date(2024, 1, 1),
        sell_date: date = date(2024, 1, 11),
        weight: str | int = 50,
        **kwargs,
    ) -> Signal:
        return Signal(
            id=id,
            ticker=ticker,
            buy_date=buy_date,
            sell_date=sell_date,
            allocation_percentage=Decimal(str(weight)),
            **kwargs,
        )

    return _make


@pytest.fixture
def make_quote():
    """TickerQuote factory taking plain numbers."""

    def _make(price, sma=None, bid=None, ask=None) -> TickerQuote:
        def dec(v):
            return Decimal(str(v)) if v is not None else None

        return TickerQuote(price=dec(price), sma20=dec(sma), bid=dec(bid), ask=dec(ask))

    return _make


@pytest.fixture
def weekday_closes():
    """{date: close} over consecutive weekdays starting at a Monday."""

    def _make(prices: list[float], start: date = date(2024, 1, 1)) -> dict[date, float]:
        out: dict[date, float] = {}
        current = start
        for price in prices:
            while current.weekday() >= 5:
                current += timedelta(days=1)
            out[current] = price
            current += timedelta(days=1)
        return out

    return _make


@pytest.fixture
def provider() -> MockDataProvider:
    return MockDataProvider()
