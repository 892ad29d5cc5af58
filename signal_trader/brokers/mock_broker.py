"""
백테스트용 원장(BacktestBroker) 및 Mock 데이터 제공자 구현.

[ 역할 ]
    실제 증권사 API 없이 현금/보유종목을 메모리에서 관리하며 매매를 시뮬레이션.
    시스템에서 현금 잔고와 포지션의 유일한 원본(single source of truth).

[ 포함 클래스 ]
    MockDataProvider - core/data_provider.py::DataProvider 구현체
                       미리 로드된 DataFrame에서 OHLCV 데이터 제공

    BacktestBroker   - core/broker_api.py::BrokerAPI 구현체
                       가상 잔고로 매수/매도 체결. 수수료/세금/슬리피지 없음.

[ 원장 규칙 ]
    매수: 현금 -= 수량 × 가격, 포지션 평균가는 가중평균으로 갱신
    매도: 현금 += 수량 × 가격, 수량이 정확히 0이 되면 포지션 삭제
    평가: 총 자산 = 현금 + Σ(보유수량 × 평균 매수가)

[ 동시성 ]
    잔고/포지션은 하나의 락으로 보호. 현재 드라이버는 단일 스레드지만
    다른 스레드에서 상태를 읽어도 안전하도록.

[ 호출하는 곳 ]
    - backtest/engine.py::BacktestEngine이 생성하여 SignalEngine에 전달
    - 단위 테스트에서 BacktestBroker/MockDataProvider 활용
"""

import logging
import threading
import uuid
from datetime import date
from decimal import Decimal

import pandas as pd

from signal_trader.core.broker_api import (
    BrokerAPI,
    Holding,
    OrderResult,
    OrderSide,
    OrderStatus,
)
from signal_trader.core.data_provider import DataProvider
from signal_trader.core.errors import InsufficientFundsError, InsufficientSharesError

logger = logging.getLogger("signal_trader.broker")


# ─── Mock 데이터 제공자 ──────────────────────────────────────────────────────

class MockDataProvider(DataProvider):
    """DataFrame 기반 Mock 데이터 제공자.

    사용법:
        provider = MockDataProvider()
        provider.load_data("AAPL", aapl_df)  # DataFrame 로드
        df = provider.get_ohlcv("AAPL", date(2024, 1, 1), date(2024, 6, 30))
    """

    def __init__(self):
        self._data: dict[str, pd.DataFrame] = {}  # ticker → OHLCV DataFrame

    def load_data(self, ticker: str, df: pd.DataFrame) -> None:
        """데이터 로드.

        Args:
            ticker: 종목 코드
            df: OHLCV DataFrame (최소 columns: date, close)
        """
        df = df.copy()
        if "date" in df.columns:
            df["date"] = pd.to_datetime(df["date"]).dt.date
        self._data[ticker] = df.sort_values("date").reset_index(drop=True)

    def load_closes(self, ticker: str, closes: dict[date, float]) -> None:
        """{날짜: 종가} 딕셔너리로 간단히 로드 (테스트용)."""
        rows = [
            {"date": d, "open": c, "high": c, "low": c, "close": c, "volume": 0}
            for d, c in closes.items()
        ]
        self.load_data(ticker, pd.DataFrame(rows))

    def get_ohlcv(
        self,
        ticker: str,
        start_date: date,
        end_date: date,
    ) -> pd.DataFrame:
        """OHLCV 데이터 조회."""
        if ticker not in self._data:
            return pd.DataFrame(columns=["date", "open", "high", "low", "close", "volume"])

        df = self._data[ticker]
        mask = (df["date"] >= start_date) & (df["date"] <= end_date)
        return df[mask].copy().reset_index(drop=True)

    def get_tickers(self) -> list[str]:
        """로드된 종목 목록."""
        return list(self._data.keys())


# ─── 백테스트 원장 ───────────────────────────────────────────────────────────

class BacktestBroker(BrokerAPI):
    """백테스트 원장. 현금과 종목별 포지션을 관리."""

    def __init__(self, initial_cash: Decimal | float | int = 0):
        self._lock = threading.RLock()
        self._cash = Decimal(str(initial_cash))
        self._positions: dict[str, Holding] = {}      # ticker → Holding
        self.total_deposits = self._cash

    def get_cash_balance(self) -> Decimal:
        with self._lock:
            return self._cash

    def get_position(self, ticker: str) -> Decimal:
        with self._lock:
            holding = self._positions.get(ticker)
            return holding.quantity if holding else Decimal("0")

    def get_positions(self) -> dict[str, Holding]:
        with self._lock:
            return {
                t: Holding(ticker=h.ticker, quantity=h.quantity, avg_price=h.avg_price)
                for t, h in self._positions.items()
            }

    def get_account_value(self) -> Decimal:
        """현금 + 평균 매수가 기준 보유 평가액."""
        with self._lock:
            return self._cash + sum(
                (h.market_value for h in self._positions.values()),
                Decimal("0"),
            )

    def deposit(self, amount: Decimal) -> None:
        amount = Decimal(str(amount))
        if amount < 0:
            raise ValueError(f"deposit amount must be non-negative: {amount}")
        with self._lock:
            self._cash += amount
            self.total_deposits += amount
            balance = self._cash
        logger.debug(f"입금 ${amount:,.2f} → 잔고 ${balance:,.2f}")

    def buy_order(self, ticker: str, quantity: Decimal, price: Decimal) -> OrderResult:
        order_id = str(uuid.uuid4())[:8]
        if quantity <= 0 or price <= 0:
            raise ValueError(f"invalid buy order for {ticker}: quantity={quantity}, price={price}")

        total_cost = quantity * price

        with self._lock:
            if total_cost > self._cash:
                raise InsufficientFundsError(need=total_cost, have=self._cash)

            self._cash -= total_cost

            # 보유 종목 업데이트
            holding = self._positions.get(ticker)
            if holding is not None:
                total_qty = holding.quantity + quantity
                holding.avg_price = (holding.avg_price * holding.quantity + price * quantity) / total_qty
                holding.quantity = total_qty
            else:
                self._positions[ticker] = Holding(ticker=ticker, quantity=quantity, avg_price=price)

            result = OrderResult(
                order_id=order_id,
                ticker=ticker,
                side=OrderSide.BUY,
                quantity=quantity,
                price=price,
                status=OrderStatus.FILLED,
                filled_quantity=quantity,
                filled_price=price,
            )

        logger.debug(f"매수 체결: {ticker} {quantity}주 @ ${price:,.2f}")
        return result

    def sell_order(self, ticker: str, quantity: Decimal, price: Decimal) -> OrderResult:
        order_id = str(uuid.uuid4())[:8]
        if quantity <= 0:
            raise ValueError(f"invalid sell order for {ticker}: quantity={quantity}")

        with self._lock:
            holding = self._positions.get(ticker)
            have = holding.quantity if holding else Decimal("0")
            if holding is None or have < quantity:
                raise InsufficientSharesError(ticker=ticker, need=quantity, have=have)

            proceeds = quantity * price
            self._cash += proceeds

            holding.quantity -= quantity
            if holding.quantity == 0:
                del self._positions[ticker]

            result = OrderResult(
                order_id=order_id,
                ticker=ticker,
                side=OrderSide.SELL,
                quantity=quantity,
                price=price,
                status=OrderStatus.FILLED,
                filled_quantity=quantity,
                filled_price=price,
            )

        logger.debug(f"매도 체결: {ticker} {quantity}주 @ ${price:,.2f}, 대금 ${proceeds:,.2f}")
        return result
