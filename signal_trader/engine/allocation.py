"""
자금 배분 모듈.

[ 역할 ]
    새로 진입하는 시그널에 얼마를 투입할지 계산.

[ 배분 방식 ]
    WeightedAllocator (백테스트)
        살아있는(PENDING/ACTIVE) 시그널의 비중 합 S를 구해서
          S <= 100 : 배분액 = 비중/100 × 총자산
          S >  100 : 배분액 = 비중/S   × 총자산  (비례 축소)
        총자산은 호출할 때마다 원장에서 새로 읽는다 (직전 체결 반영).

    WindowAllocator (실전매매)
        배분 윈도우의 고정 금액(allocation_per_signal)을 모든 신규 시그널에 동일 적용.
        윈도우가 없으면 설정의 default_allocation_amount 사용.

    추가 매수(dip buy)는 두 방식 모두 최초 매수 원가를 그대로 재사용.

[ 호출하는 곳 ]
    - engine/signal_engine.py::SignalEngine에서 매수 금액 계산
    - live/trading_bot.py에서 refresh_allocation_window() 호출
"""

import logging
from abc import ABC, abstractmethod
from datetime import date, datetime, timedelta
from decimal import ROUND_DOWN, Decimal
from typing import Optional

from signal_trader.core.broker_api import BrokerAPI
from signal_trader.core.errors import AllocationWindowMissingError, TradingError
from signal_trader.core.signal import AllocationWindow, Signal, SignalStatus

logger = logging.getLogger("signal_trader.allocation")

HUNDRED = Decimal("100")
AMOUNT_STEP = Decimal("0.000000001")   # 배분액 절사 단위 (배분 합계 <= 총자산)


class Allocator(ABC):
    """시그널 진입 금액 계산 인터페이스."""

    @abstractmethod
    def allocate(self, signal: Signal, signals: list[Signal]) -> Decimal:
        """최초 매수 금액.

        Args:
            signal: 진입하려는 시그널
            signals: 현재 엔진이 관리하는 전체 시그널 (비중 합 계산용)
        """
        ...

    def allocate_dip(self, signal: Signal) -> Decimal:
        """추가 매수 금액 = 최초 매수 원가."""
        if signal.initial_trade is None:
            raise TradingError(f"signal {signal.id} has no initial trade to size a dip buy from")
        return signal.initial_trade.cost


class WeightedAllocator(Allocator):
    """비중(allocation_percentage) 기반 배분. 비중 합이 100을 넘으면 비례 축소."""

    def __init__(self, broker: BrokerAPI):
        self.broker = broker

    def allocate(self, signal: Signal, signals: list[Signal]) -> Decimal:
        total_weight = sum(
            (
                s.allocation_percentage for s in signals
                if s.status == SignalStatus.PENDING or s.is_active
            ),
            Decimal("0"),
        )
        account_value = self.broker.get_account_value()

        divisor = HUNDRED if total_weight <= HUNDRED else total_weight
        amount = (signal.allocation_percentage * account_value / divisor).quantize(AMOUNT_STEP, rounding=ROUND_DOWN)

        logger.debug(
            f"[{signal.id}] {signal.ticker} 배분: 비중 {signal.allocation_percentage}% "
            f"(합계 {total_weight}%), 총자산 ${account_value:,.2f} → ${amount:,.2f}"
        )
        return amount


class WindowAllocator(Allocator):
    """배분 윈도우의 시그널당 고정 금액 사용."""

    def __init__(self, window: Optional[AllocationWindow], default_amount: Decimal):
        self.window = window
        self.default_amount = Decimal(str(default_amount))

    def per_signal_amount(self) -> Decimal:
        if self.window is None:
            raise AllocationWindowMissingError("no allocation window found")
        return self.window.allocation_per_signal

    def allocate(self, signal: Signal, signals: list[Signal]) -> Decimal:
        try:
            return self.per_signal_amount()
        except AllocationWindowMissingError as e:
            logger.warning(f"{e} → 기본 배분액 ${self.default_amount:,.2f} 사용")
            return self.default_amount


def refresh_allocation_window(
    window: Optional[AllocationWindow],
    broker: BrokerAPI,
    current_date: date,
    max_signals_per_window: int = 39,
    window_duration_days: int = 90,
) -> AllocationWindow:
    """윈도우가 없거나 만료되었으면 새로 계산, 아니면 그대로 반환.

    새 윈도우: 시작 = 오늘, 종료 = 오늘 + window_duration_days,
    시그널당 배분액 = 총자산 / max_signals_per_window
    """
    if window is not None and not window.is_expired(current_date):
        return window

    if max_signals_per_window <= 0:
        raise ValueError(f"max_signals_per_window must be positive: {max_signals_per_window}")

    account_value = broker.get_account_value()
    per_signal = account_value / Decimal(max_signals_per_window)
    new_window = AllocationWindow(
        window_start=current_date,
        window_end=current_date + timedelta(days=window_duration_days),
        account_value=account_value,
        allocation_per_signal=per_signal,
        total_signals_in_window=max_signals_per_window,
        updated_at=datetime.now(),
    )
    logger.info(
        f"배분 윈도우 갱신: {new_window.window_start} ~ {new_window.window_end}, "
        f"시그널당 ${per_signal:,.2f} (최대 {max_signals_per_window}개)"
    )
    return new_window
