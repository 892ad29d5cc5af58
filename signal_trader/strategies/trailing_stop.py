"""
트레일링 스탑 청산 전략.

[ 역할 ]
    core/exit_strategy.py::ExitStrategy의 구현체 2종.
    매수일 종가에 100% 진입한 뒤 일별 종가를 재생하며 스탑 가격에 닿으면 청산.

[ 전략 흐름 ]
    trailing_stop (단순 트레일링 스탑)
        스탑 = 진입가 × (1 - 스탑%)
        매일: 가격 <= 스탑 → 청산 ("Trailing stop hit")
              신고가 → 스탑 = 신고가 × (1 - 스탑%)
        끝까지 안 걸리면 마지막 날 가격으로 청산 ("Held until sell date")

    take_profit_trailing (익절 + 트레일링 스탑)
        매일: 가격 >= 진입가 × (1 + 익절%) → 익절 플래그 ON
              신고가 → 스탑 갱신
              가격 <= 스탑 → 청산 (익절 전/후 구분하여 사유 기록)

    두 경우 모두 청산일까지(포함) 진입가 대비 최대 수익률/최저 수익률을 추적.

[ 파라미터 ]
    trailing_stop_pct: 스탑 비율 (0.15 = 15%)
    take_profit_pct:   익절 목표 비율 (0.15 = 15%)
"""

from typing import Any

from signal_trader.core.exit_strategy import (
    ExitSimulation,
    ExitStrategy,
    PricePath,
    StrategyResult,
)
from signal_trader.strategies import register

FULL_ENTRY = "100% at buy date"


def simulate_simple_trailing_stop(
    entry_price: float,
    prices: list[float],
    trailing_stop_pct: float,
) -> ExitSimulation:
    """단순 트레일링 스탑 재생. 스탑 체크가 고점 갱신보다 먼저."""
    if not prices:
        return ExitSimulation(exit_price=entry_price, reason="No data")

    stop_level = entry_price * (1 - trailing_stop_pct)
    highest = entry_price
    max_gain, max_drawdown = 0.0, 0.0

    for price in prices:
        gain = (price - entry_price) / entry_price * 100
        max_gain = max(max_gain, gain)
        max_drawdown = min(max_drawdown, gain)

        if price <= stop_level:
            return ExitSimulation(price, "Trailing stop hit", max_gain, max_drawdown)

        if price > highest:
            highest = price
            stop_level = price * (1 - trailing_stop_pct)

    return ExitSimulation(prices[-1], "Held until sell date", max_gain, max_drawdown)


def simulate_trailing_stop(
    entry_price: float,
    prices: list[float],
    take_profit_pct: float,
    trailing_stop_pct: float,
) -> ExitSimulation:
    """익절 목표 + 트레일링 스탑 재생. 고점 갱신 후 스탑 체크."""
    if not prices:
        return ExitSimulation(exit_price=entry_price, reason="No data")

    take_profit_target = entry_price * (1 + take_profit_pct)
    stop_level = entry_price * (1 - trailing_stop_pct)
    highest = entry_price
    take_profit_hit = False
    reason = ""
    max_gain, max_drawdown = 0.0, 0.0

    for price in prices:
        gain = (price - entry_price) / entry_price * 100
        max_gain = max(max_gain, gain)
        max_drawdown = min(max_drawdown, gain)

        if price >= take_profit_target:
            take_profit_hit = True
            reason = "Take profit triggered, trailing stop active"

        if price > highest:
            highest = price
            stop_level = price * (1 - trailing_stop_pct)

        if price <= stop_level:
            tag = "after take profit" if take_profit_hit else "before take profit"
            return ExitSimulation(price, f"Trailing stop hit ({tag})", max_gain, max_drawdown)

    return ExitSimulation(prices[-1], reason or "Held until sell date", max_gain, max_drawdown)


@register("trailing_stop")
class SimpleTrailingStopStrategy(ExitStrategy):
    """단순 트레일링 스탑 (익절 조건 없음)."""

    LABEL = "Simple Trailing Stop"

    DEFAULT_PARAMS = {
        "trailing_stop_pct": 0.15,
    }

    def __init__(self, params: dict[str, Any] | None = None):
        merged = {**self.DEFAULT_PARAMS, **(params or {})}
        super().__init__(name="trailing_stop", params=merged)

    @property
    def trailing_stop_pct(self) -> float:
        return float(self.params["trailing_stop_pct"])

    def evaluate(self, path: PricePath) -> StrategyResult:
        simulation = simulate_simple_trailing_stop(path.entry_price, path.closes, self.trailing_stop_pct)
        return self.build_result(path, path.entry_price, simulation, FULL_ENTRY)


@register("take_profit_trailing")
class TakeProfitTrailingStopStrategy(ExitStrategy):
    """익절 목표 도달 여부를 기록하는 트레일링 스탑."""

    LABEL = "Take Profit + Trailing Stop"

    DEFAULT_PARAMS = {
        "take_profit_pct": 0.15,
        "trailing_stop_pct": 0.15,
    }

    def __init__(self, params: dict[str, Any] | None = None):
        merged = {**self.DEFAULT_PARAMS, **(params or {})}
        super().__init__(name="take_profit_trailing", params=merged)

    @property
    def take_profit_pct(self) -> float:
        return float(self.params["take_profit_pct"])

    @property
    def trailing_stop_pct(self) -> float:
        return float(self.params["trailing_stop_pct"])

    def evaluate(self, path: PricePath) -> StrategyResult:
        simulation = simulate_trailing_stop(
            path.entry_price, path.closes, self.take_profit_pct, self.trailing_stop_pct,
        )
        return self.build_result(path, path.entry_price, simulation, FULL_ENTRY)
