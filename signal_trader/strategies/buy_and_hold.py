"""
매수 후 보유(Buy & Hold) 전략. 다른 청산 전략의 비교 기준.

매수일 종가에 100% 진입, 매도일 종가에 전량 청산.
최대 수익률/최저 수익률은 보유 기간 일별 종가로 계산.
"""

from typing import Any

from signal_trader.core.exit_strategy import (
    ExitSimulation,
    ExitStrategy,
    PricePath,
    StrategyResult,
    gain_extremes,
)
from signal_trader.strategies import register


@register("buy_and_hold")
class BuyAndHoldStrategy(ExitStrategy):
    """매수일 매수, 매도일 매도."""

    LABEL = "Basic Buy & Hold"

    def __init__(self, params: dict[str, Any] | None = None):
        super().__init__(name="buy_and_hold", params=params)

    def evaluate(self, path: PricePath) -> StrategyResult:
        max_gain, max_drawdown = gain_extremes(path.entry_price, [*path.closes, path.exit_price])
        simulation = ExitSimulation(
            exit_price=path.exit_price,
            reason="Sell at sell date",
            max_gain=max_gain,
            max_drawdown=max_drawdown,
        )
        return self.build_result(path, path.entry_price, simulation, "100% at buy date")
