"""
분할 진입(Staggered Entry) 전략.

[ 역할 ]
    매수일 종가에 일부(기본 80%)만 진입하고, 나머지는 매수 직후
    dip_window_days(기본 7일) 동안의 눌림목 가격에 진입했다고 가정.
    두 가격의 가중평균이 실질 진입가가 된다.

[ 눌림목 탐지 순서 (detect_dip, 먼저 걸리는 것 채택) ]
    1. 진입가 대비 5% 이상 하락한 날             → "RSI oversold (5% drop)"
    2. 3일째 종가 < 앞 2일 평균 이고 < 진입가      → "MA crossover"
    3. 전일 대비 3% 넘게 하락한 날               → "volatility spike (3% drop)"
    4. 진입가 대비 2% 이상 하락한 날             → "support break (2% drop)"
    5. 2일째 종가 < 1일째 종가 이고 < 진입가       → "momentum reversal"
    6. 기간 최저가가 진입가보다 1% 넘게 낮으면 그 가격, 아니면 진입가

[ 등록 전략 ]
    staggered_entry     분할 진입 후 매도일 종가에 청산
    staggered_trailing  분할 진입 후 단순 트레일링 스탑

[ 파라미터 ]
    stagger_percent:   매수일 진입 비율 (0.8 = 80%)
    dip_window_days:   눌림목 탐색 기간 (일)
    trailing_stop_pct: 트레일링 스탑 비율 (staggered_trailing만 사용)
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
from signal_trader.strategies.trailing_stop import simulate_simple_trailing_stop


def detect_dip(entry_price: float, prices: list[float]) -> tuple[float, str]:
    """눌림목 가격과 탐지 사유."""
    if not prices:
        return entry_price, "no dip detected (no data)"

    oversold = entry_price * 0.95
    for price in prices:
        if price <= oversold:
            return price, "RSI oversold (5% drop)"

    if len(prices) >= 3:
        ma2 = (prices[0] + prices[1]) / 2
        if prices[2] < ma2 and prices[2] < entry_price:
            return prices[2], "MA crossover"

    for prev, price in zip(prices, prices[1:]):
        if (price - prev) / prev < -0.03:
            return price, "volatility spike (3% drop)"

    support = entry_price * 0.98
    for price in prices:
        if price <= support:
            return price, "support break (2% drop)"

    if len(prices) >= 2 and prices[1] < prices[0] and prices[1] < entry_price:
        return prices[1], "momentum reversal"

    lowest = min(prices)
    if lowest < entry_price * 0.99:
        return lowest, "lowest price (1%+ drop)"

    return entry_price, "no dip detected"


def blend_entry_price(entry_price: float, dip_price: float, stagger_percent: float) -> float:
    """진입가 × p + 눌림목 가격 × (1 - p)."""
    return entry_price * stagger_percent + dip_price * (1 - stagger_percent)


class _StaggeredBase(ExitStrategy):
    """분할 진입가 계산 공통부."""

    DEFAULT_PARAMS = {
        "stagger_percent": 0.8,
        "dip_window_days": 7,
    }

    @property
    def stagger_percent(self) -> float:
        return float(self.params["stagger_percent"])

    def blended_entry(self, path: PricePath) -> tuple[float, str]:
        """(가중평균 진입가, 진입 설명)."""
        window = path.entry_window or [path.entry_price]
        dip_price, dip_reason = detect_dip(path.entry_price, window)
        blended = blend_entry_price(path.entry_price, dip_price, self.stagger_percent)
        description = (
            f"{self.stagger_percent * 100:.0f}% at buy date, "
            f"{(1 - self.stagger_percent) * 100:.0f}% {dip_reason}"
        )
        return blended, description


@register("staggered_entry")
class StaggeredEntryStrategy(_StaggeredBase):
    """분할 진입 후 매도일 종가에 청산."""

    LABEL = "Staggered Entry"

    def __init__(self, params: dict[str, Any] | None = None):
        merged = {**self.DEFAULT_PARAMS, **(params or {})}
        super().__init__(name="staggered_entry", params=merged)

    def evaluate(self, path: PricePath) -> StrategyResult:
        entry, description = self.blended_entry(path)
        max_gain, max_drawdown = gain_extremes(entry, [*path.closes, path.exit_price])
        simulation = ExitSimulation(path.exit_price, "Sell at sell date", max_gain, max_drawdown)
        return self.build_result(path, entry, simulation, description)


@register("staggered_trailing")
class StaggeredTrailingStopStrategy(_StaggeredBase):
    """분할 진입가 기준 단순 트레일링 스탑."""

    LABEL = "Staggered Entry + Trailing Stop"

    DEFAULT_PARAMS = {
        **_StaggeredBase.DEFAULT_PARAMS,
        "trailing_stop_pct": 0.15,
    }

    def __init__(self, params: dict[str, Any] | None = None):
        merged = {**self.DEFAULT_PARAMS, **(params or {})}
        super().__init__(name="staggered_trailing", params=merged)

    @property
    def trailing_stop_pct(self) -> float:
        return float(self.params["trailing_stop_pct"])

    def evaluate(self, path: PricePath) -> StrategyResult:
        entry, description = self.blended_entry(path)
        simulation = simulate_simple_trailing_stop(entry, path.closes, self.trailing_stop_pct)
        return self.build_result(path, entry, simulation, description)
