"""
청산 전략 비교 모듈.

[ 역할 ]
    같은 시그널 집합에 여러 청산 전략(strategies/)을 적용해 성과를 비교.
    원장(BacktestBroker)은 사용하지 않고 종가만으로 계산하는 순수 재생이다.

[ 실행 흐름 ]
    StrategyComparison.run(signals):
        시그널마다
          1. 매수일/매도일 종가 조회 (휴장일이면 최대 10일 뒤까지 전진)
          2. 보유 기간 일별 종가 + 매수 직후 dip_window_days 종가 조회 → PricePath
          3. 각 전략의 evaluate(path) → StrategyResult
    calculate_strategy_summary(results, signals):
        전략별 승률/평균 수익률/평균 보유일/연환산 수익률/누적 수익률,
        전체 최고/최저 결과, 최대 동시 보유 시그널 수

[ 호출하는 곳 ]
    - run_backtest.py --compare
"""

import logging
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Any, Optional

from signal_trader.core.exit_strategy import ExitStrategy, PricePath, StrategyResult
from signal_trader.core.signal import Signal
from signal_trader.data.market_data import HistoricalQuoteSource
from signal_trader.strategies import create_strategy, list_strategies

logger = logging.getLogger("signal_trader.comparison")


@dataclass
class StrategySummary:
    """전략 1개의 집계."""
    strategy: str
    total_signals: int = 0
    winning_signals: int = 0
    win_rate: float = 0.0            # %
    avg_return: float = 0.0          # 평균 수익률 (%)
    avg_hold_days: float = 0.0
    avg_return_annual: float = 0.0   # 평균 수익률 × 365 / 평균 보유일
    total_return: float = 0.0        # 수익률 단순 합 (%)


@dataclass
class ComparisonSummary:
    """전체 비교 결과 요약."""
    total_results: int = 0
    winning_results: int = 0
    losing_results: int = 0
    win_rate: float = 0.0
    avg_return: float = 0.0
    avg_hold_days: float = 0.0
    avg_return_annual: float = 0.0
    total_return: float = 0.0
    max_concurrent_signals: int = 0
    best: Optional[StrategyResult] = None
    worst: Optional[StrategyResult] = None
    strategies: dict[str, StrategySummary] = field(default_factory=dict)


def default_strategy_names(params: dict[str, Any]) -> list[str]:
    """설정에 따라 비교할 전략 목록.

    stagger_entry가 꺼져 있으면 분할 진입 전략 제외,
    take_profit_pct가 0 이하이면 익절 전략 제외.
    """
    names = list_strategies()
    if not params.get("stagger_entry", True):
        names = [n for n in names if not n.startswith("staggered")]
    if float(params.get("take_profit_pct", 0.15)) <= 0:
        names = [n for n in names if n != "take_profit_trailing"]
    return names


class StrategyComparison:
    """시그널별 가격 경로를 만들어 여러 청산 전략에 재생.

    사용 예:
        comparison = StrategyComparison(source, ["buy_and_hold", "trailing_stop"])
        results = comparison.run(signals)
        summary = calculate_strategy_summary(results, signals)
    """

    def __init__(
        self,
        quote_source: HistoricalQuoteSource,
        strategy_names: Optional[list[str]] = None,
        params: Optional[dict[str, Any]] = None,
    ):
        self.quote_source = quote_source
        self.params = params or {}
        names = strategy_names or default_strategy_names(self.params)
        self.strategies: list[ExitStrategy] = [create_strategy(n, self.params) for n in names]
        self.dip_window_days = int(self.params.get("dip_window_days", 7))

    def build_path(self, signal: Signal) -> Optional[PricePath]:
        """시그널의 가격 경로. 매수/매도 종가를 못 구하면 None."""
        entry = self.quote_source.get_closing_price(signal.ticker, signal.buy_date)
        if entry is None:
            logger.warning(f"[{signal.id}] {signal.ticker} 매수일 종가 없음, 비교 제외")
            return None

        exit_ = self.quote_source.get_closing_price(signal.ticker, signal.sell_date)
        if exit_ is None:
            logger.warning(f"[{signal.id}] {signal.ticker} 매도일 종가 없음, 비교 제외")
            return None

        closes = self.quote_source.get_daily_closes(signal.ticker, signal.buy_date, signal.sell_date)
        window = self.quote_source.get_daily_closes(
            signal.ticker, signal.buy_date, signal.buy_date + timedelta(days=self.dip_window_days),
        )
        return PricePath(
            signal_id=signal.id,
            ticker=signal.ticker,
            buy_date=signal.buy_date,
            sell_date=signal.sell_date,
            entry_price=entry[1],
            exit_price=exit_[1],
            closes=closes,
            entry_window=window,
        )

    def run(self, signals: list[Signal]) -> list[StrategyResult]:
        """전체 시그널 × 전체 전략 결과."""
        results: list[StrategyResult] = []
        for signal in sorted(signals, key=lambda s: s.id):
            path = self.build_path(signal)
            if path is None:
                continue
            for strategy in self.strategies:
                results.append(strategy.evaluate(path))

        logger.info(f"전략 비교 완료: 시그널 {len(signals)}개 × 전략 {len(self.strategies)}개 → 결과 {len(results)}건")
        return results


def max_concurrent_signals(periods: list[tuple[date, date]]) -> int:
    """(매수일, 매도일) 구간들의 최대 동시 보유 수. 같은 날 매도는 매수보다 먼저 처리."""
    events: list[tuple[date, int]] = []
    for buy_date, sell_date in periods:
        events.append((buy_date, 1))
        events.append((sell_date, -1))
    events.sort(key=lambda e: (e[0], e[1]))

    current = 0
    peak = 0
    for _, delta in events:
        current += delta
        peak = max(peak, current)
    return peak


def _summarize(name: str, results: list[StrategyResult]) -> StrategySummary:
    summary = StrategySummary(strategy=name, total_signals=len(results))
    if not results:
        return summary

    summary.winning_signals = sum(1 for r in results if r.is_win)
    summary.win_rate = summary.winning_signals / len(results) * 100
    summary.total_return = sum(r.profit_loss_pct for r in results)
    summary.avg_return = summary.total_return / len(results)
    summary.avg_hold_days = sum(r.days_held for r in results) / len(results)
    if summary.avg_hold_days > 0:
        summary.avg_return_annual = summary.avg_return * 365 / summary.avg_hold_days
    return summary


def calculate_strategy_summary(
    results: list[StrategyResult],
    signals: Optional[list[Signal]] = None,
) -> ComparisonSummary:
    """전략별/전체 집계."""
    if not results:
        return ComparisonSummary()

    overall = _summarize("all", results)
    by_strategy: dict[str, list[StrategyResult]] = {}
    for r in results:
        by_strategy.setdefault(r.strategy, []).append(r)

    if signals is not None:
        periods = [(s.buy_date, s.sell_date) for s in signals]
    else:
        periods = list({(r.signal_id, r.buy_date, r.sell_date) for r in results})
        periods = [(b, s) for _, b, s in periods]

    return ComparisonSummary(
        total_results=overall.total_signals,
        winning_results=overall.winning_signals,
        losing_results=overall.total_signals - overall.winning_signals,
        win_rate=overall.win_rate,
        avg_return=overall.avg_return,
        avg_hold_days=overall.avg_hold_days,
        avg_return_annual=overall.avg_return_annual,
        total_return=overall.total_return,
        max_concurrent_signals=max_concurrent_signals(periods),
        best=max(results, key=lambda r: r.profit_loss_pct),
        worst=min(results, key=lambda r: r.profit_loss_pct),
        strategies={name: _summarize(name, rs) for name, rs in by_strategy.items()},
    )
