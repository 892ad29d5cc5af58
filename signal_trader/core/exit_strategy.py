"""
청산(Exit) 시뮬레이션 전략 추상 클래스 정의.

[ 역할 ]
    시그널 하나의 보유 기간 가격 경로(PricePath)를 받아
    "언제, 얼마에, 왜 팔았는가"를 재현하는 전략 인터페이스.
    원장(BacktestBroker)은 건드리지 않는 순수 계산이며,
    같은 시그널 집합에 여러 전략을 돌려 성과를 비교하는 데 쓰인다.

[ 구현체 ]
    - strategies/buy_and_hold.py     (매수일 매수, 매도일 매도 - 비교 기준)
    - strategies/trailing_stop.py    (단순 트레일링 스탑 / 익절 + 트레일링 스탑)
    - strategies/staggered_entry.py  (분할 진입 / 분할 진입 + 트레일링 스탑)

[ 호출하는 곳 ]
    - backtest/comparison.py::StrategyComparison에서 시그널마다 evaluate() 호출
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import date
from typing import Any


@dataclass
class PricePath:
    """시그널 하나의 가격 경로. comparison.py가 QuoteSource에서 구성."""
    signal_id: str
    ticker: str
    buy_date: date
    sell_date: date
    entry_price: float                                        # 매수일 종가
    exit_price: float                                         # 매도일 종가
    closes: list[float] = field(default_factory=list)         # 매수일 ~ 매도일 일별 종가
    entry_window: list[float] = field(default_factory=list)   # 매수 직후 (기본 7일) 일별 종가

    @property
    def days_held(self) -> int:
        return (self.sell_date - self.buy_date).days


@dataclass
class ExitSimulation:
    """가격 경로 재생 결과. 수익률은 모두 진입가 대비 %."""
    exit_price: float
    reason: str
    max_gain: float = 0.0
    max_drawdown: float = 0.0     # 최저 수익률 (0 이하)


@dataclass
class StrategyResult:
    """전략 1개 × 시그널 1개의 결과."""
    signal_id: str
    ticker: str
    buy_date: date
    sell_date: date
    strategy: str
    entry_price: float
    exit_price: float
    profit_loss: float
    profit_loss_pct: float
    days_held: int
    is_win: bool
    entry_strategy: str = ""
    exit_strategy: str = ""
    max_gain: float = 0.0
    max_drawdown: float = 0.0


class ExitStrategy(ABC):
    """청산 시뮬레이션 전략 추상 클래스.

    새 전략을 만들려면 이 클래스를 상속받아 evaluate()를 구현하고
    strategies/__init__.py의 @register 데코레이터로 등록한다.
    """

    # 결과 표시용 이름
    LABEL: str = ""

    # config.yaml의 exit_strategy.params로 오버라이드 가능한 기본값
    DEFAULT_PARAMS: dict[str, Any] = {}

    def __init__(self, name: str, params: dict[str, Any] | None = None):
        self.name = name
        self.params = {**self.DEFAULT_PARAMS, **(params or {})}

    @property
    def label(self) -> str:
        return self.LABEL or self.name

    @abstractmethod
    def evaluate(self, path: PricePath) -> StrategyResult:
        """가격 경로를 재생하여 결과 반환."""
        ...

    def build_result(
        self,
        path: PricePath,
        entry_price: float,
        simulation: ExitSimulation,
        entry_strategy: str,
    ) -> StrategyResult:
        """진입가와 시뮬레이션 결과로 StrategyResult 구성."""
        profit_loss = simulation.exit_price - entry_price
        profit_loss_pct = profit_loss / entry_price * 100 if entry_price > 0 else 0.0
        return StrategyResult(
            signal_id=path.signal_id,
            ticker=path.ticker,
            buy_date=path.buy_date,
            sell_date=path.sell_date,
            strategy=self.label,
            entry_price=entry_price,
            exit_price=simulation.exit_price,
            profit_loss=profit_loss,
            profit_loss_pct=profit_loss_pct,
            days_held=path.days_held,
            is_win=profit_loss > 0,
            entry_strategy=entry_strategy,
            exit_strategy=simulation.reason,
            max_gain=simulation.max_gain,
            max_drawdown=simulation.max_drawdown,
        )


def gain_extremes(entry_price: float, prices: list[float]) -> tuple[float, float]:
    """진입가 대비 최대 수익률과 최저 수익률(0 이하) (%)."""
    max_gain, max_drawdown = 0.0, 0.0
    if entry_price <= 0:
        return max_gain, max_drawdown
    for price in prices:
        gain = (price - entry_price) / entry_price * 100
        max_gain = max(max_gain, gain)
        max_drawdown = min(max_drawdown, gain)
    return max_gain, max_drawdown
