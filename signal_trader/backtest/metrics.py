"""
백테스트 성과 지표 계산 모듈.

[ 역할 ]
    백테스트 결과(청산된 Trade + 일별 총자산 + 일별 입금액)를 받아 성과 지표를 계산.
    calculate_metrics() 함수가 핵심.

[ 입금 반영 ]
    주간 입금이 있으므로 단순 (최종/초기) 비율은 입금액까지 수익으로 잡는다.
    그래서
      - 총 수익률   = (최종 자산 - 총 입금액) / 총 입금액
      - 일별 수익률 = (오늘 자산 - 어제 자산 - 오늘 입금액) / 어제 자산
    일별 수익률을 누적한 시간가중 지수로 연환산 수익률/샤프/MDD를 계산한다.

[ 계산하는 지표 ]
    - 총 수익률 / 연환산 수익률
    - 샤프 비율 (위험 대비 수익)
    - MDD (최대 낙폭)
    - 승률, 평균 수익/손실, 수익 팩터 (Trade 단위)
    - 연속 승/패

[ 호출하는 곳 ]
    - backtest/engine.py::BacktestEngine.run_backtest() 완료 시 호출
"""

from dataclasses import asdict, dataclass
from typing import Any, Optional

import numpy as np

from signal_trader.core.signal import Trade


@dataclass
class BacktestMetrics:
    """백테스트 성과 지표. summary()로 포맷된 리포트 출력 가능."""
    total_return: float = 0.0         # 총 수익률 (%, 입금액 대비)
    annual_return: float = 0.0        # 연환산 수익률 (%, 시간가중)
    sharpe_ratio: float = 0.0         # 샤프 비율 (높을수록 좋음, 1 이상 양호)
    max_drawdown: float = 0.0         # 최대 낙폭 MDD (%)
    win_rate: float = 0.0             # 승률 (%)
    avg_profit: float = 0.0           # 수익 거래 평균 이익 ($)
    avg_loss: float = 0.0             # 손실 거래 평균 손실 ($)
    profit_factor: float = 0.0        # 총이익 / 총손실 (1 이상이면 수익)
    total_trades: int = 0             # 청산된 Trade 수 (최초 + 추가 매수)
    winning_trades: int = 0           # 수익 거래 수
    losing_trades: int = 0            # 손실 거래 수
    avg_holding_days: float = 0.0     # 평균 보유 기간
    max_consecutive_wins: int = 0     # 최대 연속 수익
    max_consecutive_losses: int = 0   # 최대 연속 손실

    def to_dict(self) -> dict[str, Any]:
        """딕셔너리 변환."""
        return asdict(self)

    def summary(self) -> str:
        """성과 요약 문자열."""
        lines = [
            "=" * 50,
            "백테스트 성과 리포트",
            "=" * 50,
            f"총 수익률:       {self.total_return:>10.2f}%",
            f"연환산 수익률:    {self.annual_return:>10.2f}%",
            f"샤프 비율:       {self.sharpe_ratio:>10.2f}",
            f"최대 낙폭(MDD):  {self.max_drawdown:>10.2f}%",
            "-" * 50,
            f"총 거래 횟수:    {self.total_trades:>10d}",
            f"승률:            {self.win_rate:>10.2f}%",
            f"수익 거래:       {self.winning_trades:>10d}",
            f"손실 거래:       {self.losing_trades:>10d}",
            f"평균 수익:       ${self.avg_profit:>10,.2f}",
            f"평균 손실:       ${self.avg_loss:>10,.2f}",
            f"수익 팩터:       {self.profit_factor:>10.2f}",
            f"평균 보유 기간:  {self.avg_holding_days:>10.1f}일",
            "-" * 50,
            f"최대 연속 수익:  {self.max_consecutive_wins:>10d}",
            f"최대 연속 손실:  {self.max_consecutive_losses:>10d}",
            "=" * 50,
        ]
        return "\n".join(lines)


def calculate_metrics(
    closed_trades: list[Trade],
    daily_values: list[float],
    total_deposits: float,
    trading_days: int,
    daily_deposits: Optional[list[float]] = None,
) -> BacktestMetrics:
    """성과 지표 계산. engine.py에서 백테스트 완료 후 호출됨.

    Args:
        closed_trades: 청산된 Trade (매도일 순)
        daily_values: 일별 총 자산 리스트 (현금 + 보유종목 평균가 평가)
        total_deposits: 초기 자금 + 누적 입금액
        trading_days: 백테스트 기간 중 총 거래일 수
        daily_deposits: daily_values와 같은 길이의 일별 입금액 (없으면 0)
    """
    metrics = BacktestMetrics()

    if not daily_values:
        return metrics

    deposits = daily_deposits or [0.0] * len(daily_values)

    # ─── 수익률 계산 ─────────────────────────────────────────────────────
    final_value = daily_values[-1]
    if total_deposits > 0:
        metrics.total_return = (final_value - total_deposits) / total_deposits * 100

    # 입금액을 제외한 일별 수익률
    daily_returns = []
    for i in range(1, len(daily_values)):
        if daily_values[i - 1] > 0:
            ret = (daily_values[i] - daily_values[i - 1] - deposits[i]) / daily_values[i - 1]
            daily_returns.append(ret)

    returns_arr = np.array(daily_returns, dtype=float)
    growth = np.cumprod(1 + returns_arr) if len(returns_arr) else np.array([1.0])

    # 연환산: (누적 지수)^(1/년수) - 1
    if trading_days > 0 and growth[-1] > 0:
        years = trading_days / 252  # 미국 기준 연간 약 252 거래일
        metrics.annual_return = (growth[-1] ** (1 / years) - 1) * 100

    # ─── 샤프 비율 ────────────────────────────────────────────────────────
    # 샤프 = (평균 초과수익 / 표준편차) * sqrt(252)
    if len(returns_arr):
        risk_free_daily = 0.03 / 252
        excess_returns = returns_arr - risk_free_daily
        if np.std(excess_returns) > 0:
            metrics.sharpe_ratio = float(np.mean(excess_returns) / np.std(excess_returns) * np.sqrt(252))

    # ─── MDD (Maximum Drawdown) ────────────────────────────────────────────
    # 시간가중 지수의 고점 대비 최대 하락폭
    index = np.concatenate(([1.0], growth)) if len(returns_arr) else np.array([1.0])
    peaks = np.maximum.accumulate(index)
    drawdowns = (peaks - index) / peaks * 100
    metrics.max_drawdown = float(drawdowns.max())

    # ─── 거래 기반 지표 ───────────────────────────────────────────────────
    trades = [t for t in closed_trades if t.is_closed]
    metrics.total_trades = len(trades)
    if trades:
        _fill_trade_stats(metrics, trades)

    return metrics


def _fill_trade_stats(metrics: BacktestMetrics, trades: list[Trade]) -> None:
    """청산 Trade 목록으로 승률/평균 손익/수익 팩터/보유 기간/연속 승패를 채운다."""
    profits = np.array([float(t.profit_loss) for t in trades])
    is_win = profits > 0  # 손익 0은 손실로 취급

    metrics.winning_trades = int(is_win.sum())
    metrics.losing_trades = len(profits) - metrics.winning_trades
    metrics.win_rate = metrics.winning_trades / len(profits) * 100

    gross_profit = float(profits[is_win].sum())
    gross_loss = float(-profits[~is_win].sum())
    if metrics.winning_trades:
        metrics.avg_profit = gross_profit / metrics.winning_trades
    if metrics.losing_trades:
        metrics.avg_loss = -gross_loss / metrics.losing_trades
    metrics.profit_factor = gross_profit / gross_loss if gross_loss > 0 else float("inf")

    holding = [(t.sell_date - t.buy_date).days for t in trades]
    metrics.avg_holding_days = float(np.mean(holding))

    metrics.max_consecutive_wins = _longest_run(is_win)
    metrics.max_consecutive_losses = _longest_run(~is_win)


def _longest_run(flags: np.ndarray) -> int:
    """True가 연속으로 나온 최대 길이."""
    longest = current = 0
    for flag in flags:
        current = current + 1 if flag else 0
        longest = max(longest, current)
    return longest
