"""
백테스팅 엔진 모듈.

[ 역할 ]
    과거 일별 시세를 시그널 상태 머신(engine/signal_engine.py)에 재생하여
    인메모리 원장(BacktestBroker)으로 가상 매매를 하고 성과를 측정.

[ 실행 흐름 ]
    run_backtest() 호출 시:
        1. 기간 결정: 가장 이른 매수일 ~ 가장 늦은 매도일 + 1일 (설정으로 지정 가능)
        2. 하루씩 진행하며
           → 휴장일이면 건너뜀
           → 입금 요일(기본 월요일)이면 주간 입금
           → 종목별 시세 조회 후 SignalEngine.run_tick()
           → 일별 총 자산 기록 (daily_values)
        3. metrics.calculate_metrics()로 성과 지표 계산

[ 의존성 ]
    - engine/signal_engine.py::SignalEngine (BACKTEST_PROFILE)
    - engine/allocation.py::WeightedAllocator (비중 기반 배분)
    - brokers/mock_broker.py::BacktestBroker (원장)
    - backtest/metrics.py::calculate_metrics() (성과 계산)

[ 호출하는 곳 ]
    - run_backtest.py (진입점)에서 생성 및 실행
"""

import logging
from datetime import date, timedelta
from decimal import Decimal
from typing import Any, Optional

from signal_trader.backtest.metrics import BacktestMetrics, calculate_metrics
from signal_trader.brokers.mock_broker import BacktestBroker
from signal_trader.core.data_provider import QuoteSource, TickerQuote
from signal_trader.core.signal import BACKTEST_PROFILE, Signal, SignalStatus
from signal_trader.engine.allocation import WeightedAllocator
from signal_trader.engine.dip_buy import DipBuyEvaluator
from signal_trader.engine.signal_engine import SignalEngine

logger = logging.getLogger("signal_trader.backtest")


class BacktestEngine:
    """백테스팅 엔진. run_backtest()로 시뮬레이션 실행."""

    def __init__(
        self,
        quote_source: QuoteSource,
        initial_cash: float = 5000,
        weekly_deposit: float = 500,
        deposit_weekday: int = 0,              # 0 = 월요일
        dip_buy_params: Optional[dict[str, Any]] = None,
        dip_buy_enabled: bool = True,
    ):
        self.quote_source = quote_source
        self.initial_cash = Decimal(str(initial_cash))
        self.weekly_deposit = Decimal(str(weekly_deposit))
        self.deposit_weekday = deposit_weekday
        self.dip_evaluator = DipBuyEvaluator(dip_buy_params) if dip_buy_enabled else None

        # 백테스트 실행 후 채워지는 결과
        self.broker: BacktestBroker | None = None     # 최종 원장 상태
        self.signals: list[Signal] = []               # 처리된 시그널 (상태 갱신됨)
        self.daily_values: list[float] = []           # 일별 총 자산 (MDD/샤프 계산용)
        self.daily_dates: list[date] = []             # 일별 날짜
        self.daily_deposits: list[float] = []         # 일별 입금액
        self.error_count: int = 0                     # 시그널 처리 실패 누계
        self.metrics: BacktestMetrics | None = None   # 최종 성과 지표

    def run_backtest(
        self,
        signals: list[Signal],
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> BacktestMetrics:
        """백테스트 실행.

        Args:
            signals: 백테스트할 시그널 (제자리에서 상태가 갱신된다)
            start_date: 시작일 (None이면 가장 이른 매수일)
            end_date: 종료일 (None이면 가장 늦은 매도일 + 1일)

        Returns:
            BacktestMetrics: 성과 지표
        """
        self.broker = BacktestBroker(self.initial_cash)
        self.signals = signals
        self.daily_values = []
        self.daily_dates = []
        self.daily_deposits = []
        self.error_count = 0

        if not signals:
            logger.warning("시그널이 없습니다.")
            self.metrics = BacktestMetrics()
            return self.metrics

        start_date = start_date or min(s.buy_date for s in signals)
        end_date = end_date or max(s.sell_date for s in signals) + timedelta(days=1)
        tickers = sorted({s.ticker for s in signals})

        engine = SignalEngine(
            broker=self.broker,
            profile=BACKTEST_PROFILE,
            allocator=WeightedAllocator(self.broker),
            dip_evaluator=self.dip_evaluator,
        )

        prepare = getattr(self.quote_source, "prepare", None)
        if prepare is not None:
            prepare(tickers, start_date, end_date)

        logger.info(f"백테스트 시작: {start_date} ~ {end_date} (시그널 {len(signals)}개, 종목 {len(tickers)}개)")

        current_date = start_date
        while current_date <= end_date:
            if self.quote_source.is_market_open(current_date):
                self._simulate_day(engine, tickers, current_date)
            else:
                logger.debug(f"[{current_date}] 휴장일, 건너뜀")
            current_date += timedelta(days=1)

        # 성과 지표 계산
        closed_trades = sorted(
            (t for s in signals if s.status == SignalStatus.SOLD for t in s.trades),
            key=lambda t: (t.sell_date, t.buy_date),
        )
        self.metrics = calculate_metrics(
            closed_trades=closed_trades,
            daily_values=self.daily_values,
            total_deposits=float(self.broker.total_deposits),
            trading_days=len(self.daily_dates),
            daily_deposits=self.daily_deposits,
        )

        logger.info(
            f"백테스트 완료. 거래일 {len(self.daily_dates)}일, 에러 {self.error_count}건, "
            f"총 수익률: {self.metrics.total_return:.2f}%"
        )
        return self.metrics

    def _simulate_day(self, engine: SignalEngine, tickers: list[str], current_date: date) -> None:
        """하루 시뮬레이션. 입금 → 시세 조회 → 틱 처리 → 자산 기록."""
        deposited = Decimal("0")
        if current_date.weekday() == self.deposit_weekday and self.weekly_deposit > 0:
            self.broker.deposit(self.weekly_deposit)
            deposited = self.weekly_deposit
            logger.debug(f"[{current_date}] 주간 입금 ${deposited:,.2f}")

        quotes: dict[str, TickerQuote] = {}
        for ticker in tickers:
            quote = self.quote_source.get_quote(ticker, current_date)
            if quote is not None:
                quotes[ticker] = quote

        result = engine.run_tick(self.signals, quotes, current_date)
        self.error_count += result.errors

        self.daily_values.append(self._calculate_total_value(quotes))
        self.daily_dates.append(current_date)
        self.daily_deposits.append(float(deposited))

    def _calculate_total_value(self, quotes: dict[str, TickerQuote]) -> float:
        """당일 종가 기준 총 자산. 시세 없는 종목은 평균 매수가로 평가."""
        total = self.broker.get_cash_balance()
        for ticker, holding in self.broker.get_positions().items():
            quote = quotes.get(ticker)
            price = quote.price if quote is not None else holding.avg_price
            total += holding.quantity * price
        return float(total)

    def generate_report(self) -> dict[str, Any]:
        """백테스트 리포트 생성."""
        if self.metrics is None or self.broker is None:
            return {"error": "백테스트를 먼저 실행하세요."}

        trades = self._trade_rows()
        total_investment = sum((r["investment"] for r in trades), Decimal("0"))
        total_sold = sum((r["sold_amount"] for r in trades), Decimal("0"))
        total_pl = sum((r["profit_loss"] for r in trades), Decimal("0"))

        total_deposits = self.broker.total_deposits
        final_value = self.broker.get_account_value()
        absolute_pl = final_value - total_deposits

        return {
            "metrics": self.metrics.to_dict(),
            "trades": trades,
            "totals": {
                "investment": total_investment,
                "sold_amount": total_sold,
                "profit_loss": total_pl,
                "profit_loss_pct": total_pl / total_investment * 100 if total_investment else Decimal("0"),
            },
            "deposits": {
                "initial_deposit": self.initial_cash,
                "weekly_deposits": total_deposits - self.initial_cash,
                "total_deposits": total_deposits,
                "final_account_value": final_value,
                "profit_loss": absolute_pl,
                "profit_loss_pct": absolute_pl / total_deposits * 100 if total_deposits else Decimal("0"),
            },
            "pending": [_signal_row(s) for s in self.signals if s.status == SignalStatus.PENDING],
            "active": [_signal_row(s) for s in self.signals if s.status == SignalStatus.ACTIVE],
            "positions": [
                {
                    "ticker": h.ticker,
                    "shares": h.quantity,
                    "avg_price": h.avg_price,
                    "value": h.market_value,
                }
                for h in sorted(self.broker.get_positions().values(), key=lambda h: h.ticker)
            ],
            "error_count": self.error_count,
        }

    def _trade_rows(self) -> list[dict[str, Any]]:
        """청산된 시그널의 Trade를 한 줄씩. 손익률 내림차순."""
        rows = []
        for signal in self.signals:
            if signal.status != SignalStatus.SOLD or signal.initial_trade is None:
                continue
            for i, trade in enumerate(signal.trades):
                rows.append({
                    "signal_id": signal.id,
                    "ticker": signal.ticker,
                    "signal_buy_date": signal.buy_date,
                    "buy_date": trade.buy_date,
                    "sell_date": trade.sell_date,
                    "buy_price": trade.buy_price,
                    "sell_price": trade.sell_price,
                    "investment": trade.cost,
                    "sold_amount": trade.proceeds,
                    "profit_loss": trade.profit_loss,
                    "profit_loss_pct": trade.profit_loss_pct,
                    "trade_type": "Initial" if i == 0 else f"Dip Buy {i}",
                })
        rows.sort(key=lambda r: r["profit_loss_pct"], reverse=True)
        return rows


def _signal_row(signal: Signal) -> dict[str, Any]:
    return {
        "signal_id": signal.id,
        "ticker": signal.ticker,
        "buy_date": signal.buy_date,
        "sell_date": signal.sell_date,
        "allocation_percentage": signal.allocation_percentage,
    }
