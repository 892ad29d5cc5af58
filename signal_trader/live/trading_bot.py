"""
실전 매매 봇 모듈.

[ 역할 ]
    스케줄러(cron 등)가 하루 한 번 호출하는 실전 매매 작업.
    저장소의 시그널을 불러와 실전/모의 증권사 계좌로 한 틱 진행한 뒤 다시 저장.

[ 실행 흐름 ] run()
    1. 장 운영 여부 확인 (check_market_open=False면 생략) → 휴장이면 종료
    2. 저장소에서 시그널 + 배분 윈도우 로드 (종료 상태 시그널은 제외)
    3. 배분 윈도우 갱신 (없거나 만료되었으면 총자산 / 최대 시그널 수로 재계산)
    4. 처리할 종목의 최신 호가 조회
    5. SignalEngine.run_tick() (LIVE_PROFILE + WindowAllocator)
    6. 저장 (COMPLETED 시그널은 삭제)
    7. RunReport 로그 출력

    2, 3, 6단계 실패는 실행 전체 실패 (예외 전파).
    시그널 단위 실패는 에러 수로 집계만 하고 다음 시그널로 진행.

[ 의존성 ]
    - core/broker_api.py::LiveBrokerAPI (증권사 구현체는 외부 제공)
    - core/signal_store.py::SignalStore
    - engine/signal_engine.py::SignalEngine

[ 호출하는 곳 ]
    - run_trading_bot.py (진입점)
"""

import logging
import uuid
from dataclasses import asdict, dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Callable, Optional

from signal_trader.core.broker_api import LiveBrokerAPI
from signal_trader.core.data_provider import TickerQuote
from signal_trader.core.signal import LIVE_PROFILE, AllocationWindow, Signal
from signal_trader.core.signal_store import SignalStore
from signal_trader.engine.allocation import WindowAllocator, refresh_allocation_window
from signal_trader.engine.dip_buy import DipBuyEvaluator
from signal_trader.engine.signal_engine import SignalEngine
from signal_trader.utils.config import DipBuyConfig, TradingBotConfig

logger = logging.getLogger("signal_trader.bot")


@dataclass
class RunReport:
    """실행 1회 요약."""
    run_date: date
    processed: int = 0
    errors: int = 0
    skipped: int = 0
    account_value: Decimal = Decimal("0")
    cash_balance: Decimal = Decimal("0")
    open_signals: int = 0
    market_closed: bool = False

    def summary(self) -> str:
        if self.market_closed:
            return f"[{self.run_date}] 휴장일, 매매 생략"
        return (
            f"[{self.run_date}] 처리 {self.processed}건, 에러 {self.errors}건, 시세 없음 {self.skipped}건 | "
            f"총자산 ${self.account_value:,.2f}, 현금 ${self.cash_balance:,.2f}, "
            f"보유/대기 시그널 {self.open_signals}개"
        )


class TradingBot:
    """실전 매매 봇.

    사용 예:
        bot = TradingBot(broker, YamlSignalStore("data/signals.yaml"), config.trading_bot)
        report = bot.run()
    """

    def __init__(
        self,
        broker: LiveBrokerAPI,
        store: SignalStore,
        config: Optional[TradingBotConfig] = None,
        dip_buy: Optional[DipBuyConfig] = None,
        today: Callable[[], date] = date.today,
    ):
        self.broker = broker
        self.store = store
        self.config = config or TradingBotConfig()
        self.dip_buy = dip_buy or DipBuyConfig()
        self.today = today

        self.signals: list[Signal] = []
        self.window: Optional[AllocationWindow] = None

    def run(self, current_date: Optional[date] = None) -> RunReport:
        """한 틱 실행."""
        current_date = current_date or self.today()
        logger.info(f"실전 매매 봇 시작: {current_date}")

        if self.config.check_market_open and not self.broker.is_market_open(current_date):
            report = RunReport(run_date=current_date, market_closed=True)
            logger.info(report.summary())
            return report

        self.load()
        self.window = refresh_allocation_window(
            self.window,
            self.broker,
            current_date,
            max_signals_per_window=self.config.max_signals_per_window,
            window_duration_days=self.config.window_duration_days,
        )

        engine = SignalEngine(
            broker=self.broker,
            profile=LIVE_PROFILE,
            allocator=WindowAllocator(self.window, Decimal(str(self.config.default_allocation_amount))),
            dip_evaluator=DipBuyEvaluator(asdict(self.dip_buy)) if self.config.dip_buy_enabled else None,
        )

        quotes = self.fetch_quotes(current_date)
        result = engine.run_tick(self.signals, quotes, current_date)

        remaining = engine.retained(self.signals)
        self.store.save_all(remaining, self.window)
        self.signals = remaining

        report = RunReport(
            run_date=current_date,
            processed=result.processed,
            errors=result.errors,
            skipped=result.skipped,
            account_value=self.broker.get_account_value(),
            cash_balance=self.broker.get_cash_balance(),
            open_signals=len(remaining),
        )
        logger.info(report.summary())
        return report

    def load(self) -> None:
        """저장소에서 로드. 종료 상태 시그널은 버린다."""
        signals, window = self.store.load_all()
        self.signals = [s for s in signals if not s.is_terminal]
        self.window = window
        logger.info(f"진행 중 시그널 {len(self.signals)}개 로드 (전체 {len(signals)}개)")

    def fetch_quotes(self, current_date: date) -> dict[str, TickerQuote]:
        """오늘 처리할 시그널 종목의 최신 호가. 조회 불가 종목은 빠진다."""
        tickers = sorted({
            s.ticker for s in self.signals
            if s.is_active or (s.is_pending and current_date >= s.buy_date)
        })
        quotes: dict[str, TickerQuote] = {}
        for ticker in tickers:
            quote = self.broker.get_latest_quote(ticker)
            if quote is None:
                logger.warning(f"{ticker} 호가 조회 불가")
                continue
            quotes[ticker] = quote
        return quotes

    def import_signals(self, new_signals: list[Signal]) -> int:
        """신규 시그널을 저장소에 추가. id는 uuid로 다시 부여.

        Returns:
            추가된 시그널 수
        """
        signals, window = self.store.load_all()
        now = datetime.now()
        for signal in new_signals:
            signal.id = str(uuid.uuid4())
            signal.created_at = signal.created_at or now
            signal.updated_at = now
        self.store.save_all(signals + new_signals, window)
        logger.info(f"신규 시그널 {len(new_signals)}개 추가 (총 {len(signals) + len(new_signals)}개)")
        return len(new_signals)
