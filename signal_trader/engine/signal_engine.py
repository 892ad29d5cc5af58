"""
시그널 상태 머신 (백테스트/실전 공용).

[ 역할 ]
    하루(틱) 단위로 전체 시그널을 처리하여 매수/추가매수/매도 주문을 원장에 낸다.
    백테스트와 실전매매는 LifecycleProfile(상태 이름 + 종료 처리)과
    Allocator(배분 방식)만 다르고 전이 규칙은 이 파일 하나다.

[ 틱 처리 순서 ]
    시그널은 id 순서로 정렬하여 처리.
    1차 패스: PENDING이고 오늘 >= 매수일 → 배분액 계산 → 매수 → ACTIVE
    2차 패스: ACTIVE이고 오늘 >= 매도일 → 전체 수량 매도 → 종료 상태
              ACTIVE이고 오늘 <  매도일 → 추가 매수 조건 평가 → 충족 시 추가 매수
              (1차 패스에서 방금 진입한 시그널은 건너뜀)
    마무리:   ACTIVE 시그널의 고점(high_price) 갱신

    1차 패스를 먼저 모두 끝내므로 같은 날 진입하는 시그널들은
    다른 시그널의 매도 대금이 반영되기 전의 총자산 기준으로 배분받는다.

[ 실패 처리 ]
    시세 없음(MissingQuoteError) → 해당 시그널만 건너뛰고 다음 틱에 재시도 (에러 집계 안 함)
    주문 미체결(FILLED 아님)       → OrderRejectedError, 시그널 상태는 그대로
    그 외 TradingError            → 에러 집계 + 로그, 시그널 상태는 그대로
    TradingError가 아닌 예외는 틱 전체를 중단시킨다.

[ 호출하는 곳 ]
    - backtest/engine.py::BacktestEngine (BACKTEST_PROFILE + WeightedAllocator)
    - live/trading_bot.py::TradingBot    (LIVE_PROFILE + WindowAllocator)
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Callable, Optional

from signal_trader.core.broker_api import BrokerAPI, OrderResult, OrderStatus
from signal_trader.core.data_provider import TickerQuote
from signal_trader.core.errors import (
    MissingQuoteError,
    OrderRejectedError,
    PositionMismatchError,
    TradingError,
)
from signal_trader.core.signal import (
    LifecycleProfile,
    Signal,
    TerminalAction,
    Trade,
    quantize_quantity,
)
from signal_trader.engine.allocation import Allocator
from signal_trader.engine.dip_buy import DipBuyEvaluator

logger = logging.getLogger("signal_trader.engine")


@dataclass
class TickResult:
    """틱 1회 처리 결과."""
    current_date: date
    processed: int = 0
    errors: int = 0
    skipped: int = 0                                        # 시세 없음으로 건너뜀
    bought: list[str] = field(default_factory=list)         # 진입한 시그널 id
    dip_bought: list[str] = field(default_factory=list)     # 추가 매수한 시그널 id
    sold: list[str] = field(default_factory=list)           # 매도(종료)한 시그널 id
    error_messages: list[str] = field(default_factory=list)


class SignalEngine:
    """시그널 상태 머신.

    사용 예:
        engine = SignalEngine(broker, BACKTEST_PROFILE, WeightedAllocator(broker), DipBuyEvaluator())
        result = engine.run_tick(signals, quotes, date(2024, 3, 4))
    """

    def __init__(
        self,
        broker: BrokerAPI,
        profile: LifecycleProfile,
        allocator: Allocator,
        dip_evaluator: Optional[DipBuyEvaluator] = None,
    ):
        self.broker = broker
        self.profile = profile
        self.allocator = allocator
        self.dip_evaluator = dip_evaluator    # None이면 추가 매수 비활성화

    def run_tick(
        self,
        signals: list[Signal],
        quotes: dict[str, TickerQuote],
        current_date: date,
    ) -> TickResult:
        """하루치 처리. signals는 제자리에서 갱신된다."""
        result = TickResult(current_date=current_date)
        ordered = sorted(signals, key=lambda s: s.id)
        candidates = [s for s in ordered if not s.is_terminal]
        failed: set[str] = set()
        entered: set[str] = set()

        # ── 1차 패스: 진입 ──
        for signal in candidates:
            if not (signal.is_pending and current_date >= signal.buy_date):
                continue
            ok = self._attempt(
                signal, result, failed,
                lambda s=signal: self.execute_buy(s, quotes.get(s.ticker), ordered, current_date),
            )
            if ok:
                entered.add(signal.id)
                result.bought.append(signal.id)

        # ── 2차 패스: 청산 / 추가 매수 ──
        for signal in candidates:
            if signal.id in entered or signal.id in failed or not signal.is_active:
                continue

            if current_date >= signal.sell_date:
                ok = self._attempt(
                    signal, result, failed,
                    lambda s=signal: self.execute_sell(s, quotes.get(s.ticker), current_date),
                )
                if ok:
                    result.sold.append(signal.id)
            elif self.dip_evaluator is not None:
                ok = self._attempt(
                    signal, result, failed,
                    lambda s=signal: self.try_dip_buy(s, quotes.get(s.ticker), current_date),
                )
                if ok and signal.id in result.dip_bought:
                    logger.info(f"[{signal.id}] {signal.ticker} 추가 매수 {len(signal.dip_trades)}회차 완료")

        self.update_high_prices(candidates, quotes)

        result.processed = len(candidates) - len(failed)
        return result

    # ─── 전이 동작 ───────────────────────────────────────────────────────────

    def execute_buy(
        self,
        signal: Signal,
        quote: Optional[TickerQuote],
        signals: list[Signal],
        current_date: date,
    ) -> Trade:
        """PENDING → ACTIVE. 배분액만큼 매수하고 initial_trade 기록."""
        if quote is None:
            raise MissingQuoteError(signal.ticker, current_date)

        amount = self.allocator.allocate(signal, signals)
        trade = self._buy(signal, amount, quote.buy_price, current_date)

        signal.initial_trade = trade
        signal.status = self.profile.active_status
        signal.updated_at = datetime.now()
        logger.info(
            f"[{signal.id}] {signal.ticker} 매수: {trade.quantity}주 @ ${trade.buy_price:,.2f} "
            f"(원가 ${trade.cost:,.2f})"
        )
        return trade

    def try_dip_buy(
        self,
        signal: Signal,
        quote: Optional[TickerQuote],
        current_date: date,
    ) -> Optional[Trade]:
        """추가 매수 조건을 평가하고 충족 시 매수. 미충족이면 None."""
        if quote is None:
            raise MissingQuoteError(signal.ticker, current_date)

        should_buy, reason = self.dip_evaluator.should_buy(signal, quote, current_date)
        if not should_buy:
            logger.debug(f"[{signal.id}] {signal.ticker} 추가 매수 보류: {reason}")
            return None

        logger.info(f"[{signal.id}] {signal.ticker} 추가 매수 조건 충족: {reason}")
        return self.execute_dip_buy(signal, quote, current_date)

    def execute_dip_buy(self, signal: Signal, quote: TickerQuote, current_date: date) -> Trade:
        """최초 매수 원가만큼 추가 매수하고 dip_trades에 추가."""
        amount = self.allocator.allocate_dip(signal)
        trade = self._buy(signal, amount, quote.buy_price, current_date)

        signal.dip_trades.append(trade)
        signal.updated_at = datetime.now()
        return trade

    def execute_sell(self, signal: Signal, quote: Optional[TickerQuote], current_date: date) -> Decimal:
        """ACTIVE → 종료 상태. 전체 수량을 한 번에 매도하고 각 Trade를 청산.

        Returns:
            시그널 전체 실현 손익
        """
        if quote is None:
            raise MissingQuoteError(signal.ticker, current_date)

        total_quantity = signal.total_quantity
        if total_quantity <= 0:
            raise TradingError(f"no shares to sell for signal {signal.id} ({signal.ticker})")

        have = self.broker.get_position(signal.ticker)
        if have < total_quantity:
            raise PositionMismatchError(signal.ticker, need=total_quantity, have=have)

        order = self.broker.sell_order(signal.ticker, total_quantity, quote.sell_price)
        _require_filled(order, signal.ticker)
        sell_price = _filled_price(order, quote.sell_price)

        signal.initial_trade = signal.initial_trade.close(current_date, sell_price)
        signal.dip_trades = [t.close(current_date, sell_price) for t in signal.dip_trades]
        signal.status = self.profile.terminal_status
        signal.updated_at = datetime.now()

        profit_loss = signal.realized_profit_loss
        logger.info(
            f"[{signal.id}] {signal.ticker} 매도: {total_quantity}주 @ ${sell_price:,.2f}, "
            f"손익 ${profit_loss:,.2f} ({(current_date - signal.buy_date).days}일 보유)"
        )
        return profit_loss

    def update_high_prices(self, signals: list[Signal], quotes: dict[str, TickerQuote]) -> None:
        """보유 중인 시그널의 고점 갱신. 시세 없는 종목은 그대로 둔다."""
        for signal in signals:
            if not signal.is_active:
                continue
            quote = quotes.get(signal.ticker)
            if quote is not None and quote.price > signal.high_price:
                signal.high_price = quote.price

    def retained(self, signals: list[Signal]) -> list[Signal]:
        """저장 대상 시그널. 종료 처리가 DELETE면 종료 시그널을 제외."""
        if self.profile.terminal_action == TerminalAction.DELETE:
            return [s for s in signals if s.status != self.profile.terminal_status]
        return list(signals)

    # ─── 내부 ───────────────────────────────────────────────────────────────

    def _buy(self, signal: Signal, amount: Decimal, price: Decimal, current_date: date) -> Trade:
        if price <= 0:
            raise TradingError(f"invalid price for {signal.ticker}: {price}")

        quantity = quantize_quantity(amount / price)
        if quantity <= 0:
            raise TradingError(f"allocation ${amount} too small to buy {signal.ticker} @ {price}")

        order = self.broker.buy_order(signal.ticker, quantity, price)
        _require_filled(order, signal.ticker)
        filled_quantity = order.filled_quantity
        filled_price = _filled_price(order, price)

        return Trade(
            buy_date=current_date,
            buy_price=filled_price,
            cost=filled_quantity * filled_price,
            quantity=filled_quantity,
        )

    def _attempt(
        self,
        signal: Signal,
        result: TickResult,
        failed: set[str],
        action: Callable[[], object],
    ) -> bool:
        """전이 동작 1건 실행. 시세 없음은 건너뜀, TradingError는 집계."""
        try:
            outcome = action()
        except MissingQuoteError as e:
            logger.warning(f"[{signal.id}] {e}, 다음 틱에 재시도")
            result.skipped += 1
            failed.add(signal.id)
            return False
        except TradingError as e:
            logger.error(f"[{signal.id}] {signal.ticker} 처리 실패: {e}")
            result.errors += 1
            result.error_messages.append(f"{signal.id}: {e}")
            failed.add(signal.id)
            return False

        if isinstance(outcome, Trade) and signal.dip_trades and outcome is signal.dip_trades[-1]:
            result.dip_bought.append(signal.id)
        return True


def _filled_price(order: OrderResult, fallback: Decimal) -> Decimal:
    return order.filled_price if order.filled_price > 0 else fallback


def _require_filled(order: OrderResult, ticker: str) -> None:
    """체결되지 않은 주문은 거부로 처리. 시그널 상태를 바꾸기 전에 호출."""
    if order.status != OrderStatus.FILLED or order.filled_quantity <= 0:
        reason = order.message or f"status={order.status.value}, filled={order.filled_quantity}"
        raise OrderRejectedError(f"{order.side.value} order for {ticker} not filled ({reason})")
