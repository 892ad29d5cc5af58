"""
증권사 API 추상 클래스 정의.

[ 역할 ]
    주문 실행/잔고 조회를 추상화하는 인터페이스 정의.
    백테스트 원장과 실전 증권사 구현체가 같은 인터페이스를 따르므로
    엔진(engine/signal_engine.py)은 어느 쪽인지 모른 채 주문을 낸다.

[ 구현체 ]
    - brokers/mock_broker.py::BacktestBroker  (백테스트용 인메모리 원장)
    - LiveBrokerAPI 구현체                     (실전/모의 증권사 연동 - 외부 제공)

[ 실패 처리 ]
    주문 거부(잔고/수량 부족 등)는 core/errors.py의 TradingError 하위 예외로 raise.
    성공 시 OrderResult(status=FILLED)를 반환.
    FILLED가 아니거나 체결 수량이 0인 결과는 엔진이 주문 거부(OrderRejectedError)로 처리한다.

[ 호출하는 곳 ]
    - engine/signal_engine.py에서 buy_order/sell_order/get_position 호출
    - engine/allocation.py에서 get_account_value 호출
    - backtest/engine.py에서 deposit (주간 입금) 호출
    - live/trading_bot.py에서 계좌 스냅샷 조회
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Optional

from signal_trader.core.data_provider import TickerQuote


# ─── 주문 관련 Enum / Dataclass ─────────────────────────────────────────────

class OrderSide(Enum):
    BUY = "buy"
    SELL = "sell"


class OrderStatus(Enum):
    """주문 상태 추적용."""
    PENDING = "pending"
    FILLED = "filled"
    CANCELLED = "cancelled"
    FAILED = "failed"


@dataclass
class OrderResult:
    """buy_order(), sell_order()의 반환값. 주문 체결 결과를 담는다."""
    order_id: str
    ticker: str
    side: OrderSide
    quantity: Decimal          # 요청 수량
    price: Decimal             # 요청(지정) 가격
    status: OrderStatus
    filled_quantity: Decimal = Decimal("0")
    filled_price: Decimal = Decimal("0")
    message: str = ""


@dataclass
class Holding:
    """보유 종목 1건. 평균 매수가는 매수 때마다 가중평균으로 갱신."""
    ticker: str
    quantity: Decimal
    avg_price: Decimal

    @property
    def market_value(self) -> Decimal:
        """평균 매수가 기준 평가액."""
        return self.quantity * self.avg_price


# ─── 추상 클래스 ────────────────────────────────────────────────────────────

class BrokerAPI(ABC):
    """주문 실행 인터페이스.

    모든 원장/증권사 구현체는 이 클래스를 상속받아 아래 메서드를 구현해야 한다.
    """

    @abstractmethod
    def get_cash_balance(self) -> Decimal:
        """현금 잔고."""
        ...

    @abstractmethod
    def get_position(self, ticker: str) -> Decimal:
        """종목 보유 수량. 보유하지 않으면 0."""
        ...

    @abstractmethod
    def get_positions(self) -> dict[str, Holding]:
        """전체 보유 종목 (복사본)."""
        ...

    @abstractmethod
    def get_account_value(self) -> Decimal:
        """총 자산 (현금 + 보유종목 평가)."""
        ...

    @abstractmethod
    def deposit(self, amount: Decimal) -> None:
        """입금."""
        ...

    @abstractmethod
    def buy_order(self, ticker: str, quantity: Decimal, price: Decimal) -> OrderResult:
        """매수 주문.

        Args:
            ticker: 종목 코드
            quantity: 주문 수량 (소수점 허용)
            price: 주문 가격

        Raises:
            InsufficientFundsError: 현금 부족
        """
        ...

    @abstractmethod
    def sell_order(self, ticker: str, quantity: Decimal, price: Decimal) -> OrderResult:
        """매도 주문.

        Raises:
            InsufficientSharesError: 보유 수량 부족
        """
        ...


class LiveBrokerAPI(BrokerAPI):
    """실전/모의 증권사 인터페이스. 실시간 호가와 장 운영 여부를 추가로 제공."""

    @abstractmethod
    def get_latest_quote(self, ticker: str) -> Optional[TickerQuote]:
        """최신 호가 (bid/ask 포함). 조회 불가 시 None."""
        ...

    @abstractmethod
    def is_market_open(self, on_date: Optional[date] = None) -> bool:
        """장 운영 여부."""
        ...
