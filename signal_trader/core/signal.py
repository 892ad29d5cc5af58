"""
매매 시그널 데이터 모델 정의.

[ 역할 ]
    시그널(종목 + 매수일 + 매도일 + 배분 비중)과 체결 기록(Trade),
    실전 매매용 배분 윈도우(AllocationWindow)를 정의.

[ 상태 전이 ]
    백테스트: PENDING → ACTIVE → SOLD       (종료 시그널 보존)
    실전매매: PENDING → BOUGHT → COMPLETED  (종료 시그널 저장 시 삭제)

    두 흐름은 LifecycleProfile로 구분되며 전이 로직은 engine/signal_engine.py 하나뿐.

[ 손익 계산 원칙 ]
    매도 시 각 Trade는 자신의 수량 × 매도가로 proceeds를 계산.
    평균 단가로 뭉뚱그리지 않으므로 최초 매수/추가 매수 각각의 손익이 보존된다.

[ 호출하는 곳 ]
    - engine/signal_engine.py에서 상태 전이 및 Trade 기록
    - data/signal_store.py에서 to_dict()/from_dict()로 저장/로드
    - data/signal_loader.py에서 CSV → Signal 변환
"""

from dataclasses import dataclass, field, replace
from datetime import date, datetime
from decimal import ROUND_DOWN, Decimal
from enum import Enum
from typing import Any, Optional

# 소수점 주식 최소 단위 (9자리)
QUANTITY_STEP = Decimal("0.000000001")


def quantize_quantity(quantity: Decimal) -> Decimal:
    """수량을 9자리로 내림. 수량 합계가 계좌 보유 수량과 정확히 일치하도록."""
    return quantity.quantize(QUANTITY_STEP, rounding=ROUND_DOWN)


def to_decimal(value: Any) -> Decimal:
    """float/str/int를 Decimal로 변환. float는 문자열을 거쳐 이진 오차를 피한다."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(repr(value))
    return Decimal(str(value))


class SignalStatus(Enum):
    """시그널 상태. 백테스트와 실전매매의 이름을 모두 포함."""
    PENDING = "PENDING"
    ACTIVE = "ACTIVE"          # 백테스트: 매수 완료
    SOLD = "SOLD"              # 백테스트: 매도 완료 (종료)
    BOUGHT = "BOUGHT"          # 실전매매: 매수 완료
    COMPLETED = "COMPLETED"    # 실전매매: 매도 완료 (종료, 저장 시 삭제)


class TerminalAction(Enum):
    """종료 상태 도달 시 기록 처리 방식."""
    RETAIN = "retain"
    DELETE = "delete"


@dataclass(frozen=True)
class LifecycleProfile:
    """상태 이름과 종료 처리 방식을 묶은 프로파일."""
    active_status: SignalStatus
    terminal_status: SignalStatus
    terminal_action: TerminalAction


BACKTEST_PROFILE = LifecycleProfile(
    active_status=SignalStatus.ACTIVE,
    terminal_status=SignalStatus.SOLD,
    terminal_action=TerminalAction.RETAIN,
)

LIVE_PROFILE = LifecycleProfile(
    active_status=SignalStatus.BOUGHT,
    terminal_status=SignalStatus.COMPLETED,
    terminal_action=TerminalAction.DELETE,
)

ACTIVE_STATUSES = (SignalStatus.ACTIVE, SignalStatus.BOUGHT)
TERMINAL_STATUSES = (SignalStatus.SOLD, SignalStatus.COMPLETED)


@dataclass(frozen=True)
class Trade:
    """체결 1건의 불변 기록. 매도 시 close()가 새 Trade를 반환."""
    buy_date: date
    buy_price: Decimal
    cost: Decimal
    quantity: Decimal
    sell_date: Optional[date] = None
    sell_price: Optional[Decimal] = None
    proceeds: Optional[Decimal] = None
    profit_loss: Optional[Decimal] = None

    @property
    def is_closed(self) -> bool:
        return self.sell_date is not None

    @property
    def profit_loss_pct(self) -> Decimal:
        """손익률 (%). 미청산이거나 원가가 0이면 0."""
        if self.profit_loss is None or self.cost == 0:
            return Decimal("0")
        return self.profit_loss / self.cost * 100

    def close(self, sell_date: date, sell_price: Decimal) -> "Trade":
        """자기 수량 기준으로 proceeds/손익을 계산한 청산 Trade 반환."""
        proceeds = self.quantity * sell_price
        return replace(
            self,
            sell_date=sell_date,
            sell_price=sell_price,
            proceeds=proceeds,
            profit_loss=proceeds - self.cost,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "buy_date": self.buy_date.isoformat(),
            "buy_price": str(self.buy_price),
            "cost": str(self.cost),
            "quantity": str(self.quantity),
            "sell_date": self.sell_date.isoformat() if self.sell_date else None,
            "sell_price": str(self.sell_price) if self.sell_price is not None else None,
            "proceeds": str(self.proceeds) if self.proceeds is not None else None,
            "profit_loss": str(self.profit_loss) if self.profit_loss is not None else None,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Trade":
        def _opt_decimal(key: str) -> Optional[Decimal]:
            value = data.get(key)
            return Decimal(str(value)) if value is not None else None

        sell_date = data.get("sell_date")
        return cls(
            buy_date=_parse_date(data["buy_date"]),
            buy_price=Decimal(str(data["buy_price"])),
            cost=Decimal(str(data["cost"])),
            quantity=Decimal(str(data["quantity"])),
            sell_date=_parse_date(sell_date) if sell_date else None,
            sell_price=_opt_decimal("sell_price"),
            proceeds=_opt_decimal("proceeds"),
            profit_loss=_opt_decimal("profit_loss"),
        )


@dataclass
class Signal:
    """매매 시그널. 엔진이 틱마다 상태를 갱신한다."""
    id: str
    ticker: str
    buy_date: date
    sell_date: date
    allocation_percentage: Decimal = Decimal("0")
    status: SignalStatus = SignalStatus.PENDING
    initial_trade: Optional[Trade] = None
    dip_trades: list[Trade] = field(default_factory=list)
    high_price: Decimal = Decimal("0")
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def __post_init__(self):
        if self.sell_date < self.buy_date:
            raise ValueError(
                f"sell_date({self.sell_date}) must not be before buy_date({self.buy_date}) for {self.ticker}"
            )
        if self.allocation_percentage < 0:
            raise ValueError(f"allocation_percentage must be non-negative: {self.allocation_percentage}")

    @property
    def is_pending(self) -> bool:
        return self.status == SignalStatus.PENDING

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def trades(self) -> list[Trade]:
        """최초 매수 + 추가 매수 순서대로."""
        if self.initial_trade is None:
            return []
        return [self.initial_trade, *self.dip_trades]

    @property
    def total_quantity(self) -> Decimal:
        return sum((t.quantity for t in self.trades), Decimal("0"))

    @property
    def total_cost(self) -> Decimal:
        return sum((t.cost for t in self.trades), Decimal("0"))

    @property
    def last_buy_date(self) -> date:
        """가장 최근 체결일. 체결이 없으면 시그널 매수일."""
        if self.initial_trade is None:
            return self.buy_date
        return max(t.buy_date for t in self.trades)

    @property
    def realized_profit_loss(self) -> Decimal:
        """청산된 Trade 손익 합계."""
        return sum(
            (t.profit_loss for t in self.trades if t.profit_loss is not None),
            Decimal("0"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "ticker": self.ticker,
            "buy_date": self.buy_date.isoformat(),
            "sell_date": self.sell_date.isoformat(),
            "allocation_percentage": str(self.allocation_percentage),
            "status": self.status.value,
            "initial_trade": self.initial_trade.to_dict() if self.initial_trade else None,
            "dip_trades": [t.to_dict() for t in self.dip_trades],
            "high_price": str(self.high_price),
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Signal":
        initial = data.get("initial_trade")
        created_at = data.get("created_at")
        updated_at = data.get("updated_at")
        return cls(
            id=str(data["id"]),
            ticker=data["ticker"],
            buy_date=_parse_date(data["buy_date"]),
            sell_date=_parse_date(data["sell_date"]),
            allocation_percentage=Decimal(str(data.get("allocation_percentage", "0"))),
            status=SignalStatus(data.get("status", SignalStatus.PENDING.value)),
            initial_trade=Trade.from_dict(initial) if initial else None,
            dip_trades=[Trade.from_dict(t) for t in data.get("dip_trades") or []],
            high_price=Decimal(str(data.get("high_price", "0"))),
            created_at=_parse_datetime(created_at) if created_at else None,
            updated_at=_parse_datetime(updated_at) if updated_at else None,
        )


@dataclass
class AllocationWindow:
    """실전 매매용 배분 윈도우. 윈도우 종료일이 지나면 다시 계산된다."""
    window_start: date
    window_end: date
    account_value: Decimal
    allocation_per_signal: Decimal
    total_signals_in_window: int
    updated_at: Optional[datetime] = None

    def is_expired(self, current_date: date) -> bool:
        return current_date > self.window_end

    def to_dict(self) -> dict[str, Any]:
        return {
            "window_start": self.window_start.isoformat(),
            "window_end": self.window_end.isoformat(),
            "account_value": str(self.account_value),
            "allocation_per_signal": str(self.allocation_per_signal),
            "total_signals_in_window": self.total_signals_in_window,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AllocationWindow":
        updated_at = data.get("updated_at")
        return cls(
            window_start=_parse_date(data["window_start"]),
            window_end=_parse_date(data["window_end"]),
            account_value=Decimal(str(data["account_value"])),
            allocation_per_signal=Decimal(str(data["allocation_per_signal"])),
            total_signals_in_window=int(data["total_signals_in_window"]),
            updated_at=_parse_datetime(updated_at) if updated_at else None,
        )


def _parse_date(value: Any) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value))


def _parse_datetime(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value))
