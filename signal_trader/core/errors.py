"""
매매 처리 중 발생하는 예외 정의.

[ 역할 ]
    시그널 단위 처리 실패를 표현하는 예외 계층.
    TradingError 하위 예외는 시그널 하나의 실패로 취급되어
    엔진이 집계 후 다음 시그널로 넘어간다.

[ 호출하는 곳 ]
    - brokers/mock_broker.py::BacktestBroker (잔고/보유수량 부족 시 raise)
    - engine/signal_engine.py::SignalEngine (매도 수량 불일치, 주문 미체결 시 raise, 전체 catch)
    - live/trading_bot.py (배분 윈도우 없음 처리)
"""


class TradingError(Exception):
    """시그널 단위 처리 실패의 공통 부모."""


class MissingQuoteError(TradingError):
    """해당 날짜에 시세가 없음. 다음 틱에 재시도."""

    def __init__(self, ticker: str, on_date=None):
        self.ticker = ticker
        self.on_date = on_date
        super().__init__(f"No quote for {ticker} on {on_date}")


class InsufficientFundsError(TradingError):
    """매수 금액이 가용 현금을 초과."""

    def __init__(self, need, have):
        self.need = need
        self.have = have
        super().__init__(f"insufficient funds: need {need}, have {have}")


class InsufficientSharesError(TradingError):
    """매도 수량이 보유 수량을 초과."""

    def __init__(self, ticker: str, need, have):
        self.ticker = ticker
        self.need = need
        self.have = have
        super().__init__(f"insufficient shares for {ticker}: have {have}, trying to sell {need}")


class PositionMismatchError(TradingError):
    """시그널 기록 수량보다 계좌 보유 수량이 적음 (상태 불일치)."""

    def __init__(self, ticker: str, need, have):
        self.ticker = ticker
        self.need = need
        self.have = have
        super().__init__(f"position mismatch for {ticker}: have {have}, need {need}")


class AllocationWindowMissingError(TradingError):
    """실전 매매에서 배분 윈도우가 없음."""


class OrderRejectedError(TradingError):
    """주문이 체결되지 않음 (FAILED/CANCELLED/PENDING 또는 체결 수량 0)."""
