"""
추가 매수(Dip Buy) 조건 평가 모듈.

[ 역할 ]
    보유 중인 시그널에 대해 "지금 한 번 더 사도 되는가"를 판단하는 순수 함수.
    원장이나 시그널을 변경하지 않는다.

[ 조건 (순서대로, 첫 실패에서 중단) ]
    1. 현재가 < SMA20                      (SMA 없음/0이면 실패)
    2. 고점 대비 하락률 >= min_drop_pct     (고점이 0 이하이면 실패)
    3. SMA20 >= 최초 매수가                 (장기 추세가 아직 매수가 위)
    4. 마지막 체결 후 min_days_between_buys일 이상 경과
    5. 현재가 < 최초 매수가
    6. 추가 매수 횟수 < max_dip_buys

[ 반환 ]
    (매수 여부, 사유) 튜플. 실패 시 사유는 어떤 조건에서 걸렸는지 설명.

[ 호출하는 곳 ]
    - engine/signal_engine.py::SignalEngine (보유 중 + 매도일 전)
"""

from datetime import date
from decimal import Decimal
from typing import Any

from signal_trader.core.data_provider import TickerQuote
from signal_trader.core.signal import Signal


class DipBuyEvaluator:
    """추가 매수 조건 평가기."""

    DEFAULT_PARAMS: dict[str, Any] = {
        "min_drop_pct": 10,             # 고점 대비 최소 하락률 (%)
        "min_days_between_buys": 5,     # 마지막 체결 후 최소 경과일
        "max_dip_buys": 2,              # 시그널당 최대 추가 매수 횟수
    }

    def __init__(self, params: dict[str, Any] | None = None):
        self.params = {**self.DEFAULT_PARAMS, **(params or {})}

    @property
    def min_drop_pct(self) -> Decimal:
        return Decimal(str(self.params["min_drop_pct"]))

    @property
    def min_days_between_buys(self) -> int:
        return int(self.params["min_days_between_buys"])

    @property
    def max_dip_buys(self) -> int:
        return int(self.params["max_dip_buys"])

    def should_buy(self, signal: Signal, quote: TickerQuote, current_date: date) -> tuple[bool, str]:
        """추가 매수 여부 판단.

        Returns:
            (True, "조건 충족") 또는 (False, 실패 사유)
        """
        if signal.initial_trade is None:
            return False, "최초 매수 기록 없음"

        price = quote.price
        sma = quote.sma20
        initial_price = signal.initial_trade.buy_price

        # 1. 현재가가 20일 이평 아래
        if sma is None or sma <= 0:
            return False, "SMA20 없음"
        if price >= sma:
            return False, f"현재가({price}) >= SMA20({sma})"

        # 2. 고점 대비 충분히 하락
        high = signal.high_price
        if high <= 0:
            return False, "고점 기록 없음"
        drop_pct = (high - price) / high * 100
        if drop_pct < self.min_drop_pct:
            return False, f"고점 대비 하락 {drop_pct:.2f}% < {self.min_drop_pct}%"

        # 3. 이평이 최초 매수가 위 (추세 붕괴 아님)
        if sma < initial_price:
            return False, f"SMA20({sma}) < 최초 매수가({initial_price})"

        # 4. 마지막 체결 후 최소 경과일
        days_since = (current_date - signal.last_buy_date).days
        if days_since < self.min_days_between_buys:
            return False, f"마지막 매수 후 {days_since}일 < {self.min_days_between_buys}일"

        # 5. 현재가가 최초 매수가 아래
        if price >= initial_price:
            return False, f"현재가({price}) >= 최초 매수가({initial_price})"

        # 6. 추가 매수 횟수 제한
        if len(signal.dip_trades) >= self.max_dip_buys:
            return False, f"추가 매수 {len(signal.dip_trades)}회 (최대 {self.max_dip_buys}회)"

        return True, f"조건 충족 (고점 대비 -{drop_pct:.2f}%)"
