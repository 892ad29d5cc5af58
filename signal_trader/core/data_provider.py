"""
주가 데이터 제공 추상 클래스 정의.

[ 역할 ]
    DataProvider: OHLCV(시가/고가/저가/종가/거래량) 이력을 제공하는 인터페이스.
    QuoteSource:  엔진이 틱마다 조회하는 시세(종가 + 20일 이평) 및 개장일 판단.

[ 구현체 ]
    - brokers/mock_broker.py::MockDataProvider  (DataFrame 기반, 백테스트/테스트용)
    - data/yahoo_provider.py::YahooDataProvider (yfinance 기반)
    - data/market_data.py::HistoricalQuoteSource (DataProvider → QuoteSource 변환)

[ 호출하는 곳 ]
    - backtest/engine.py에서 날짜별 시세 조회
    - backtest/comparison.py에서 종가/일별 가격 조회
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Optional

import pandas as pd


@dataclass
class TickerQuote:
    """엔진에 전달되는 시세. sma20이 None이면 이평 계산 불가(이력 부족)."""
    price: Decimal
    sma20: Optional[Decimal] = None
    bid: Optional[Decimal] = None
    ask: Optional[Decimal] = None

    @property
    def buy_price(self) -> Decimal:
        """매수 체결 기준가. 매도호가가 있으면 그것을 사용."""
        return self.ask if self.ask is not None and self.ask > 0 else self.price

    @property
    def sell_price(self) -> Decimal:
        """매도 체결 기준가. 매수호가가 있으면 그것을 사용."""
        return self.bid if self.bid is not None and self.bid > 0 else self.price


class DataProvider(ABC):
    """주가 데이터 제공 추상 클래스."""

    @abstractmethod
    def get_ohlcv(
        self,
        ticker: str,
        start_date: date,
        end_date: date,
    ) -> pd.DataFrame:
        """OHLCV 데이터 조회.

        Returns:
            DataFrame with columns: [date, open, high, low, close, volume]
        """
        ...

    @abstractmethod
    def get_tickers(self) -> list[str]:
        """조회 가능한 종목 코드 목록."""
        ...


class QuoteSource(ABC):
    """엔진이 사용하는 시세/달력 인터페이스."""

    @abstractmethod
    def get_quote(self, ticker: str, on_date: date) -> Optional[TickerQuote]:
        """해당 날짜 시세. 거래 데이터가 없으면 None."""
        ...

    @abstractmethod
    def is_market_open(self, on_date: date) -> bool:
        """해당 날짜 개장 여부."""
        ...
