"""
시장 데이터 관리 모듈.

[ 역할 ]
    DataProvider(OHLCV 이력)를 감싸서 엔진이 쓰는 QuoteSource로 변환.
    종목별 DataFrame을 캐싱하고, 20일 단순이동평균(SMA20)을 미리 계산해 둔다.

[ 제공 기능 ]
    get_quote()          : 특정일 종가 + SMA20 (데이터 없으면 None)
    is_market_open()     : 주말 제외 + 기준 종목(또는 로드된 종목)에 거래 데이터가 있는 날
    get_closing_price()  : 특정일 종가. 없으면 최대 N일(기본 10일) 뒤까지 전진 탐색
    get_daily_closes()   : 기간 내 일별 종가 리스트

[ 의존성 ]
    - core/data_provider.py::DataProvider (데이터 소스 추상화)

[ 호출하는 곳 ]
    - backtest/engine.py에서 날짜별 시세 조회
    - backtest/comparison.py에서 종가/가격 경로 조회
"""

import logging
from datetime import date, timedelta
from typing import Optional

import pandas as pd

from signal_trader.core.data_provider import DataProvider, QuoteSource, TickerQuote
from signal_trader.core.signal import to_decimal

logger = logging.getLogger("signal_trader.market_data")


class HistoricalQuoteSource(QuoteSource):
    """DataProvider 위에 캐싱 + SMA 계산을 추가한 시세 소스.

    사용 예:
        provider = MockDataProvider()
        source = HistoricalQuoteSource(provider)
        source.prepare(["AAPL"], date(2024, 1, 1), date(2024, 6, 30))
        quote = source.get_quote("AAPL", date(2024, 3, 4))
    """

    def __init__(
        self,
        data_provider: DataProvider,
        sma_period: int = 20,
        max_lookahead_days: int = 10,
        calendar_ticker: Optional[str] = None,
        lookback_days: int = 45,
    ):
        self.provider = data_provider
        self.sma_period = sma_period
        self.max_lookahead_days = max_lookahead_days
        self.calendar_ticker = calendar_ticker or None
        self.lookback_days = lookback_days    # SMA 계산용으로 시작일 이전 데이터를 더 가져옴
        self._cache: dict[str, pd.DataFrame] = {}              # ticker → date 인덱스 DataFrame
        self._ranges: dict[str, tuple[date, date]] = {}        # ticker → 캐시된 조회 범위

    def prepare(self, tickers: list[str], start_date: date, end_date: date) -> None:
        """종목별 데이터를 미리 로드 (백테스트 시작 시 1회)."""
        for ticker in sorted(set(tickers)):
            self._ensure_range(ticker, start_date, end_date)
        if self.calendar_ticker:
            self._ensure_range(self.calendar_ticker, start_date, end_date)

    def get_quote(self, ticker: str, on_date: date) -> Optional[TickerQuote]:
        df = self._ensure_range(ticker, on_date, on_date)
        if on_date not in df.index:
            return None

        row = df.loc[on_date]
        sma = row["sma"]
        return TickerQuote(
            price=to_decimal(round(float(row["close"]), 6)),
            sma20=to_decimal(round(float(sma), 6)) if pd.notna(sma) else None,
        )

    def is_market_open(self, on_date: date) -> bool:
        if on_date.weekday() >= 5:
            return False

        if self.calendar_ticker:
            df = self._ensure_range(self.calendar_ticker, on_date, on_date)
            return on_date in df.index

        return any(on_date in df.index for df in self._cache.values())

    def get_closing_price(self, ticker: str, on_date: date) -> Optional[tuple[date, float]]:
        """특정일 종가. 거래일이 아니면 다음 거래일로 전진 (최대 max_lookahead_days회).

        Returns:
            (실제 사용된 날짜, 종가) 또는 None
        """
        df = self._ensure_range(ticker, on_date, on_date + timedelta(days=self.max_lookahead_days))
        current = on_date
        for attempt in range(self.max_lookahead_days):
            if current in df.index:
                if attempt > 0:
                    logger.info(f"{ticker}: {on_date} 데이터 없음 → {current} 종가 사용")
                return current, float(df.loc[current]["close"])
            current += timedelta(days=1)

        logger.warning(f"{ticker}: {on_date}부터 {self.max_lookahead_days}일간 데이터 없음")
        return None

    def get_daily_closes(self, ticker: str, start_date: date, end_date: date) -> list[float]:
        """기간 내 일별 종가 (날짜 오름차순)."""
        df = self._ensure_range(ticker, start_date, end_date)
        mask = (df.index >= start_date) & (df.index <= end_date)
        return [float(c) for c in df.loc[mask, "close"]]

    def _ensure_range(self, ticker: str, start_date: date, end_date: date) -> pd.DataFrame:
        """캐시 범위가 요청 범위를 포함하지 않으면 합집합 범위로 다시 조회."""
        cached = self._ranges.get(ticker)
        if cached is not None and cached[0] <= start_date and end_date <= cached[1]:
            return self._cache[ticker]

        if cached is not None:
            start_date = min(start_date, cached[0])
            end_date = max(end_date, cached[1])

        fetch_start = start_date - timedelta(days=self.lookback_days)
        raw = self.provider.get_ohlcv(ticker, fetch_start, end_date)
        df = self._prepare_frame(raw)

        self._cache[ticker] = df
        self._ranges[ticker] = (start_date, end_date)
        return df

    def _prepare_frame(self, raw: pd.DataFrame) -> pd.DataFrame:
        """date 인덱스 + sma 컬럼을 갖는 DataFrame으로 정리."""
        if raw is None or raw.empty:
            return pd.DataFrame(columns=["close", "sma"], index=pd.Index([], name="date"))

        df = raw.copy()
        df["date"] = pd.to_datetime(df["date"]).dt.date
        df = df.drop_duplicates(subset="date", keep="last").sort_values("date")
        df["sma"] = df["close"].rolling(window=self.sma_period, min_periods=self.sma_period).mean()
        return df.set_index("date")
