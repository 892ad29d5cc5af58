"""
Yahoo Finance 데이터 제공자.

[ 역할 ]
    core/data_provider.py::DataProvider 구현체.
    yfinance로 일봉 OHLCV를 내려받아 표준 컬럼(date, open, high, low, close, volume)으로 변환.
    네트워크 오류는 max_retries회까지 재시도하고, 모두 실패하면 예외를 전파해 실행을 중단시킨다.

[ 호출하는 곳 ]
    - run_backtest.py --source yahoo
    - data/market_data.py::HistoricalQuoteSource가 감싸서 사용
"""

import logging
import time
from datetime import date, timedelta
from typing import Optional

import pandas as pd
import yfinance as yf

from signal_trader.core.data_provider import DataProvider

logger = logging.getLogger("signal_trader.yahoo")

OHLCV_COLUMNS = ["date", "open", "high", "low", "close", "volume"]


class YahooDataProvider(DataProvider):
    """yfinance 기반 데이터 제공자."""

    def __init__(
        self,
        tickers: Optional[list[str]] = None,
        max_retries: int = 3,
        retry_delay: int = 5,
    ):
        self.tickers = list(tickers or [])
        self.max_retries = max_retries
        self.retry_delay = retry_delay

    def get_ohlcv(
        self,
        ticker: str,
        start_date: date,
        end_date: date,
    ) -> pd.DataFrame:
        """OHLCV 데이터 조회. 데이터가 없으면 빈 DataFrame, 조회 자체가 계속 실패하면 예외."""
        df = self.fetch_ticker_data(ticker, start_date, end_date)
        if df is None:
            return pd.DataFrame(columns=OHLCV_COLUMNS)
        return df

    def get_tickers(self) -> list[str]:
        return list(self.tickers)

    def fetch_ticker_data(
        self,
        ticker: str,
        start_date: date,
        end_date: date,
    ) -> Optional[pd.DataFrame]:
        """Yahoo Finance에서 티커 데이터를 수집.

        Returns:
            DataFrame with columns: [date, open, high, low, close, volume]
            또는 데이터가 없거나 검증 실패 시 None

        Raises:
            마지막 시도의 예외 (max_retries회 모두 실패하면 그대로 전파)
        """
        for attempt in range(self.max_retries):
            try:
                logger.info(
                    f"Fetching {ticker} from {start_date} to {end_date} "
                    f"(attempt {attempt + 1}/{self.max_retries})"
                )

                ticker_obj = yf.Ticker(ticker)
                df = ticker_obj.history(
                    start=start_date,
                    end=end_date + timedelta(days=1),  # end_date 포함
                    auto_adjust=False,
                    actions=False,                      # 배당/분할 제외
                )

                if df.empty:
                    logger.warning(f"No data found for {ticker}")
                    return None

                df = df.reset_index().rename(columns={
                    "Date": "date",
                    "Open": "open",
                    "High": "high",
                    "Low": "low",
                    "Close": "close",
                    "Volume": "volume",
                })
                df = df[OHLCV_COLUMNS]

                # timezone 제거 후 date로
                if pd.api.types.is_datetime64_any_dtype(df["date"]):
                    df["date"] = df["date"].dt.date

                if validate_data(df, ticker):
                    logger.info(f"Successfully fetched {len(df)} rows for {ticker}")
                    return df
                logger.warning(f"Data validation failed for {ticker}")
                return None

            except Exception as e:
                logger.error(f"Error fetching {ticker} (attempt {attempt + 1}/{self.max_retries}): {e}")
                if attempt < self.max_retries - 1:
                    logger.info(f"Retrying in {self.retry_delay} seconds...")
                    time.sleep(self.retry_delay)
                else:
                    logger.error(f"Max retries reached for {ticker}")
                    raise

        return None


def validate_data(df: pd.DataFrame, ticker: str) -> bool:
    """수집한 데이터 검증. 필수 컬럼이 없으면 실패, 이상값은 경고만."""
    if df is None or df.empty:
        logger.warning(f"Empty DataFrame for {ticker}")
        return False

    missing_columns = set(OHLCV_COLUMNS) - set(df.columns)
    if missing_columns:
        logger.error(f"Missing columns for {ticker}: {missing_columns}")
        return False

    null_counts = df[OHLCV_COLUMNS].isnull().sum()
    if null_counts.any():
        logger.warning(f"NULL values found in {ticker}: {null_counts[null_counts > 0].to_dict()}")

    if (df["close"] <= 0).any():
        logger.warning(f"Invalid close values (<=0) for {ticker}: {(df['close'] <= 0).sum()} rows")

    if (df["high"] < df["low"]).any():
        logger.warning(f"Invalid OHLC relationship (high < low) for {ticker}: {(df['high'] < df['low']).sum()} rows")

    return True
