"""
샘플 주가 데이터 생성.

네트워크 없이 백테스트를 돌려보기 위한 랜덤워크 일봉 생성기.
종목 코드로 시드를 고정하므로 같은 종목은 항상 같은 데이터를 만든다.
"""

import zlib
from datetime import date

import numpy as np
import pandas as pd


def generate_sample_data(
    ticker: str,
    start_date: date,
    end_date: date,
    initial_price: float = 100.0,
    volatility: float = 0.02,
) -> pd.DataFrame:
    """백테스트용 샘플 주가 데이터 생성 (영업일만)."""
    rng = np.random.default_rng(zlib.crc32(ticker.encode("utf-8")))

    dates = pd.bdate_range(start=start_date, end=end_date)
    n = len(dates)

    returns = rng.normal(0.0003, volatility, n)
    prices = initial_price * np.cumprod(1 + returns)

    data = []
    for i, d in enumerate(dates):
        close = prices[i]
        high = close * (1 + abs(rng.normal(0, 0.01)))
        low = close * (1 - abs(rng.normal(0, 0.01)))
        open_price = close * (1 + rng.normal(0, 0.005))
        volume = int(rng.lognormal(12, 1))

        data.append({
            "date": d.date(),
            "open": round(open_price, 2),
            "high": round(high, 2),
            "low": round(low, 2),
            "close": round(close, 2),
            "volume": volume,
        })

    return pd.DataFrame(data)
