"""
CSV 시그널 로더.

[ 역할 ]
    시그널 CSV 파일을 읽어 PENDING 상태의 Signal 리스트로 변환.

[ CSV 형식 ]
    ticker,buy_date,sell_date,status,allocation_percentage
    AAPL,2024-01-02,2024-03-01,PENDING,25

    - 날짜는 ISO 형식 (YYYY-MM-DD)
    - status 컬럼은 있어도 무시 (백테스트는 항상 PENDING에서 시작)
    - id 컬럼이 없으면 행 순서대로 00000, 00001, ... 부여

[ 호출하는 곳 ]
    - run_backtest.py --signals
    - run_trading_bot.py --import-signals (실전 저장소에 신규 시그널 추가)
"""

import logging
from datetime import date
from decimal import Decimal, InvalidOperation
from pathlib import Path

import pandas as pd

from signal_trader.core.signal import Signal, SignalStatus

logger = logging.getLogger("signal_trader.signal_loader")

REQUIRED_COLUMNS = ["ticker", "buy_date", "sell_date", "allocation_percentage"]


def load_signals_from_csv(path: str | Path) -> list[Signal]:
    """CSV 파일에서 시그널 로드.

    Raises:
        FileNotFoundError: 파일 없음
        ValueError: 필수 컬럼 누락 또는 값 파싱 실패 (행 번호 포함)
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"CSV file does not exist: {path}")

    df = pd.read_csv(path, dtype=str, keep_default_na=False)
    df.columns = [c.strip() for c in df.columns]
    return signals_from_frame(df)


def signals_from_frame(df: pd.DataFrame) -> list[Signal]:
    """DataFrame(문자열 컬럼)을 Signal 리스트로 변환."""
    missing = [c for c in REQUIRED_COLUMNS if c not in df.columns]
    if missing:
        raise ValueError(f"missing CSV columns: {missing}")

    signals = []
    for i, row in enumerate(df.to_dict(orient="records")):
        signal_id = str(row.get("id") or "").strip() or f"{i:05d}"
        try:
            signal = Signal(
                id=signal_id,
                ticker=str(row["ticker"]).strip().upper(),
                buy_date=date.fromisoformat(str(row["buy_date"]).strip()),
                sell_date=date.fromisoformat(str(row["sell_date"]).strip()),
                allocation_percentage=Decimal(str(row["allocation_percentage"]).strip()),
                status=SignalStatus.PENDING,
            )
        except (ValueError, InvalidOperation) as e:
            raise ValueError(f"invalid signal row {i + 1}: {row} ({e})") from e
        signals.append(signal)

    logger.info(f"시그널 {len(signals)}개 로드")
    return signals
