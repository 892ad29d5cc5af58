"""
로깅 모듈.

[ 역할 ]
    파일 + 콘솔 로거를 설정. 시그널 상태 전이, 주문 체결, 에러 등을 기록.

[ 로그 파일 위치 ]
    {log_dir}/{name}_{YYYYMMDD}.log (예: logs/signal_trader_20240601.log)

[ 로거 계층 ]
    signal_trader               ← setup_logger()가 핸들러 등록
      ├── signal_trader.engine      (상태 전이)
      ├── signal_trader.broker      (원장 체결)
      ├── signal_trader.allocation  (배분 계산)
      ├── signal_trader.backtest    (백테스트 진행)
      ├── signal_trader.comparison  (전략 비교)
      └── signal_trader.bot         (실전 매매 실행)

[ 호출하는 곳 ]
    - run_backtest.py, run_trading_bot.py에서 setup_logger() 호출
"""

import logging
import sys
from datetime import datetime
from pathlib import Path

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# 외부 라이브러리 중 DEBUG 로그가 많은 것들
NOISY_LOGGERS = ("yfinance", "urllib3", "peewee")


def setup_logger(
    name: str = "signal_trader",
    level: str = "INFO",
    log_dir: str | None = "logs",
    console: bool = True,
) -> logging.Logger:
    """로거 설정. 파일 핸들러(일별) + 콘솔 핸들러 등록.

    log_dir이 None이면 파일 핸들러 없이 콘솔만 사용.
    같은 이름으로 다시 호출하면 레벨만 바꾸고 핸들러는 중복 등록하지 않는다.
    """
    logger = logging.getLogger(name)
    logger.setLevel(getattr(logging, level.upper()))

    for noisy in NOISY_LOGGERS:
        logging.getLogger(noisy).setLevel(logging.WARNING)

    if logger.handlers:
        return logger

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    if log_dir is not None:
        log_path = Path(log_dir)
        log_path.mkdir(parents=True, exist_ok=True)
        today = datetime.now().strftime("%Y%m%d")
        file_handler = logging.FileHandler(log_path / f"{name}_{today}.log", encoding="utf-8")
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    if console:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

    return logger
