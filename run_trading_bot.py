"""
실전 매매 봇 실행 스크립트 (진입점).

[ 사용법 ]
    # 오늘 날짜로 한 틱 실행 (cron 등에서 하루 한 번)
    python run_trading_bot.py

    # 날짜 지정 실행
    python run_trading_bot.py --date 2024-06-03

    # 신규 시그널을 저장소에 추가만 하고 종료
    python run_trading_bot.py --import-signals data/example_signals.csv

[ 브로커 설정 ]
    config.yaml의 trading_bot.broker에 "패키지.모듈:클래스" 형식으로 지정.
    클래스는 core/broker_api.py::LiveBrokerAPI를 구현해야 하며 인자 없이 생성 가능해야 한다.
"""

import argparse
import importlib
import logging
import sys
from datetime import date
from pathlib import Path

from signal_trader.core.broker_api import LiveBrokerAPI
from signal_trader.data.signal_loader import load_signals_from_csv
from signal_trader.data.signal_store import YamlSignalStore
from signal_trader.live.trading_bot import TradingBot
from signal_trader.utils.config import Config
from signal_trader.utils.logger import setup_logger

logger = logging.getLogger("signal_trader.bot")


def load_broker(target: str) -> LiveBrokerAPI:
    """'패키지.모듈:클래스' 문자열로 브로커 클래스를 찾아 생성."""
    if not target or ":" not in target:
        raise ValueError(f"브로커 설정 형식 오류: '{target}' (예: my_broker.client:MyBroker)")

    module_name, _, class_name = target.partition(":")
    module = importlib.import_module(module_name)
    broker_cls = getattr(module, class_name)
    if not issubclass(broker_cls, LiveBrokerAPI):
        raise TypeError(f"{target}는 LiveBrokerAPI 구현체가 아닙니다.")
    return broker_cls()


def main():
    parser = argparse.ArgumentParser(description="시그널 실전 매매 봇")
    parser.add_argument("--config", type=str, default="config.yaml", help="설정 파일 경로")
    parser.add_argument("--date", type=str, default=None, help="실행 날짜 (YYYY-MM-DD, 기본 오늘)")
    parser.add_argument("--import-signals", type=str, default=None, metavar="CSV", help="시그널 CSV를 저장소에 추가")
    args = parser.parse_args()

    config_path = Path(args.config)
    config = Config.from_yaml(config_path) if config_path.exists() else Config()
    setup_logger(level=config.log_level, log_dir=config.log_dir)

    store = YamlSignalStore(config.store.path)

    if args.import_signals:
        signals = load_signals_from_csv(args.import_signals)
        # 시그널 추가에는 브로커가 필요 없다
        bot = TradingBot(broker=None, store=store, config=config.trading_bot, dip_buy=config.dip_buy)
        count = bot.import_signals(signals)
        print(f"시그널 {count}개 추가: {config.store.path}")
        return

    broker = load_broker(config.trading_bot.broker)
    bot = TradingBot(broker=broker, store=store, config=config.trading_bot, dip_buy=config.dip_buy)

    run_date = date.fromisoformat(args.date) if args.date else None
    try:
        report = bot.run(run_date)
    except Exception:
        logger.exception("실전 매매 실행 실패")
        sys.exit(1)

    print(report.summary())


if __name__ == "__main__":
    main()
