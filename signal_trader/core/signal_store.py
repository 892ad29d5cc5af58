"""
시그널 저장소 추상 클래스 정의.

[ 역할 ]
    실전 매매 실행 시작 시 전체 시그널 + 배분 윈도우를 한 번에 읽고,
    실행 종료 시 한 번에 저장하는 스냅샷 인터페이스.
    저장 실패는 전체 실행 실패로 취급 (부분 저장 시 배분 계산이 어긋나므로).

[ 구현체 ]
    - data/signal_store.py::YamlSignalStore (YAML 파일)

[ 호출하는 곳 ]
    - live/trading_bot.py::TradingBot.run()
"""

from abc import ABC, abstractmethod
from typing import Optional

from signal_trader.core.signal import AllocationWindow, Signal


class SignalStore(ABC):
    """시그널/배분 윈도우 일괄 로드·저장 인터페이스."""

    @abstractmethod
    def load_all(self) -> tuple[list[Signal], Optional[AllocationWindow]]:
        """전체 시그널과 현재 배분 윈도우 로드."""
        ...

    @abstractmethod
    def save_all(self, signals: list[Signal], window: Optional[AllocationWindow]) -> None:
        """전체 시그널과 배분 윈도우 일괄 저장 (기존 내용 대체)."""
        ...
