"""
YAML 파일 기반 시그널 저장소.

[ 역할 ]
    core/signal_store.py::SignalStore 구현체.
    실전 매매 봇이 실행마다 전체 시그널 + 배분 윈도우를 한 파일로 읽고 쓴다.

[ 파일 구조 ]
    allocation_window:          # 없으면 null
      window_start: "2024-01-02"
      ...
    signals:
      - id: "..."
        ticker: AAPL
        ...

[ 저장 방식 ]
    임시 파일에 먼저 쓰고 교체하므로 저장 도중 실패해도 기존 파일은 유지된다.
"""

import logging
import os
from pathlib import Path
from typing import Optional

import yaml

from signal_trader.core.signal import AllocationWindow, Signal
from signal_trader.core.signal_store import SignalStore

logger = logging.getLogger("signal_trader.store")


class YamlSignalStore(SignalStore):
    """YAML 파일 하나에 전체 상태를 저장."""

    def __init__(self, path: str | Path):
        self.path = Path(path)

    def load_all(self) -> tuple[list[Signal], Optional[AllocationWindow]]:
        if not self.path.exists():
            logger.info(f"저장소 파일 없음: {self.path}, 빈 상태로 시작")
            return [], None

        with open(self.path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}

        signals = [Signal.from_dict(item) for item in data.get("signals") or []]
        window_data = data.get("allocation_window")
        window = AllocationWindow.from_dict(window_data) if window_data else None

        logger.info(f"시그널 {len(signals)}개, 배분 윈도우 {'있음' if window else '없음'} 로드")
        return signals, window

    def save_all(self, signals: list[Signal], window: Optional[AllocationWindow]) -> None:
        data = {
            "allocation_window": window.to_dict() if window else None,
            "signals": [s.to_dict() for s in signals],
        }

        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        with open(tmp_path, "w", encoding="utf-8") as f:
            yaml.safe_dump(data, f, allow_unicode=True, default_flow_style=False, sort_keys=False)
        os.replace(tmp_path, self.path)

        logger.info(f"시그널 {len(signals)}개 저장: {self.path}")
