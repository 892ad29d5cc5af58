"""
설정 관리 모듈.

[ 역할 ]
    config.yaml (또는 .json) 파일을 파싱하여 Config 객체로 변환.
    백테스트, 추가 매수 조건, 청산 전략 비교, 시세 데이터, 실전 매매 봇 설정을 통합 관리.

[ 설정 파일 구조 (config.yaml) ]
    backtest:         → BacktestConfig (기간, 초기 자금, 주간 입금)
    dip_buy:          → DipBuyConfig (추가 매수 조건)
    exit_strategy:    → ExitStrategyConfig (비교할 청산 전략 + 파라미터)
    market_data:      → MarketDataConfig (데이터 소스, SMA 기간 등)
    trading_bot:      → TradingBotConfig (배분 윈도우, 브로커 클래스)
    store:            → StoreConfig (시그널 저장 파일)
    log_level:        → "INFO" / "DEBUG"
    log_dir:          → 로그 디렉토리 경로

    정의되지 않은 키는 무시된다.

[ 호출하는 곳 ]
    - run_backtest.py, run_trading_bot.py에서 Config.from_yaml()로 로드
"""

import json
from dataclasses import asdict, dataclass, field
from datetime import date
from pathlib import Path
from typing import Any, Optional

import yaml


@dataclass
class BacktestConfig:
    """백테스트 설정. config.yaml의 backtest 섹션에 대응.

    start_date/end_date가 비어 있으면 시그널의 매수일/매도일로 결정.
    """
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    initial_cash: float = 5000
    weekly_deposit: float = 500
    deposit_weekday: int = 0          # 0 = 월요일
    dip_buy_enabled: bool = True

    def start(self) -> Optional[date]:
        return date.fromisoformat(str(self.start_date)) if self.start_date else None

    def end(self) -> Optional[date]:
        return date.fromisoformat(str(self.end_date)) if self.end_date else None


@dataclass
class DipBuyConfig:
    """추가 매수 조건. engine/dip_buy.py::DipBuyEvaluator.DEFAULT_PARAMS와 같은 키."""
    min_drop_pct: float = 10
    min_days_between_buys: int = 5
    max_dip_buys: int = 2


@dataclass
class ExitStrategyConfig:
    """청산 전략 비교 설정. config.yaml의 exit_strategy 섹션에 대응.

    name이 비어 있으면 등록된 전략 전체를 비교한다.
    각 전략 클래스의 DEFAULT_PARAMS가 기본값 역할을 하므로,
    params에는 오버라이드할 값만 지정하면 된다.
    """
    name: list[str] = field(default_factory=list)
    params: dict[str, Any] = field(default_factory=lambda: {
        "stagger_percent": 0.8,
        "take_profit_pct": 0.15,
        "trailing_stop_pct": 0.15,
        "dip_window_days": 7,
        "stagger_entry": True,
    })


@dataclass
class MarketDataConfig:
    """시세 데이터 설정. config.yaml의 market_data 섹션에 대응."""
    source: str = "sample"            # sample | yahoo
    sma_period: int = 20
    max_lookahead_days: int = 10
    calendar_ticker: str = ""         # 비어 있으면 로드된 종목 중 하나라도 거래가 있으면 개장일
    max_retries: int = 3
    retry_delay: int = 5


@dataclass
class TradingBotConfig:
    """실전 매매 봇 설정. config.yaml의 trading_bot 섹션에 대응."""
    max_signals_per_window: int = 39
    window_duration_days: int = 90
    default_allocation_amount: float = 1000
    dip_buy_enabled: bool = False
    check_market_open: bool = True
    broker: str = ""                  # "패키지.모듈:클래스" 형식


@dataclass
class StoreConfig:
    """시그널 저장소 설정."""
    path: str = "data/signals.yaml"


def _section(cls, data: Optional[dict[str, Any]]):
    """정의된 필드만 골라 dataclass 생성."""
    data = data or {}
    return cls(**{k: v for k, v in data.items() if k in cls.__dataclass_fields__})


@dataclass
class Config:
    """전체 설정. from_yaml() 또는 from_json()으로 파일에서 로드."""
    backtest: BacktestConfig = field(default_factory=BacktestConfig)
    dip_buy: DipBuyConfig = field(default_factory=DipBuyConfig)
    exit_strategy: ExitStrategyConfig = field(default_factory=ExitStrategyConfig)
    market_data: MarketDataConfig = field(default_factory=MarketDataConfig)
    trading_bot: TradingBotConfig = field(default_factory=TradingBotConfig)
    store: StoreConfig = field(default_factory=StoreConfig)
    log_level: str = "INFO"
    log_dir: str = "logs"

    @classmethod
    def from_yaml(cls, path: str | Path) -> "Config":
        """YAML 파일에서 설정 로드."""
        path = Path(path)
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
        return cls._from_dict(data or {})

    @classmethod
    def from_json(cls, path: str | Path) -> "Config":
        """JSON 파일에서 설정 로드."""
        path = Path(path)
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        return cls._from_dict(data or {})

    @classmethod
    def _from_dict(cls, data: dict[str, Any]) -> "Config":
        """딕셔너리에서 Config 생성."""
        exit_data = data.get("exit_strategy") or {}

        # name은 문자열 하나 또는 목록
        names = exit_data.get("name") or []
        if isinstance(names, str):
            names = [names]
        # params가 명시적으로 있으면 기본값 위에 덮어쓰기, 없으면 name 외 나머지를 params로
        params = ExitStrategyConfig().params
        if "params" in exit_data:
            params.update(exit_data["params"] or {})
        else:
            params.update({k: v for k, v in exit_data.items() if k != "name"})

        return cls(
            backtest=_section(BacktestConfig, data.get("backtest")),
            dip_buy=_section(DipBuyConfig, data.get("dip_buy")),
            exit_strategy=ExitStrategyConfig(name=list(names), params=params),
            market_data=_section(MarketDataConfig, data.get("market_data")),
            trading_bot=_section(TradingBotConfig, data.get("trading_bot")),
            store=_section(StoreConfig, data.get("store")),
            log_level=data.get("log_level", "INFO"),
            log_dir=data.get("log_dir", "logs"),
        )

    def to_dict(self) -> dict[str, Any]:
        """딕셔너리로 변환."""
        return asdict(self)

    def save_yaml(self, path: str | Path) -> None:
        """YAML 파일로 저장."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            yaml.dump(self.to_dict(), f, allow_unicode=True, default_flow_style=False)
