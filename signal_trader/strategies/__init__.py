"""
청산 시뮬레이션 전략 모듈.

[ 전략 등록 방식 ]
    @register("전략이름") 데코레이터를 붙이면 STRATEGY_REGISTRY에 자동 등록.
    backtest/comparison.py와 run_backtest.py에서 이름만으로 전략을 생성할 수 있다.

[ 등록된 전략 ]
    buy_and_hold          Basic Buy & Hold (비교 기준)
    staggered_entry       분할 진입 후 매도일까지 보유
    take_profit_trailing  익절 목표 + 트레일링 스탑
    trailing_stop         단순 트레일링 스탑
    staggered_trailing    분할 진입 + 트레일링 스탑

[ 새 전략 추가 방법 ]
    1. 이 디렉토리에 새 .py 파일 생성
    2. ExitStrategy를 상속받아 evaluate() 구현
    3. @register("이름") 데코레이터 추가
    4. config.yaml의 exit_strategy.name 목록에 이름 추가
"""

from importlib import import_module
from pathlib import Path
from typing import Any

from signal_trader.core.exit_strategy import ExitStrategy

# 전략 이름 → 전략 클래스 매핑 (등록 순서 유지)
STRATEGY_REGISTRY: dict[str, type[ExitStrategy]] = {}

# 비교 실행 시 기본 순서
DEFAULT_STRATEGY_ORDER = [
    "buy_and_hold",
    "staggered_entry",
    "take_profit_trailing",
    "trailing_stop",
    "staggered_trailing",
]


def register(name: str):
    """전략 클래스를 STRATEGY_REGISTRY에 등록하는 데코레이터."""
    def decorator(cls: type[ExitStrategy]):
        STRATEGY_REGISTRY[name] = cls
        return cls
    return decorator


def create_strategy(name: str, params: dict[str, Any] | None = None) -> ExitStrategy:
    """이름으로 전략 인스턴스를 생성.

    Args:
        name: 등록된 전략 이름 (예: "trailing_stop")
        params: 전략 파라미터 (각 전략의 DEFAULT_PARAMS를 오버라이드)

    Raises:
        ValueError: 등록되지 않은 전략 이름
    """
    if name not in STRATEGY_REGISTRY:
        available = ", ".join(sorted(STRATEGY_REGISTRY.keys()))
        raise ValueError(f"알 수 없는 전략: '{name}'. 사용 가능: {available}")
    return STRATEGY_REGISTRY[name](params=params)


def list_strategies() -> list[str]:
    """등록된 전략 이름 목록. 기본 순서를 먼저, 나머지는 이름순."""
    ordered = [n for n in DEFAULT_STRATEGY_ORDER if n in STRATEGY_REGISTRY]
    extra = sorted(n for n in STRATEGY_REGISTRY if n not in DEFAULT_STRATEGY_ORDER)
    return ordered + extra


def _auto_discover():
    """이 디렉토리의 모든 전략 모듈을 자동 임포트하여 @register가 실행되게 한다."""
    strategies_dir = Path(__file__).parent
    for py_file in strategies_dir.glob("*.py"):
        if py_file.name.startswith("_"):
            continue
        module_name = f"signal_trader.strategies.{py_file.stem}"
        import_module(module_name)


# 모듈 로드 시 자동 탐색
_auto_discover()
