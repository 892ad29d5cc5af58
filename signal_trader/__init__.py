"""
=============================================================================
시그널 기반 매매 시스템 (Signal Trader)
=============================================================================

시그널 = 종목 + 매수일 + 매도일 + 배분 비중.
과거 시세로 재생하는 백테스터와 하루 한 번 실행되는 실전 매매 봇이
같은 상태 머신(engine/signal_engine.py)을 공유한다.

[ 시스템 전체 구조 ]

    run_backtest.py (백테스트 진입점)          run_trading_bot.py (실전 매매 진입점)
         │                                         │
         ├── utils/config.py   ← config.yaml       ├── live/trading_bot.py
         ├── utils/logger.py   ← 로깅               │     ├── data/signal_store.py (YAML 저장소)
         ├── data/signal_loader.py (CSV)           │     └── engine/allocation.py (배분 윈도우)
         │                                         │
         ├── backtest/engine.py  ─────┐            │
         │     ├── brokers/mock_broker.py (원장)   │
         │     └── backtest/metrics.py             │
         │                            ▼            ▼
         │                    engine/signal_engine.py (상태 머신)
         │                          ├── engine/allocation.py
         │                          └── engine/dip_buy.py
         │
         └── backtest/comparison.py ← strategies/ (청산 전략 비교, 원장 미사용)


[ 핵심 추상 클래스 (core/) - 모든 구현체의 부모 ]

    core/broker_api.py      → brokers/mock_broker.py::BacktestBroker (백테스트 원장)
                            → LiveBrokerAPI 구현체 (증권사 연동, 외부 제공)

    core/data_provider.py   → brokers/mock_broker.py::MockDataProvider
                            → data/yahoo_provider.py::YahooDataProvider
                            → data/market_data.py::HistoricalQuoteSource (QuoteSource)

    core/exit_strategy.py   → strategies/ (buy_and_hold, trailing_stop, staggered_entry)

    core/signal_store.py    → data/signal_store.py::YamlSignalStore


[ 데이터 흐름 (백테스트) ]

    1. CSV에서 시그널 로드, config.yaml에서 파라미터 로드
    2. DataProvider가 OHLCV 제공 → HistoricalQuoteSource가 종가 + SMA20 계산
    3. 하루씩 진행하며 SignalEngine이 매수/추가매수/매도를 원장에 실행
    4. metrics.py가 일별 총자산으로 성과 지표 계산
    5. (선택) comparison.py가 같은 시그널에 청산 전략들을 재생해 비교
"""

__version__ = "0.1.0"
