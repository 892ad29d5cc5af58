"""
백테스트 실행 스크립트 (시스템 진입점).

[ 사용법 ]
    # 기본 실행 (config.yaml + 예제 시그널, 샘플 데이터)
    python run_backtest.py

    # 시그널 CSV 지정
    python run_backtest.py --signals data/example_signals.csv

    # Yahoo Finance 데이터 사용
    python run_backtest.py --source yahoo

    # 추가 매수(dip buy) 끄기
    python run_backtest.py --no-dip-buy

    # 청산 전략 비교 (config.yaml의 exit_strategy.name, 비어 있으면 전체)
    python run_backtest.py --compare
    python run_backtest.py --compare trailing_stop staggered_trailing

    # 전략 파라미터 오버라이드
    python run_backtest.py --compare -p trailing_stop_pct=0.1 -p stagger_percent=0.7

    # 등록된 청산 전략 목록 확인
    python run_backtest.py --list
"""

import argparse
from datetime import timedelta
from pathlib import Path

import pandas as pd

from signal_trader.backtest.comparison import (
    ComparisonSummary,
    StrategyComparison,
    calculate_strategy_summary,
)
from signal_trader.backtest.engine import BacktestEngine
from signal_trader.brokers.mock_broker import MockDataProvider
from signal_trader.core.data_provider import DataProvider
from signal_trader.core.exit_strategy import StrategyResult
from signal_trader.core.signal import Signal
from signal_trader.data.market_data import HistoricalQuoteSource
from signal_trader.data.sample_data import generate_sample_data
from signal_trader.data.signal_loader import load_signals_from_csv
from signal_trader.data.yahoo_provider import YahooDataProvider
from signal_trader.strategies import STRATEGY_REGISTRY, list_strategies
from signal_trader.utils.config import Config
from signal_trader.utils.logger import setup_logger


def parse_param(param_str: str) -> tuple[str, object]:
    """'key=value' 문자열을 파싱하여 (key, value) 반환. 숫자면 자동 변환."""
    key, _, value = param_str.partition("=")
    key = key.strip()
    value = value.strip()

    try:
        if "." in value:
            return key, float(value)
        return key, int(value)
    except ValueError:
        if value.lower() in ("true", "yes"):
            return key, True
        if value.lower() in ("false", "no"):
            return key, False
        return key, value


def build_data_provider(config: Config, signals: list[Signal], source: str) -> DataProvider:
    """데이터 소스 생성. sample이면 시그널 기간 앞뒤로 여유를 두고 랜덤워크 생성."""
    tickers = sorted({s.ticker for s in signals})
    if config.market_data.calendar_ticker:
        tickers = sorted(set(tickers) | {config.market_data.calendar_ticker})

    if source == "yahoo":
        print("Yahoo Finance에서 데이터 조회...")
        provider = YahooDataProvider(
            tickers=tickers,
            max_retries=config.market_data.max_retries,
            retry_delay=config.market_data.retry_delay,
        )
        print(f"  대상 종목: {', '.join(provider.get_tickers())}")
        return provider

    print("샘플 데이터 생성 중...")
    start = min(s.buy_date for s in signals) - timedelta(days=90)
    end = max(s.sell_date for s in signals) + timedelta(days=30)
    provider = MockDataProvider()
    for ticker in tickers:
        df = generate_sample_data(ticker, start, end)
        provider.load_data(ticker, df)
        print(f"  {ticker}: {len(df)}일 데이터")
    print(f"  총 {len(provider.get_tickers())}개 종목 로드 완료")
    return provider


def _money(value) -> str:
    return f"${value:,.2f}"


def print_report(report: dict) -> None:
    """백테스트 리포트 출력."""
    print("\n" + "=" * 80)
    print("백테스트 결과")
    print("=" * 80)

    trades = report["trades"]
    if trades:
        table = pd.DataFrame([
            {
                "종목": t["ticker"],
                "시그널 매수일": t["signal_buy_date"],
                "실제 매수일": t["buy_date"],
                "매도일": t["sell_date"],
                "매수가": _money(t["buy_price"]),
                "매도가": _money(t["sell_price"]),
                "투자금": _money(t["investment"]),
                "매도금": _money(t["sold_amount"]),
                "손익": _money(t["profit_loss"]),
                "손익률": f"{t['profit_loss_pct']:.2f}%",
                "구분": t["trade_type"],
            }
            for t in trades
        ])
        print(table.to_string(index=False))
    else:
        print("청산된 거래 없음")

    totals = report["totals"]
    print("\n[거래 합계]")
    print("-" * 40)
    print(f"총 투자금:   {_money(totals['investment'])}")
    print(f"총 매도금:   {_money(totals['sold_amount'])}")
    print(f"총 손익:     {_money(totals['profit_loss'])} ({totals['profit_loss_pct']:.2f}%)")

    deposits = report["deposits"]
    print("\n[입금 대비 손익]")
    print("-" * 40)
    print(f"초기 입금:   {_money(deposits['initial_deposit'])}")
    print(f"주간 입금:   {_money(deposits['weekly_deposits'])}")
    print(f"총 입금:     {_money(deposits['total_deposits'])}")
    print(f"최종 자산:   {_money(deposits['final_account_value'])}")
    print(f"총 손익:     {_money(deposits['profit_loss'])} ({deposits['profit_loss_pct']:.2f}%)")

    print("\n[대기 중 시그널]")
    print("-" * 40)
    for s in report["pending"] or []:
        print(f"{s['ticker']} | 매수일 {s['buy_date']} | 매도일 {s['sell_date']} | 비중 {s['allocation_percentage']}%")
    if not report["pending"]:
        print("없음")

    print("\n[보유 중 시그널]")
    print("-" * 40)
    for s in report["active"] or []:
        print(f"{s['ticker']} | 매수일 {s['buy_date']} | 매도일 {s['sell_date']} | 비중 {s['allocation_percentage']}%")
    if not report["active"]:
        print("없음")

    print("\n[계좌 보유 종목]")
    print("-" * 40)
    for p in report["positions"] or []:
        print(f"{p['ticker']} | {p['shares']:.4f}주 | 평균가 {_money(p['avg_price'])} | 평가액 {_money(p['value'])}")
    if not report["positions"]:
        print("없음")

    if report["error_count"]:
        print(f"\n시그널 처리 에러: {report['error_count']}건 (로그 확인)")
    print("=" * 80)


def print_comparison(results: list[StrategyResult], summary: ComparisonSummary) -> None:
    """청산 전략 비교 결과 출력."""
    if not results:
        print("\n비교할 결과가 없습니다.")
        return

    print("\n" + "=" * 80)
    print("청산 전략 비교")
    print("=" * 80)

    rows = [
        {
            "전략": s.strategy,
            "시그널": s.total_signals,
            "승률": f"{s.win_rate:.1f}%",
            "평균 수익률": f"{s.avg_return:.2f}%",
            "평균 보유일": f"{s.avg_hold_days:.1f}",
            "연환산": f"{s.avg_return_annual:.2f}%",
            "누적": f"{s.total_return:.2f}%",
        }
        for s in summary.strategies.values()
    ]
    print(pd.DataFrame(rows).to_string(index=False))

    print("\n[전체]")
    print("-" * 40)
    print(f"결과 수:          {summary.total_results} (수익 {summary.winning_results} / 손실 {summary.losing_results})")
    print(f"승률:             {summary.win_rate:.2f}%")
    print(f"평균 수익률:      {summary.avg_return:.2f}%")
    print(f"평균 보유일:      {summary.avg_hold_days:.1f}일")
    print(f"연환산 수익률:    {summary.avg_return_annual:.2f}%")
    print(f"최대 동시 시그널: {summary.max_concurrent_signals}개")

    for title, r in (("최고", summary.best), ("최저", summary.worst)):
        print(
            f"{title}: {r.ticker} [{r.strategy}] {r.buy_date} ~ {r.sell_date} "
            f"${r.entry_price:,.2f} → ${r.exit_price:,.2f} ({r.profit_loss_pct:.2f}%), "
            f"진입: {r.entry_strategy}, 청산: {r.exit_strategy}"
        )
    print("=" * 80)


def main():
    parser = argparse.ArgumentParser(description="시그널 백테스트 실행")
    parser.add_argument("--config", type=str, default="config.yaml", help="설정 파일 경로")
    parser.add_argument("--signals", type=str, default="data/example_signals.csv", help="시그널 CSV 경로")
    parser.add_argument("--source", type=str, default=None, choices=["sample", "yahoo"], help="데이터 소스")
    parser.add_argument("--no-dip-buy", action="store_true", help="추가 매수 비활성화")
    parser.add_argument("--compare", nargs="*", metavar="STRATEGY", help="청산 전략 비교 (이름 생략 시 설정값/전체)")
    parser.add_argument("-p", "--param", action="append", default=[], help="전략 파라미터 오버라이드 (예: -p trailing_stop_pct=0.1)")
    parser.add_argument("--list", action="store_true", help="등록된 청산 전략 목록 출력")
    args = parser.parse_args()

    if args.list:
        print("등록된 청산 전략:")
        for name in list_strategies():
            print(f"  - {name:<22} {STRATEGY_REGISTRY[name].LABEL}")
        return

    config_path = Path(args.config)
    if config_path.exists():
        config = Config.from_yaml(config_path)
    else:
        print(f"설정 파일 없음: {config_path}, 기본값 사용")
        config = Config()

    setup_logger(level=config.log_level, log_dir=config.log_dir)

    signals = load_signals_from_csv(args.signals)
    if not signals:
        print("시그널이 없습니다.")
        return
    print(f"시그널 {len(signals)}개 로드: {args.signals}")

    source = args.source or config.market_data.source
    quote_source = HistoricalQuoteSource(
        build_data_provider(config, signals, source),
        sma_period=config.market_data.sma_period,
        max_lookahead_days=config.market_data.max_lookahead_days,
        calendar_ticker=config.market_data.calendar_ticker,
    )

    # ─── 청산 전략 비교 모드 ─────────────────────────────────────────────
    if args.compare is not None:
        params = dict(config.exit_strategy.params)
        for p in args.param:
            key, value = parse_param(p)
            params[key] = value
        if args.param:
            print(f"파라미터 오버라이드: {dict(parse_param(p) for p in args.param)}")

        names = args.compare or config.exit_strategy.name or None
        comparison = StrategyComparison(quote_source, names, params)
        results = comparison.run(signals)
        print_comparison(results, calculate_strategy_summary(results, signals))
        return

    # ─── 원장 백테스트 모드 ─────────────────────────────────────────────
    engine = BacktestEngine(
        quote_source=quote_source,
        initial_cash=config.backtest.initial_cash,
        weekly_deposit=config.backtest.weekly_deposit,
        deposit_weekday=config.backtest.deposit_weekday,
        dip_buy_params=vars(config.dip_buy),
        dip_buy_enabled=config.backtest.dip_buy_enabled and not args.no_dip_buy,
    )
    metrics = engine.run_backtest(signals, config.backtest.start(), config.backtest.end())

    print_report(engine.generate_report())
    print(metrics.summary())


if __name__ == "__main__":
    main()
