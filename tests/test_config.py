"""Tests for config file loading."""

from __future__ import annotations

import json
from datetime import date
from pathlib import Path

from signal_trader.utils.config import Config


class TestConfig:
    def test_defaults(self) -> None:
        config = Config()
        assert config.backtest.initial_cash == 5000
        assert config.backtest.weekly_deposit == 500
        assert config.dip_buy.max_dip_buys == 2
        assert config.trading_bot.max_signals_per_window == 39
        assert config.trading_bot.dip_buy_enabled is False
        assert config.exit_strategy.name == []
        assert config.exit_strategy.params["trailing_stop_pct"] == 0.15

    def test_from_yaml(self, tmp_path) -> None:
        path = tmp_path / "config.yaml"
        path.write_text(
            "backtest:\n"
            "  start_date: 2024-01-02\n"
            "  initial_cash: 20000\n"
            "  unknown_key: 1\n"
            "dip_buy:\n"
            "  min_drop_pct: 15\n"
            "exit_strategy:\n"
            "  name: trailing_stop\n"
            "  params:\n"
            "    trailing_stop_pct: 0.1\n"
            "log_level: DEBUG\n",
            encoding="utf-8",
        )
        config = Config.from_yaml(path)

        assert config.backtest.start() == date(2024, 1, 2)
        assert config.backtest.end() is None
        assert config.backtest.initial_cash == 20000
        assert config.dip_buy.min_drop_pct == 15
        assert config.exit_strategy.name == ["trailing_stop"]
        assert config.exit_strategy.params["trailing_stop_pct"] == 0.1
        assert config.exit_strategy.params["stagger_percent"] == 0.8
        assert config.log_level == "DEBUG"

    def test_flat_exit_strategy_params(self, tmp_path) -> None:
        path = tmp_path / "config.yaml"
        path.write_text("exit_strategy:\n  name: [buy_and_hold]\n  take_profit_pct: 0\n", encoding="utf-8")
        config = Config.from_yaml(path)
        assert config.exit_strategy.name == ["buy_and_hold"]
        assert config.exit_strategy.params["take_profit_pct"] == 0

    def test_from_json(self, tmp_path) -> None:
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"trading_bot": {"broker": "my.mod:Broker", "window_duration_days": 30}}))
        config = Config.from_json(path)
        assert config.trading_bot.broker == "my.mod:Broker"
        assert config.trading_bot.window_duration_days == 30

    def test_empty_file_gives_defaults(self, tmp_path) -> None:
        path = tmp_path / "config.yaml"
        path.write_text("", encoding="utf-8")
        assert Config.from_yaml(path) == Config()

    def test_save_and_reload(self, tmp_path) -> None:
        config = Config()
        config.market_data.calendar_ticker = "SPY"
        path = tmp_path / "out" / "config.yaml"
        config.save_yaml(path)
        assert Config.from_yaml(path) == config

    def test_example_config_loads(self) -> None:
        config = Config.from_yaml(Path(__file__).parent.parent / "config.yaml")
        assert config.market_data.calendar_ticker == "SPY"
        assert config.backtest.start() is None
