"""Tests for trailing-stop exit simulations and the buy & hold baseline."""

from __future__ import annotations

from datetime import date

import pytest

from signal_trader.core.exit_strategy import PricePath
from signal_trader.strategies import (
    DEFAULT_STRATEGY_ORDER,
    STRATEGY_REGISTRY,
    create_strategy,
    list_strategies,
)
from signal_trader.strategies.trailing_stop import (
    simulate_simple_trailing_stop,
    simulate_trailing_stop,
)


def _path(closes: list[float], entry: float | None = None, exit_: float | None = None) -> PricePath:
    return PricePath(
        signal_id="00000",
        ticker="AAA",
        buy_date=date(2024, 1, 1),
        sell_date=date(2024, 1, 31),
        entry_price=entry if entry is not None else closes[0],
        exit_price=exit_ if exit_ is not None else closes[-1],
        closes=closes,
    )


class TestSimpleTrailingStop:
    def test_stop_follows_new_high(self) -> None:
        sim = simulate_simple_trailing_stop(100, [100, 120, 110, 101, 84], 0.15)
        assert sim.exit_price == 101
        assert sim.reason == "Trailing stop hit"
        assert sim.max_gain == pytest.approx(20)
        assert sim.max_drawdown == 0

    def test_initial_stop_below_entry(self) -> None:
        sim = simulate_simple_trailing_stop(100, [100, 90, 85, 70], 0.15)
        assert sim.exit_price == 85
        assert sim.max_drawdown == pytest.approx(-15)

    def test_held_until_sell_date(self) -> None:
        sim = simulate_simple_trailing_stop(100, [100, 105, 98], 0.15)
        assert sim.exit_price == 98
        assert sim.reason == "Held until sell date"
        assert sim.max_gain == pytest.approx(5)
        assert sim.max_drawdown == pytest.approx(-2)

    def test_empty_series(self) -> None:
        sim = simulate_simple_trailing_stop(100, [], 0.15)
        assert sim.exit_price == 100
        assert sim.reason == "No data"
        assert (sim.max_gain, sim.max_drawdown) == (0, 0)


class TestTakeProfitTrailingStop:
    def test_stop_after_take_profit(self) -> None:
        sim = simulate_trailing_stop(100, [100, 120, 110, 101, 84], 0.15, 0.15)
        assert sim.exit_price == 101
        assert sim.reason == "Trailing stop hit (after take profit)"

    def test_stop_before_take_profit(self) -> None:
        sim = simulate_trailing_stop(100, [100, 90, 84], 0.15, 0.15)
        assert sim.exit_price == 84
        assert sim.reason == "Trailing stop hit (before take profit)"
        assert sim.max_drawdown == pytest.approx(-16)

    def test_take_profit_reason_persists_to_end(self) -> None:
        sim = simulate_trailing_stop(100, [100, 116, 110], 0.15, 0.15)
        assert sim.exit_price == 110
        assert sim.reason == "Take profit triggered, trailing stop active"

    def test_no_trigger_holds(self) -> None:
        sim = simulate_trailing_stop(100, [100, 104, 99], 0.15, 0.15)
        assert sim.exit_price == 99
        assert sim.reason == "Held until sell date"

    def test_empty_series(self) -> None:
        sim = simulate_trailing_stop(100, [], 0.15, 0.15)
        assert sim.exit_price == 100
        assert sim.reason == "No data"


class TestStrategyClasses:
    def test_simple_strategy_result(self) -> None:
        result = create_strategy("trailing_stop").evaluate(_path([100, 120, 110, 101, 84], exit_=84))
        assert result.strategy == "Simple Trailing Stop"
        assert result.exit_price == 101
        assert result.profit_loss == pytest.approx(1)
        assert result.profit_loss_pct == pytest.approx(1)
        assert result.is_win
        assert result.entry_strategy == "100% at buy date"
        assert result.days_held == 30

    def test_params_override_defaults(self) -> None:
        strategy = create_strategy("trailing_stop", {"trailing_stop_pct": 0.05})
        assert strategy.trailing_stop_pct == 0.05
        result = strategy.evaluate(_path([100, 110, 104]))
        assert result.exit_price == 104

    def test_take_profit_strategy_label(self) -> None:
        result = create_strategy("take_profit_trailing").evaluate(_path([100, 116, 110]))
        assert result.strategy == "Take Profit + Trailing Stop"
        assert result.exit_strategy == "Take profit triggered, trailing stop active"

    def test_buy_and_hold(self) -> None:
        result = create_strategy("buy_and_hold").evaluate(_path([100, 120, 90]))
        assert result.strategy == "Basic Buy & Hold"
        assert result.exit_price == 90
        assert result.profit_loss_pct == pytest.approx(-10)
        assert not result.is_win
        assert result.exit_strategy == "Sell at sell date"
        assert result.max_gain == pytest.approx(20)
        assert result.max_drawdown == pytest.approx(-10)


class TestRegistry:
    def test_all_strategies_registered_in_default_order(self) -> None:
        assert list_strategies() == DEFAULT_STRATEGY_ORDER
        assert set(STRATEGY_REGISTRY) == set(DEFAULT_STRATEGY_ORDER)

    def test_unknown_strategy_raises(self) -> None:
        with pytest.raises(ValueError, match="알 수 없는 전략"):
            create_strategy("moon_shot")


PATH_UP_DOWN = [100.0, 104.0, 112.0, 118.0, 109.0, 97.0, 121.0, 99.0, 93.0]


def _outcome(sim) -> tuple:
    return (sim.exit_price, sim.reason, sim.max_gain, sim.max_drawdown)


class TestReplaysArePure:
    def test_simple_trailing_stop_repeats(self) -> None:
        prices = list(PATH_UP_DOWN)
        first = simulate_simple_trailing_stop(100, prices, 0.15)
        second = simulate_simple_trailing_stop(100, prices, 0.15)
        assert _outcome(first) == _outcome(second)
        assert prices == PATH_UP_DOWN

    def test_take_profit_trailing_repeats(self) -> None:
        prices = list(PATH_UP_DOWN)
        first = simulate_trailing_stop(100, prices, 0.15, 0.1)
        second = simulate_trailing_stop(100, prices, 0.15, 0.1)
        assert _outcome(first) == _outcome(second)
        assert prices == PATH_UP_DOWN

    @pytest.mark.parametrize("name", sorted(STRATEGY_REGISTRY))
    def test_registered_strategies_repeat(self, name) -> None:
        path = _path(list(PATH_UP_DOWN))
        path.entry_window = PATH_UP_DOWN[1:8]
        before = (list(path.closes), list(path.entry_window), path.entry_price, path.exit_price)
        strategy = create_strategy(name)

        first = strategy.evaluate(path)
        second = strategy.evaluate(path)

        assert first == second
        assert (path.closes, path.entry_window, path.entry_price, path.exit_price) == before
