"""Tests for dip detection and staggered-entry strategies."""

from __future__ import annotations

from datetime import date

import pytest

from signal_trader.core.exit_strategy import PricePath
from signal_trader.strategies import create_strategy
from signal_trader.strategies.staggered_entry import blend_entry_price, detect_dip


class TestDetectDip:
    @pytest.mark.parametrize(
        ("prices", "expected_price", "expected_reason"),
        [
            ([99, 94], 94, "RSI oversold (5% drop)"),
            ([100, 99, 98.5], 98.5, "MA crossover"),
            ([101, 97.5], 97.5, "volatility spike (3% drop)"),
            ([99, 97.9], 97.9, "support break (2% drop)"),
            ([100.5, 99.5], 99.5, "momentum reversal"),
            ([98.9], 98.9, "lowest price (1%+ drop)"),
            ([100.5, 101], 100, "no dip detected"),
        ],
    )
    def test_waterfall(self, prices, expected_price, expected_reason) -> None:
        price, reason = detect_dip(100, prices)
        assert price == expected_price
        assert reason == expected_reason

    def test_oversold_wins_over_earlier_rules(self) -> None:
        # the third close would satisfy the MA crossover rule, but a 5% drop comes first
        price, reason = detect_dip(100, [99, 98, 97, 94])
        assert (price, reason) == (94, "RSI oversold (5% drop)")

    def test_empty_window(self) -> None:
        assert detect_dip(100, []) == (100, "no dip detected (no data)")


class TestBlendEntryPrice:
    def test_weighted_average(self) -> None:
        assert blend_entry_price(100, 90, 0.8) == pytest.approx(98)

    def test_full_stagger_ignores_dip(self) -> None:
        assert blend_entry_price(100, 50, 1.0) == pytest.approx(100)


def _path(closes: list[float], window: list[float]) -> PricePath:
    return PricePath(
        signal_id="00000",
        ticker="AAA",
        buy_date=date(2024, 1, 1),
        sell_date=date(2024, 2, 1),
        entry_price=closes[0],
        exit_price=closes[-1],
        closes=closes,
        entry_window=window,
    )


class TestStaggeredEntryStrategy:
    def test_blended_entry_and_exit_at_sell_date(self) -> None:
        result = create_strategy("staggered_entry").evaluate(_path([100, 94, 105, 110], [100, 94, 105]))
        assert result.strategy == "Staggered Entry"
        assert result.entry_price == pytest.approx(98.8)
        assert result.exit_price == 110
        assert result.profit_loss == pytest.approx(11.2)
        assert result.entry_strategy == "80% at buy date, 20% RSI oversold (5% drop)"
        assert result.exit_strategy == "Sell at sell date"
        assert result.max_drawdown == pytest.approx((94 - 98.8) / 98.8 * 100)

    def test_missing_window_uses_entry_price(self) -> None:
        result = create_strategy("staggered_entry").evaluate(_path([100, 110], []))
        assert result.entry_price == pytest.approx(100)
        assert result.entry_strategy == "80% at buy date, 20% no dip detected"

    def test_custom_stagger_percent(self) -> None:
        strategy = create_strategy("staggered_entry", {"stagger_percent": 0.5})
        result = strategy.evaluate(_path([100, 94, 110], [100, 94]))
        assert result.entry_price == pytest.approx(97)
        assert result.entry_strategy.startswith("50% at buy date, 50%")


class TestStaggeredTrailingStopStrategy:
    def test_trailing_stop_from_blended_entry(self) -> None:
        result = create_strategy("staggered_trailing").evaluate(
            _path([100, 94, 105, 120, 101, 90], [100, 94, 105]),
        )
        assert result.strategy == "Staggered Entry + Trailing Stop"
        assert result.entry_price == pytest.approx(98.8)
        assert result.exit_price == 101
        assert result.exit_strategy == "Trailing stop hit"

    def test_default_params_include_stop(self) -> None:
        strategy = create_strategy("staggered_trailing")
        assert strategy.trailing_stop_pct == 0.15
        assert strategy.stagger_percent == 0.8


class TestReplaysArePure:
    def test_detect_dip_repeats(self) -> None:
        window = [99.0, 98.5, 97.0, 101.0]
        assert detect_dip(100, window) == detect_dip(100, window)
        assert window == [99.0, 98.5, 97.0, 101.0]

    def test_staggered_trailing_repeats(self) -> None:
        closes = [100.0, 96.0, 103.0, 115.0, 120.0, 101.0, 108.0]
        path = _path(list(closes), closes[1:6])
        strategy = create_strategy("staggered_trailing", {"trailing_stop_pct": 0.1})

        first = strategy.evaluate(path)
        second = strategy.evaluate(path)

        assert (first.exit_price, first.exit_strategy, first.max_gain, first.max_drawdown) == (
            second.exit_price, second.exit_strategy, second.max_gain, second.max_drawdown,
        )
        assert first == second
        assert path.closes == closes
