"""
Tests for the trade resolver: ordering, baseline policies and unresolved trades.
"""

import pytest
from prometheus_client import generate_latest

from pumpfun.curve import BondingCurve, initial_state
from pumpfun.types import TradeIntent, TradeSide
from sandwich_scanner.config_loader import DetectorConfig
from sandwich_scanner.exceptions import CurveError, OrderingError
from sandwich_scanner.resolver import (
    TradeResolver,
    assess_observed_execution,
    sort_intents,
)

SOL = 1_000_000_000


def buy(signer, slot, sol, position=0, limit=0, index=0):
    return TradeIntent(
        side=TradeSide.BUY,
        amount=sol,
        limit=limit,
        signer=signer,
        slot=slot,
        signature=f"{signer}-{slot}-{position}",
        position=position,
        index=index,
    )


def sell(signer, slot, tokens, position=0, limit=0):
    return TradeIntent(
        side=TradeSide.SELL,
        amount=tokens,
        limit=limit,
        signer=signer,
        slot=slot,
        signature=f"{signer}-{slot}-{position}",
        position=position,
    )


class TestOrdering:
    def test_sort_intents_uses_slot_position_index(self):
        a = buy("a", 10, SOL, position=1)
        b = buy("b", 10, SOL, position=0, index=2)
        c = buy("c", 9, SOL, position=5)
        d = buy("d", 10, SOL, position=0, index=1)

        assert sort_intents([a, b, c, d]) == [c, d, b, a]

    def test_out_of_order_is_rejected(self, detector_config):
        resolver = TradeResolver(initial_state(), detector_config)
        resolver.resolve(buy("a", 101, SOL))

        with pytest.raises(OrderingError) as exc_info:
            resolver.resolve(buy("b", 100, SOL))

        assert exc_info.value.previous_key == (101, 0, 0)
        assert exc_info.value.current_key == (100, 0, 0)

    def test_duplicate_key_is_rejected(self, detector_config):
        resolver = TradeResolver(initial_state(), detector_config)
        resolver.resolve(buy("a", 100, SOL))
        with pytest.raises(OrderingError):
            resolver.resolve(buy("b", 100, SOL))

    def test_resolve_all_aborts_on_ordering(self, detector_config):
        resolver = TradeResolver(initial_state(), detector_config)
        with pytest.raises(OrderingError):
            resolver.resolve_all([buy("a", 5, SOL), buy("b", 4, SOL)])

    def test_replay_is_path_dependent(self, detector_config):
        first = TradeResolver(initial_state(), detector_config).resolve_all(
            [buy("a", 1, SOL), buy("b", 2, 3 * SOL)]
        )
        second = TradeResolver(initial_state(), detector_config).resolve_all(
            [buy("b", 1, 3 * SOL), buy("a", 2, SOL)]
        )

        a_first = first.resolved[0].executed.token_amount
        a_second = second.resolved[1].executed.token_amount
        assert a_first > a_second


class TestModelBaseline:
    def test_lone_trade_is_not_adverse(self, detector_config):
        resolver = TradeResolver(initial_state(), detector_config)
        trade = resolver.resolve(buy("a", 100, SOL))

        assert trade.baseline_out == trade.executed.token_amount
        assert trade.shortfall == 0
        assert not trade.adverse

    def test_trade_after_front_run_is_adverse(self, detector_config):
        resolver = TradeResolver(initial_state(), detector_config)
        resolver.resolve(buy("bot", 100, 5 * SOL))
        victim = resolver.resolve(buy("victim", 101, 2 * SOL))

        untouched = BondingCurve.launch().quote_buy(2 * SOL).token_amount
        assert victim.baseline_out == untouched
        assert victim.shortfall == untouched - victim.executed.token_amount
        assert victim.shortfall > 0
        assert victim.slippage_pct > 0
        assert victim.adverse

    def test_baseline_window_expires(self, detector_config):
        resolver = TradeResolver(initial_state(), detector_config)
        resolver.resolve(buy("bot", 100, 5 * SOL))
        later = resolver.resolve(buy("victim", 100 + detector_config.max_attack_slot_gap + 1, 2 * SOL))

        assert later.shortfall == 0
        assert not later.adverse

    def test_seller_after_a_buy_is_favorable(self, detector_config):
        resolver = TradeResolver(initial_state(), detector_config)
        holder = resolver.resolve(buy("holder", 100, 10 * SOL))
        resolver.resolve(buy("other", 101, 2 * SOL))
        seller = resolver.resolve(
            sell("holder", 102, holder.executed.token_amount // 10)
        )

        assert seller.shortfall <= 0 or seller.baseline_out is None
        assert not seller.adverse

    def test_unquotable_baseline_falls_back_to_limit(self, detector_config):
        resolver = TradeResolver(initial_state(), detector_config)
        bought = resolver.resolve(buy("a", 100, SOL))
        # Before the buy the curve held no real SOL, so the sell cannot be quoted there
        sold = resolver.resolve(sell("a", 101, bought.executed.token_amount, limit=0))

        assert sold.baseline_out is None
        assert not sold.adverse


class TestLimitMarginBaseline:
    @pytest.fixture
    def config(self):
        return DetectorConfig(adverse_baseline="limit_margin", limit_margin_bps=50)

    def test_output_at_limit_is_adverse(self, config):
        expected = BondingCurve.launch().quote_buy(SOL).token_amount
        trade = TradeResolver(initial_state(), config).resolve(
            buy("a", 1, SOL, limit=expected)
        )

        assert trade.baseline_out is None
        assert trade.adverse

    def test_output_well_above_limit_is_not_adverse(self, config):
        expected = BondingCurve.launch().quote_buy(SOL).token_amount
        trade = TradeResolver(initial_state(), config).resolve(
            buy("a", 1, SOL, limit=expected // 2)
        )
        assert trade.shortfall < 0
        assert not trade.adverse

    def test_zero_limit_is_never_adverse(self, config):
        trade = TradeResolver(initial_state(), config).resolve(buy("a", 1, SOL))
        assert not trade.adverse


class TestUnresolved:
    def test_curve_error_leaves_trade_unresolved(self, detector_config, metrics):
        resolver = TradeResolver(initial_state(), detector_config, metrics)
        result = resolver.resolve_all(
            [
                sell("dumper", 1, 1_000_000 * 10**6),
                buy("a", 2, SOL),
            ]
        )

        assert len(result.unresolved) == 1
        assert result.unresolved[0].error_type == "InsufficientReservesError"
        assert len(result.resolved) == 1
        # Curve only advanced by the buy
        assert result.final_state.real_sol == SOL

        output = generate_latest(metrics.registry).decode("utf-8")
        assert "sandwich_scanner_trades_unresolved_total" in output
        assert 'side="buy"' in output

    def test_missed_buy_limit_reverts(self, detector_config, metrics):
        resolver = TradeResolver(initial_state(), detector_config, metrics)
        result = resolver.resolve_all([buy("greedy", 1, SOL, limit=10**15)])

        assert result.resolved == []
        assert len(result.unresolved) == 1
        assert result.unresolved[0].error_type == "SlippageExceededError"
        assert result.final_state == initial_state()

        output = generate_latest(metrics.registry).decode("utf-8")
        assert 'reason="SlippageExceededError"' in output

    def test_missed_sell_limit_leaves_curve_untouched(self, detector_config):
        resolver = TradeResolver(initial_state(), detector_config)
        bought = resolver.resolve(buy("a", 1, SOL))
        after_buy = resolver.state.copy()

        result = resolver.resolve_all(
            [sell("a", 2, bought.executed.token_amount, limit=2 * SOL)]
        )

        assert result.unresolved[0].error_type == "SlippageExceededError"
        assert result.final_state == after_buy

    def test_zero_amount_is_a_curve_error(self, detector_config):
        resolver = TradeResolver(initial_state(), detector_config)
        with pytest.raises(CurveError):
            resolver.resolve(buy("a", 1, 0))

        result = TradeResolver(initial_state(), detector_config).resolve_all([buy("a", 1, 0)])
        assert result.unresolved[0].intent.amount == 0


class TestObservedExecution:
    def test_fair_buy(self):
        intent = buy("a", 1, SOL, limit=1_000)
        assert assess_observed_execution(intent, 1_000, -SOL, 1_000) == []

    def test_overpaid_and_short_buy(self):
        intent = buy("a", 1, SOL, limit=1_000)
        breaches = assess_observed_execution(intent, 1_000, -(SOL + 10), 900)

        assert breaches == ["OVERPAID 10 lamports", "GOT 100 FEWER TOKENS"]

    def test_sell_received_less_and_sold_more(self):
        intent = sell("a", 1, 1_000, limit=500)
        breaches = assess_observed_execution(intent, 1_000, 400, -1_200)

        assert breaches == ["RECEIVED 100 lamports LESS", "SOLD 200 MORE TOKENS"]

    def test_unknown_balances(self):
        intent = sell("a", 1, 1_000, limit=500)
        assert assess_observed_execution(intent, 1_000, None, None) == []
