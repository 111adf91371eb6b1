"""
Pump.fun bonding curve model.

Constant-product pricing over virtual reserves with the fee taken from the
input before the exchange:

    fee          = max(amount_in * fee_bps // 10000, 1)
    effective_in = amount_in - fee
    amount_out   = effective_in * reserve_out // (reserve_in + effective_in)

All amounts are integers (lamports / token base units) and division truncates,
matching the on-chain program. Real and virtual reserves move by identical
deltas, so the fee stays in the pool and virtual_sol * virtual_token never
decreases across a trade.
"""

from dataclasses import replace
from decimal import Decimal

from sandwich_scanner.exceptions import InsufficientReservesError, SlippageExceededError
from sandwich_scanner.utils import LAMPORTS_PER_SOL, TOKEN_UNIT, get_logger

from .constants import (
    BPS_DENOMINATOR,
    FEE_BPS,
    INITIAL_REAL_SOL,
    INITIAL_REAL_TOKEN,
    INITIAL_VIRTUAL_SOL,
    INITIAL_VIRTUAL_TOKEN,
)
from .types import CurveState, ExecutedTrade, TradeIntent, TradeSide

logger = get_logger(__name__)


def initial_state(curve_config=None) -> CurveState:
    """
    Build the launch state of a pump.fun curve.

    Args:
        curve_config: Optional CurveConfig overriding the on-chain defaults
    """
    if curve_config is None:
        return CurveState(
            virtual_sol=INITIAL_VIRTUAL_SOL,
            virtual_token=INITIAL_VIRTUAL_TOKEN,
            real_sol=INITIAL_REAL_SOL,
            real_token=INITIAL_REAL_TOKEN,
            fee_bps=FEE_BPS,
        )
    return CurveState(
        virtual_sol=curve_config.virtual_sol,
        virtual_token=curve_config.virtual_token,
        real_sol=curve_config.real_sol,
        real_token=curve_config.real_token,
        fee_bps=curve_config.fee_bps,
    )


def compute_fee(amount_in: int, fee_bps: int) -> int:
    """Fee on the input side, at least one base unit when a fee is charged."""
    if fee_bps == 0:
        return 0
    return max(amount_in * fee_bps // BPS_DENOMINATOR, 1)


def swap_out(amount_in: int, reserve_in: int, reserve_out: int) -> int:
    """Constant-product output for an already fee-adjusted input."""
    if reserve_in + amount_in == 0:
        return 0
    return amount_in * reserve_out // (reserve_in + amount_in)


class BondingCurve:
    """
    State machine over a single CurveState.

    Quotes are pure; apply_buy/apply_sell advance the state. The curve owns its
    state exclusively for the lifetime of one replay or simulation.
    """

    def __init__(self, state: CurveState):
        self.state = state

    @classmethod
    def launch(cls, curve_config=None) -> "BondingCurve":
        return cls(initial_state(curve_config))

    def snapshot(self) -> CurveState:
        return self.state.copy()

    def price(self) -> Decimal:
        """Spot price in lamports per token base unit."""
        return self.state.price

    def price_sol_per_token(self) -> Decimal:
        """Spot price in SOL per whole token."""
        return self.state.price * Decimal(TOKEN_UNIT) / Decimal(LAMPORTS_PER_SOL)

    # Quotes

    def quote_buy(self, sol_in: int) -> ExecutedTrade:
        """
        Tokens received for `sol_in` lamports, without changing state.

        Raises:
            ValueError: If sol_in is not positive
            InsufficientReservesError: If the curve has no real tokens left
        """
        if sol_in <= 0:
            raise ValueError(f"sol_in must be positive: {sol_in}")
        state = self.state
        if state.real_token <= 0:
            raise InsufficientReservesError(
                "Curve has no real token reserves left",
                side=TradeSide.BUY.value,
                amount_in=sol_in,
            )

        fee = compute_fee(sol_in, state.fee_bps)
        effective_in = sol_in - fee
        tokens_out = swap_out(effective_in, state.virtual_sol, state.virtual_token)
        tokens_out = min(tokens_out, state.real_token)

        return ExecutedTrade(
            side=TradeSide.BUY, sol_amount=sol_in, token_amount=tokens_out, fee=fee
        )

    def quote_sell(self, tokens_in: int) -> ExecutedTrade:
        """
        Lamports received for `tokens_in` tokens, without changing state.

        Raises:
            ValueError: If tokens_in is not positive
            InsufficientReservesError: If the payout exceeds the real SOL reserve
        """
        if tokens_in <= 0:
            raise ValueError(f"tokens_in must be positive: {tokens_in}")
        state = self.state

        fee = compute_fee(tokens_in, state.fee_bps)
        effective_in = tokens_in - fee
        sol_out = swap_out(effective_in, state.virtual_token, state.virtual_sol)

        if sol_out > state.real_sol:
            raise InsufficientReservesError(
                f"Sell pays {sol_out} lamports but the curve holds {state.real_sol}",
                side=TradeSide.SELL.value,
                amount_in=tokens_in,
                details={"sol_out": sol_out, "real_sol": state.real_sol},
            )

        return ExecutedTrade(
            side=TradeSide.SELL, sol_amount=sol_out, token_amount=tokens_in, fee=fee
        )

    def quote_buy_cost(self, tokens_out: int) -> int:
        """
        Smallest lamport input whose buy yields at least `tokens_out` tokens.

        Raises:
            InsufficientReservesError: If the curve cannot deliver that many tokens
        """
        if tokens_out <= 0:
            return 0
        state = self.state
        if tokens_out > state.real_token or tokens_out >= state.virtual_token:
            raise InsufficientReservesError(
                f"Curve cannot deliver {tokens_out} tokens",
                side=TradeSide.BUY.value,
                details={"real_token": state.real_token},
            )

        # floor(e * vt / (vs + e)) >= T  <=>  e >= T * vs / (vt - T)
        numerator = tokens_out * state.virtual_sol
        denominator = state.virtual_token - tokens_out
        effective_needed = -(-numerator // denominator)

        def effective(sol_in: int) -> int:
            return sol_in - compute_fee(sol_in, state.fee_bps)

        sol_in = -(
            -effective_needed * BPS_DENOMINATOR // (BPS_DENOMINATOR - state.fee_bps)
        )
        sol_in = max(sol_in, 1)
        while sol_in > 1 and effective(sol_in - 1) >= effective_needed:
            sol_in -= 1
        while effective(sol_in) < effective_needed:
            sol_in += 1
        return sol_in

    def quote(self, side: TradeSide, amount_in: int) -> ExecutedTrade:
        if side is TradeSide.BUY:
            return self.quote_buy(amount_in)
        return self.quote_sell(amount_in)

    # Transitions

    def apply_buy(
        self,
        sol_in: int,
        min_tokens_out: int = 0,
        slot: int = 0,
        signer: str = "",
        signature: str = "",
    ) -> ExecutedTrade:
        """
        Buy tokens with `sol_in` lamports and advance the curve.

        Raises:
            SlippageExceededError: Output below min_tokens_out (state untouched)
            InsufficientReservesError: Curve has no real tokens left
        """
        trade = self.quote_buy(sol_in)
        if trade.token_amount < min_tokens_out:
            raise SlippageExceededError(
                f"Buy would return {trade.token_amount} tokens, minimum {min_tokens_out}",
                side=TradeSide.BUY.value,
                amount_in=sol_in,
                expected=trade.token_amount,
                minimum=min_tokens_out,
            )

        state = self.state
        state.virtual_sol += sol_in
        state.real_sol += sol_in
        state.virtual_token -= trade.token_amount
        state.real_token -= trade.token_amount

        return replace(trade, slot=slot, signer=signer, signature=signature)

    def apply_sell(
        self,
        tokens_in: int,
        min_sol_out: int = 0,
        slot: int = 0,
        signer: str = "",
        signature: str = "",
    ) -> ExecutedTrade:
        """
        Sell `tokens_in` tokens and advance the curve.

        Raises:
            SlippageExceededError: Output below min_sol_out (state untouched)
            InsufficientReservesError: Payout exceeds the real SOL reserve
        """
        trade = self.quote_sell(tokens_in)
        if trade.sol_amount < min_sol_out:
            raise SlippageExceededError(
                f"Sell would return {trade.sol_amount} lamports, minimum {min_sol_out}",
                side=TradeSide.SELL.value,
                amount_in=tokens_in,
                expected=trade.sol_amount,
                minimum=min_sol_out,
            )

        state = self.state
        state.virtual_token += tokens_in
        state.real_token += tokens_in
        state.virtual_sol -= trade.sol_amount
        state.real_sol -= trade.sol_amount

        return replace(trade, slot=slot, signer=signer, signature=signature)

    def apply_intent(self, intent: TradeIntent, enforce_limit: bool = False) -> ExecutedTrade:
        """Apply a decoded intent; the limit is only enforced when asked to."""
        minimum = intent.limit if enforce_limit else 0
        if intent.side is TradeSide.BUY:
            return self.apply_buy(
                intent.amount, minimum, intent.slot, intent.signer, intent.signature
            )
        return self.apply_sell(
            intent.amount, minimum, intent.slot, intent.signer, intent.signature
        )
