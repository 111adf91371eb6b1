"""
Single source of truth for sandwich impact math.

Both live detection and the simulation engine price victim losses and bot
profit through this module, with the same integer curve arithmetic that
produced the trades.

Conversion policy:
- Internal: integer lamports / token base units
- Percentages: Decimal
- Output: SOL with 6 decimals, tokens with 6 decimals
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, List, Optional, Sequence

from pumpfun.curve import BondingCurve
from pumpfun.types import CurveState, ExecutedTrade, ResolvedTrade, TradeSide

from .exceptions import CurveError
from .utils import calculate_percentage, format_sol, format_tokens, get_logger, lamports_to_sol

logger = get_logger(__name__)


@dataclass(frozen=True)
class SandwichImpact:
    """
    Complete breakdown of one sandwich.

    Victim figures compare the victim's actual execution with the same input
    replayed on the curve as it stood before the front-run. Bot figures are
    in lamports unless noted.
    """

    # Victim
    victim_side: TradeSide
    victim_baseline_out: Optional[int]  # None when the baseline is unquotable
    victim_actual_out: int
    victim_token_shortage: int  # Buy victims only
    victim_overpayment: int  # Lamports lost to the price move
    victim_loss_pct: Decimal

    # Bot
    bot_cost: int  # Front-run lamports spent, fee included
    bot_proceeds: int  # Back-run lamports received
    bot_gross_profit: int
    bot_fees_paid: int  # Curve fees valued in lamports
    bot_gas: int
    bot_net_profit: int
    net_token_delta: int  # Tokens the bot still holds from the front-run
    legs: int

    @property
    def profitable(self) -> bool:
        return self.bot_net_profit > 0

    @property
    def net_profit_sol(self) -> Decimal:
        return lamports_to_sol(self.bot_net_profit)

    def to_dict(self):
        """Convert to dictionary for JSON serialization."""
        return {
            "victim_side": self.victim_side.value,
            "victim_baseline_out": self.victim_baseline_out,
            "victim_actual_out": self.victim_actual_out,
            "victim_token_shortage": self.victim_token_shortage,
            "victim_overpayment": self.victim_overpayment,
            "victim_loss_pct": float(self.victim_loss_pct),
            "bot_cost": self.bot_cost,
            "bot_proceeds": self.bot_proceeds,
            "bot_gross_profit": self.bot_gross_profit,
            "bot_fees_paid": self.bot_fees_paid,
            "bot_gas": self.bot_gas,
            "bot_net_profit": self.bot_net_profit,
            "net_token_delta": self.net_token_delta,
            "legs": self.legs,
        }

    def format_log(self) -> str:
        """Format for consistent logging (detector, report and simulator)."""
        victim = f"Victim overpaid {format_sol(self.victim_overpayment)}"
        if self.victim_side is TradeSide.BUY:
            victim += f", {format_tokens(self.victim_token_shortage)} tokens short"
        return (
            f"{victim} ({self.victim_loss_pct:.3f}%) | "
            f"Bot net {format_sol(self.bot_net_profit, signed=True)} "
            f"(Gross {format_sol(self.bot_gross_profit, signed=True)} - "
            f"Gas {format_sol(self.bot_gas)}; "
            f"fees {format_sol(self.bot_fees_paid)})"
        )


def _fee_in_lamports(trade: ExecutedTrade) -> int:
    if trade.side is TradeSide.BUY:
        return trade.fee
    # Sell fees are taken in tokens; value them at the leg's realized price
    if trade.token_amount == 0:
        return 0
    return trade.fee * trade.sol_amount // trade.token_amount


def _victim_losses(pre_front_state: CurveState, victim: ExecutedTrade):
    baseline_curve = BondingCurve(pre_front_state.copy())
    victim_input = (
        victim.sol_amount if victim.side is TradeSide.BUY else victim.token_amount
    )

    try:
        baseline = baseline_curve.quote(victim.side, victim_input)
    except CurveError as e:
        logger.debug(f"Victim baseline not quotable: {e}")
        return None, 0, 0, Decimal("0")

    if victim.side is TradeSide.SELL:
        overpayment = max(baseline.sol_amount - victim.sol_amount, 0)
        return (
            baseline.sol_amount,
            0,
            overpayment,
            calculate_percentage(overpayment, baseline.sol_amount),
        )

    shortage = max(baseline.token_amount - victim.token_amount, 0)
    try:
        fair_cost = baseline_curve.quote_buy_cost(victim.token_amount)
    except CurveError as e:
        logger.debug(f"Victim fair cost not quotable: {e}")
        fair_cost = victim.sol_amount
    overpayment = max(victim.sol_amount - fair_cost, 0)
    return (
        baseline.token_amount,
        shortage,
        overpayment,
        calculate_percentage(shortage, baseline.token_amount),
    )


def calculate_impact(
    pre_front_state: CurveState,
    front_run: ExecutedTrade,
    victim: ExecutedTrade,
    back_runs: Sequence[ExecutedTrade],
    gas_per_tx: int,
) -> SandwichImpact:
    """
    Compute the complete impact of a sandwich.

    This is the ONLY function that computes victim loss and bot profit.

    Args:
        pre_front_state: Curve state immediately before the front-run
        front_run: Bot's opening buy
        victim: Victim's trade between the bot legs
        back_runs: Bot's closing sells (one or more)
        gas_per_tx: Transaction cost charged per bot leg, in lamports

    Returns:
        SandwichImpact; a negative bot_net_profit is a failed attempt and is
        reported as such
    """
    baseline_out, shortage, overpayment, loss_pct = _victim_losses(
        pre_front_state, victim
    )

    proceeds = sum(leg.sol_amount for leg in back_runs)
    tokens_sold = sum(leg.token_amount for leg in back_runs)
    legs = 1 + len(back_runs)
    gross = proceeds - front_run.sol_amount
    gas = gas_per_tx * legs
    fees = _fee_in_lamports(front_run) + sum(_fee_in_lamports(leg) for leg in back_runs)

    return SandwichImpact(
        victim_side=victim.side,
        victim_baseline_out=baseline_out,
        victim_actual_out=victim.output,
        victim_token_shortage=shortage,
        victim_overpayment=overpayment,
        victim_loss_pct=loss_pct,
        bot_cost=front_run.sol_amount,
        bot_proceeds=proceeds,
        bot_gross_profit=gross,
        bot_fees_paid=fees,
        bot_gas=gas,
        bot_net_profit=gross - gas,
        net_token_delta=front_run.token_amount - tokens_sold,
        legs=legs,
    )


def impact_from_resolved(
    front_run: ResolvedTrade,
    victim: ResolvedTrade,
    back_runs: Iterable[ResolvedTrade],
    gas_per_tx: int,
) -> SandwichImpact:
    """Impact of a detected sandwich, priced from the front-run's pre-trade snapshot."""
    legs: List[ExecutedTrade] = [trade.executed for trade in back_runs]
    return calculate_impact(
        front_run.state_before, front_run.executed, victim.executed, legs, gas_per_tx
    )
