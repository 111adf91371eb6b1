"""
Deterministic sandwich simulation on a fresh bonding curve.

Given a hypothetical victim buy, plays out the attack a bot would run:

1. Baseline: the victim buy alone on a copy of the launch curve
2. Front-run buy sized from the victim
3. Victim buy on the shifted curve
4. Back-run 1 (break-even): sell half the bot tokens with a floor covering
   half the front-run cost plus gas for two legs
5. Back-run 2 (profit): sell the remaining tokens with no floor

No external data is read; identical inputs produce identical traces.
"""

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Callable, List, Optional

from pumpfun.curve import BondingCurve, initial_state
from pumpfun.types import ExecutedTrade, TradeSide

from .config_loader import CurveConfig, SimulationConfig
from .exceptions import CurveError, ValidationError
from .impact import SandwichImpact, calculate_impact
from .utils import LAMPORTS_PER_SOL, TOKEN_UNIT, get_logger

logger = get_logger(__name__)

BOT = "bot"
VICTIM = "victim"


@dataclass(frozen=True)
class SimulationStep:
    """
    One leg of the simulated attack.

    Attributes:
        label: Human-readable leg name
        slot: Simulated slot
        actor: "bot" or "victim"
        side: BUY or SELL
        sol_amount: Lamports spent (buy) or received (sell); 0 when rejected
        token_amount: Tokens received (buy) or offered (sell)
        min_out: Minimum output bound the leg was sent with
        executed: False when the curve rejected the leg
        net: Per-leg bot net in lamports (back-runs only)
        price_after: Spot price in SOL per token after the leg
    """

    label: str
    slot: int
    actor: str
    side: TradeSide
    sol_amount: int
    token_amount: int
    min_out: int
    executed: bool
    price_after: Decimal
    net: Optional[int] = None
    trade: Optional[ExecutedTrade] = None


@dataclass
class SimulationTrace:
    """Full simulated attack, ready for formatting."""

    victim_sol_in: int
    victim_min_tokens: int
    front_run_sol: int
    baseline: ExecutedTrade
    initial_price: Decimal
    steps: List[SimulationStep] = field(default_factory=list)
    impact: Optional[SandwichImpact] = None

    @property
    def back_runs(self) -> List[SimulationStep]:
        return [s for s in self.steps if s.net is not None]

    @property
    def total_net(self) -> int:
        """Sum of per-leg back-run nets, in lamports."""
        return sum(s.net for s in self.back_runs)


def parse_victim_amount(text: str) -> int:
    """
    Parse a victim SOL amount (e.g. "0.5") into lamports.

    Raises:
        ValidationError: If the text is not a positive SOL amount of at least
            one lamport
    """
    cleaned = (text or "").strip()
    try:
        value = Decimal(cleaned)
    except InvalidOperation as e:
        raise ValidationError(
            f"Invalid SOL amount: '{cleaned}'", details={"input": cleaned}
        ) from e

    if not value.is_finite() or value <= 0:
        raise ValidationError(
            f"SOL amount must be a positive number, got '{cleaned}'",
            details={"input": cleaned},
        )

    lamports = int(value * LAMPORTS_PER_SOL)
    if lamports <= 0:
        raise ValidationError(
            f"SOL amount is below one lamport: '{cleaned}'", details={"input": cleaned}
        )
    return lamports


def read_victim_amount(read: Callable[[str], str] = input) -> int:
    """Prompt once for the victim SOL input and validate it."""
    return parse_victim_amount(
        read("Enter hypothetical victim SOL input (e.g., 1 for 1 SOL): ")
    )


def front_run_size(victim_sol_in: int, config: SimulationConfig) -> int:
    if config.front_run_lamports is not None:
        return config.front_run_lamports
    return victim_sol_in // config.front_run_divisor


def _sell_leg(
    curve: BondingCurve,
    label: str,
    slot: int,
    tokens_in: int,
    min_sol_out: int,
    leg_cost: int,
) -> SimulationStep:
    try:
        trade = curve.apply_sell(tokens_in, min_sol_out, slot=slot, signer=BOT)
    except CurveError as e:
        logger.info(f"{label} rejected: {e}")
        trade = None

    received = trade.sol_amount if trade is not None else 0
    return SimulationStep(
        label=label,
        slot=slot,
        actor=BOT,
        side=TradeSide.SELL,
        sol_amount=received,
        token_amount=tokens_in,
        min_out=min_sol_out,
        executed=trade is not None,
        price_after=curve.price_sol_per_token(),
        net=received - leg_cost,
        trade=trade,
    )


def run_simulation(
    victim_sol_in: int,
    config: Optional[SimulationConfig] = None,
    curve_config: Optional[CurveConfig] = None,
) -> SimulationTrace:
    """
    Simulate a sandwich around a victim buy of `victim_sol_in` lamports.

    Args:
        victim_sol_in: Victim buy input in lamports
        config: Front-run sizing, gas and slot numbering
        curve_config: Launch reserves (defaults to the pump.fun constants)

    Returns:
        SimulationTrace with every leg, the per-leg nets and the impact

    Raises:
        ValidationError: If the victim input is too small to size a front-run
    """
    config = config or SimulationConfig()
    gas = config.gas_per_tx_lamports
    if victim_sol_in <= 0:
        raise ValidationError(f"Victim input must be positive, got {victim_sol_in}")

    curve = BondingCurve(initial_state(curve_config))
    pre_attack = curve.snapshot()
    victim_min_tokens = (victim_sol_in // 2) * TOKEN_UNIT // LAMPORTS_PER_SOL

    baseline_curve = BondingCurve(pre_attack.copy())
    baseline = baseline_curve.apply_buy(victim_sol_in, victim_min_tokens)

    front_sol = front_run_size(victim_sol_in, config)
    if front_sol <= 0:
        raise ValidationError(
            f"Victim input of {victim_sol_in} lamports is too small to size a front-run",
            details={"victim_sol_in": victim_sol_in, "front_run_sol": front_sol},
        )

    trace = SimulationTrace(
        victim_sol_in=victim_sol_in,
        victim_min_tokens=victim_min_tokens,
        front_run_sol=front_sol,
        baseline=baseline,
        initial_price=curve.price_sol_per_token(),
    )
    slot = config.base_slot

    front = curve.apply_buy(front_sol, 0, slot=slot, signer=BOT)
    if front.token_amount < 2:
        raise ValidationError(
            f"Front-run of {front_sol} lamports buys too few tokens to split into two back-runs",
            details={"victim_sol_in": victim_sol_in, "front_run_sol": front_sol},
        )
    trace.steps.append(
        SimulationStep(
            label="Front-run buy",
            slot=slot,
            actor=BOT,
            side=TradeSide.BUY,
            sol_amount=front.sol_amount,
            token_amount=front.token_amount,
            min_out=0,
            executed=True,
            price_after=curve.price_sol_per_token(),
            trade=front,
        )
    )

    try:
        victim = curve.apply_buy(
            victim_sol_in, victim_min_tokens, slot=slot + 1, signer=VICTIM
        )
    except CurveError as e:
        logger.info(f"Victim buy rejected: {e}")
        victim = None
    trace.steps.append(
        SimulationStep(
            label="Victim buy",
            slot=slot + 1,
            actor=VICTIM,
            side=TradeSide.BUY,
            sol_amount=victim.sol_amount if victim else 0,
            token_amount=victim.token_amount if victim else 0,
            min_out=victim_min_tokens,
            executed=victim is not None,
            price_after=curve.price_sol_per_token(),
            trade=victim,
        )
    )

    leg_cost = front.sol_amount // 2 + gas
    tokens_be = front.token_amount // 2
    min_sol_be = (front.sol_amount + gas * 2) // 2
    trace.steps.append(
        _sell_leg(curve, "Back-run 1 (break-even)", slot + 2, tokens_be, min_sol_be, leg_cost)
    )
    trace.steps.append(
        _sell_leg(
            curve,
            "Back-run 2 (profit)",
            slot + 3,
            front.token_amount - tokens_be,
            0,
            leg_cost,
        )
    )

    executed_backs = [s.trade for s in trace.back_runs if s.trade is not None]
    if victim is not None and executed_backs:
        trace.impact = calculate_impact(pre_attack, front, victim, executed_backs, gas)

    logger.debug(
        f"Simulated victim {victim_sol_in} lamports: front-run {front_sol}, "
        f"total net {trace.total_net}"
    )
    return trace
