"""
Trade resolver: replays decoded intents against the bonding curve in strict
slot order and measures how each trade executed against its baseline.

Curve state is path-dependent, so the resolver refuses any intent whose
ordering key (slot, position, instruction index) is not strictly greater than
the previous one.
"""

from collections import deque
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Deque, Iterable, List, Optional, Tuple

from pumpfun.curve import BondingCurve
from pumpfun.types import (
    CurveState,
    ExecutedTrade,
    OrderKey,
    ResolvedTrade,
    TradeIntent,
    TradeSide,
    UnresolvedTrade,
)

from .config_loader import DetectorConfig
from .exceptions import CurveError, OrderingError
from .metrics import DetectionMetrics
from .utils import calculate_percentage, get_logger

logger = get_logger(__name__)


@dataclass
class ReplayResult:
    """Outcome of replaying a full intent sequence."""

    resolved: List[ResolvedTrade] = field(default_factory=list)
    unresolved: List[UnresolvedTrade] = field(default_factory=list)
    final_state: Optional[CurveState] = None


def sort_intents(intents: Iterable[TradeIntent]) -> List[TradeIntent]:
    """Order intents by slot, then intra-slot position, then instruction index."""
    return sorted(intents, key=lambda intent: intent.order_key)


def assess_observed_execution(
    intent: TradeIntent,
    requested_tokens: int,
    sol_change: Optional[int],
    token_change: Optional[int],
) -> List[str]:
    """
    Compare a transaction's observed balance deltas with its on-chain limits.

    Args:
        intent: Decoded intent (limit/amount in curve terms)
        requested_tokens: Token amount named by the instruction
        sol_change: Signer lamport delta (None when unknown)
        token_change: Signer token delta (None when unknown)

    Returns:
        Breach labels; empty when execution stayed within the limits
    """
    if sol_change is None and token_change is None:
        return []
    sol_change = sol_change or 0
    token_change = token_change or 0
    breaches = []

    if intent.side is TradeSide.BUY:
        spent = -sol_change if sol_change < 0 else 0
        received = token_change if token_change > 0 else 0
        if spent > intent.amount:
            breaches.append(f"OVERPAID {spent - intent.amount} lamports")
        if received < requested_tokens:
            breaches.append(f"GOT {requested_tokens - received} FEWER TOKENS")
    else:
        received = sol_change if sol_change > 0 else 0
        sold = -token_change if token_change < 0 else 0
        if received < intent.limit:
            breaches.append(f"RECEIVED {intent.limit - received} lamports LESS")
        if sold > requested_tokens:
            breaches.append(f"SOLD {sold - requested_tokens} MORE TOKENS")

    return breaches


class TradeResolver:
    """
    Sequential replay of trades over one exclusively owned curve.

    The adverse-execution baseline is selected by
    ``DetectorConfig.adverse_baseline``:

    - ``model``: quote the same input against the curve as it stood before the
      earliest trade inside the trailing attack window. Falls back to
      ``limit_margin`` when that quote is impossible.
    - ``limit_margin``: flag trades whose output landed within
      ``limit_margin_bps`` of their minimum-output bound.
    """

    def __init__(
        self,
        state: CurveState,
        config: DetectorConfig,
        metrics: Optional[DetectionMetrics] = None,
    ):
        self.curve = BondingCurve(state)
        self.config = config
        self.metrics = metrics
        self._last_key: Optional[OrderKey] = None
        self._window: Deque[Tuple[int, CurveState]] = deque()

    @property
    def state(self) -> CurveState:
        return self.curve.state

    def _check_order(self, intent: TradeIntent) -> None:
        key = intent.order_key
        if self._last_key is not None and key <= self._last_key:
            raise OrderingError(
                f"Trade {intent.signature or key} at {key} is not after {self._last_key}; "
                "trades must be resolved in ascending slot order",
                previous_key=self._last_key,
                current_key=key,
            )
        self._last_key = key

    def _baseline_state(self, slot: int, current: CurveState) -> CurveState:
        horizon = slot - self.config.max_attack_slot_gap
        while self._window and self._window[0][0] < horizon:
            self._window.popleft()
        if self._window:
            return self._window[0][1]
        return current

    def _limit_floor(self, intent: TradeIntent) -> int:
        margin = Decimal("10000") + Decimal(str(self.config.limit_margin_bps))
        return int(Decimal(intent.limit) * margin / Decimal("10000"))

    def _measure(
        self, intent: TradeIntent, executed: ExecutedTrade, baseline_state: CurveState
    ) -> Tuple[Optional[int], int, Decimal, bool]:
        actual = executed.output

        if self.config.adverse_baseline == "model":
            try:
                baseline = (
                    BondingCurve(baseline_state.copy())
                    .quote(intent.side, intent.amount)
                    .output
                )
            except CurveError as e:
                logger.debug(
                    f"No model baseline for {intent.signature or intent.order_key}: {e}"
                )
            else:
                shortfall = baseline - actual
                return (
                    baseline,
                    shortfall,
                    calculate_percentage(shortfall, baseline),
                    shortfall > 0,
                )

        floor = self._limit_floor(intent)
        shortfall = floor - actual
        adverse = intent.limit > 0 and actual <= floor
        return None, shortfall, calculate_percentage(shortfall, floor), adverse

    def resolve(self, intent: TradeIntent) -> ResolvedTrade:
        """
        Apply one intent to the curve and measure its execution.

        Raises:
            OrderingError: If the intent is not strictly after the previous one
            CurveError: If the curve cannot apply the trade or its minimum
                output is not met (state untouched)
        """
        self._check_order(intent)

        if intent.amount <= 0:
            raise CurveError(
                f"Trade input must be positive, got {intent.amount}",
                side=intent.side.value,
                amount_in=intent.amount,
            )

        before = self.curve.snapshot()
        baseline_state = self._baseline_state(intent.slot, before)
        executed = self.curve.apply_intent(intent, enforce_limit=True)
        self._window.append((intent.slot, before))

        baseline, shortfall, slippage_pct, adverse = self._measure(
            intent, executed, baseline_state
        )

        if self.metrics is not None:
            self.metrics.record_resolved(intent.side.value, adverse)

        return ResolvedTrade(
            intent=intent,
            executed=executed,
            state_before=before,
            baseline_out=baseline,
            shortfall=shortfall,
            slippage_pct=slippage_pct,
            adverse=adverse,
        )

    def resolve_all(self, intents: Iterable[TradeIntent]) -> ReplayResult:
        """
        Replay intents in the order given.

        Curve failures leave the trade unresolved and the replay continues;
        ordering violations abort the replay.
        """
        result = ReplayResult()
        for intent in intents:
            try:
                result.resolved.append(self.resolve(intent))
            except CurveError as e:
                logger.warning(
                    f"Unresolved {intent.side.badge} {intent.signature or intent.order_key} "
                    f"at slot {intent.slot}: {e}"
                )
                if self.metrics is not None:
                    self.metrics.record_unresolved(type(e).__name__)
                result.unresolved.append(
                    UnresolvedTrade(
                        intent=intent, reason=str(e), error_type=type(e).__name__
                    )
                )
        result.final_state = self.curve.snapshot()
        return result
