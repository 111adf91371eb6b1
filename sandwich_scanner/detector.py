"""
Sandwich pattern detection over slot-ordered resolved trades.

Each buy by a repeat trader (bot candidate) opens an attack window that walks
a small state machine:

    IDLE -> CANDIDATE_FRONT_RUN -> VICTIM_SEEN -> CANDIDATE_BACK_RUN -> MATCHED

Windows that time out, reach the end of input or close without a victim are
downgraded to partial front-run / back-run patterns.
"""

from collections import Counter, deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Deque, Dict, Iterable, List, Optional, Set

from pumpfun.types import OrderKey, ResolvedTrade, TradeSide

from .config_loader import DetectorConfig
from .exceptions import OrderingError
from .impact import SandwichImpact, impact_from_resolved
from .metrics import DetectionMetrics
from .utils import format_sol, get_logger, lamports_to_sol, short_signature

logger = get_logger(__name__)


class WindowState(Enum):
    IDLE = "idle"
    CANDIDATE_FRONT_RUN = "candidate_front_run"
    VICTIM_SEEN = "victim_seen"
    CANDIDATE_BACK_RUN = "candidate_back_run"
    MATCHED = "matched"


class PatternKind(Enum):
    """Closed set of reported patterns."""

    SANDWICH = "sandwich"
    ATTEMPTED = "attempted"
    FRONT_RUN = "front_run"
    BACK_RUN = "back_run"

    @property
    def is_match(self) -> bool:
        return self in (PatternKind.SANDWICH, PatternKind.ATTEMPTED)


@dataclass(frozen=True)
class SandwichMatch:
    """
    A detected pattern. Partials carry only the legs they have.

    Attributes:
        kind: Pattern kind
        bot: Bot signer
        front_run: Bot's opening buy
        victim: Trade sandwiched between the bot legs
        back_run: Bot's closing sell
        impact: Victim loss and bot profit (matched kinds only)
    """

    kind: PatternKind
    bot: str
    front_run: Optional[ResolvedTrade] = None
    victim: Optional[ResolvedTrade] = None
    back_run: Optional[ResolvedTrade] = None
    impact: Optional[SandwichImpact] = None

    @property
    def legs(self) -> List[ResolvedTrade]:
        return [t for t in (self.front_run, self.victim, self.back_run) if t is not None]

    @property
    def first_slot(self) -> int:
        return min(t.slot for t in self.legs)

    @property
    def last_slot(self) -> int:
        return max(t.slot for t in self.legs)

    def describe(self) -> str:
        parts = [f"{self.kind.value} by {short_signature(self.bot)}"]
        parts.append(f"slots {self.first_slot}-{self.last_slot}")
        if self.impact is not None:
            parts.append(f"net {format_sol(self.impact.bot_net_profit, signed=True)}")
        return ", ".join(parts)


@dataclass
class DetectionSummary:
    """All patterns found in one run, in order of their first leg."""

    matches: List[SandwichMatch] = field(default_factory=list)
    bots: List[str] = field(default_factory=list)
    trades_analyzed: int = 0

    def of_kind(self, kind: PatternKind) -> List[SandwichMatch]:
        return [m for m in self.matches if m.kind is kind]

    @property
    def sandwiches(self) -> List[SandwichMatch]:
        return self.of_kind(PatternKind.SANDWICH)

    @property
    def attempts(self) -> List[SandwichMatch]:
        return self.of_kind(PatternKind.ATTEMPTED)

    @property
    def front_runs(self) -> List[SandwichMatch]:
        return self.of_kind(PatternKind.FRONT_RUN)

    @property
    def back_runs(self) -> List[SandwichMatch]:
        return self.of_kind(PatternKind.BACK_RUN)

    @property
    def total_bot_profit(self) -> int:
        """Net lamports extracted across matched patterns."""
        return sum(m.impact.bot_net_profit for m in self.matches if m.impact is not None)

    def counts(self) -> Dict[str, int]:
        return {kind.value: len(self.of_kind(kind)) for kind in PatternKind}


@dataclass
class _AttackWindow:
    bot: str
    front_run: ResolvedTrade
    state: WindowState = WindowState.CANDIDATE_FRONT_RUN
    victim: Optional[ResolvedTrade] = None

    @property
    def opened_at(self) -> OrderKey:
        return self.front_run.order_key


class PatternDetector:
    """
    Front-run / victim / back-run detector.

    Args:
        config: Detection thresholds
        metrics: Optional metrics sink for detected patterns
    """

    def __init__(self, config: DetectorConfig, metrics: Optional[DetectionMetrics] = None):
        self.config = config
        self.metrics = metrics

    def find_bots(self, trades: Iterable[ResolvedTrade]) -> Set[str]:
        """Signers trading at least min_bot_frequency times."""
        counts = Counter(t.signer for t in trades)
        return {
            signer
            for signer, count in counts.items()
            if count >= self.config.min_bot_frequency
        }

    def _is_eligible_victim(self, trade: ResolvedTrade, bot: str) -> bool:
        return (
            trade.signer != bot
            and trade.adverse
            and trade.sol_size >= self.config.min_victim_lamports
        )

    def _emit(self, summary: DetectionSummary, match: SandwichMatch) -> None:
        summary.matches.append(match)
        net_sol = None
        if match.impact is not None:
            net_sol = float(lamports_to_sol(match.impact.bot_net_profit))
        if self.metrics is not None:
            self.metrics.record_pattern(match.kind.value, net_sol)
        logger.debug(f"Pattern: {match.describe()}")

    def _downgrade(self, summary: DetectionSummary, window: _AttackWindow) -> None:
        window.state = WindowState.IDLE
        self._emit(
            summary,
            SandwichMatch(
                kind=PatternKind.FRONT_RUN,
                bot=window.bot,
                front_run=window.front_run,
                victim=window.victim,
            ),
        )

    def _close(
        self, summary: DetectionSummary, window: _AttackWindow, sell: ResolvedTrade
    ) -> None:
        if window.victim is None:
            self._downgrade(summary, window)
            self._emit(
                summary,
                SandwichMatch(kind=PatternKind.BACK_RUN, bot=window.bot, back_run=sell),
            )
            return

        window.state = WindowState.CANDIDATE_BACK_RUN
        impact = impact_from_resolved(
            window.front_run, window.victim, [sell], self.config.gas_per_tx_lamports
        )
        kind = (
            PatternKind.SANDWICH
            if impact.bot_net_profit >= self.config.min_profit_lamports
            else PatternKind.ATTEMPTED
        )
        window.state = WindowState.MATCHED
        self._emit(
            summary,
            SandwichMatch(
                kind=kind,
                bot=window.bot,
                front_run=window.front_run,
                victim=window.victim,
                back_run=sell,
                impact=impact,
            ),
        )

    def detect(self, trades: Iterable[ResolvedTrade]) -> DetectionSummary:
        """
        Run detection over resolved trades.

        Args:
            trades: Resolved trades in strictly ascending (slot, position,
                instruction index) order

        Returns:
            DetectionSummary with matched and partial patterns

        Raises:
            OrderingError: If trades are out of order
        """
        trades = list(trades)
        gap = self.config.max_attack_slot_gap
        bots = self.find_bots(trades)
        summary = DetectionSummary(bots=sorted(bots), trades_analyzed=len(trades))

        windows: List[_AttackWindow] = []
        recent: Deque[ResolvedTrade] = deque()
        claimed: Set[OrderKey] = set()
        last_key: Optional[OrderKey] = None

        for trade in trades:
            key = trade.order_key
            if last_key is not None and key <= last_key:
                raise OrderingError(
                    f"Trade {short_signature(trade.signature)} at {key} is not after {last_key}",
                    previous_key=last_key,
                    current_key=key,
                )
            last_key = key

            # Time out windows whose front-run is too far behind
            for window in [w for w in windows if trade.slot - w.front_run.slot > gap]:
                windows.remove(window)
                self._downgrade(summary, window)

            while recent and trade.slot - recent[0].slot > gap:
                recent.popleft()

            # Earliest-opened window of another signer wins the victim
            for window in windows:
                if (
                    window.state is WindowState.CANDIDATE_FRONT_RUN
                    and self._is_eligible_victim(trade, window.bot)
                ):
                    window.victim = trade
                    window.state = WindowState.VICTIM_SEEN
                    claimed.add(key)
                    break

            is_bot = trade.signer in bots

            if is_bot and trade.side is TradeSide.SELL:
                own = [w for w in windows if w.bot == trade.signer]
                if own:
                    windows.remove(own[0])
                    self._close(summary, own[0], trade)
                else:
                    earlier = [
                        t
                        for t in recent
                        if t.order_key not in claimed
                        and self._is_eligible_victim(t, trade.signer)
                    ]
                    if earlier:
                        claimed.add(earlier[-1].order_key)
                        self._emit(
                            summary,
                            SandwichMatch(
                                kind=PatternKind.BACK_RUN,
                                bot=trade.signer,
                                victim=earlier[-1],
                                back_run=trade,
                            ),
                        )

            elif (
                is_bot
                and trade.side is TradeSide.BUY
                and trade.sol_size >= self.config.min_frontrun_lamports
            ):
                windows.append(_AttackWindow(bot=trade.signer, front_run=trade))

            recent.append(trade)

        for window in windows:
            self._downgrade(summary, window)

        summary.matches.sort(key=lambda m: min(t.order_key for t in m.legs))

        counts = summary.counts()
        logger.info(
            f"Detection over {len(trades)} trades, {len(bots)} bot candidates: "
            f"{counts['sandwich']} sandwiches, {counts['attempted']} attempted, "
            f"{counts['front_run']} front-runs, {counts['back_run']} back-runs"
        )
        return summary
