"""
End-to-end analysis of one mint's transactions.

decode -> sort -> resolve (fresh curve) -> detect
"""

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

from pumpfun.curve import initial_state
from pumpfun.decoder import decode_transaction
from pumpfun.types import (
    CurveState,
    ResolvedTrade,
    TradeIntent,
    TradeSide,
    TransactionRecord,
    UnresolvedTrade,
)

from .config_loader import CurveConfig, DetectorConfig
from .detector import DetectionSummary, PatternDetector
from .exceptions import MalformedInstructionError
from .metrics import DetectionMetrics
from .resolver import TradeResolver, assess_observed_execution, sort_intents
from .utils import get_logger, short_signature

logger = get_logger(__name__)

FAIR_EXECUTION = "FAIR EXECUTION"


@dataclass
class AnalysisReport:
    """Everything one analysis run produced, for reporting."""

    records: List[TransactionRecord] = field(default_factory=list)
    intents: List[TradeIntent] = field(default_factory=list)
    resolved: List[ResolvedTrade] = field(default_factory=list)
    unresolved: List[UnresolvedTrade] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    detection: DetectionSummary = field(default_factory=DetectionSummary)
    execution_checks: Dict[str, List[str]] = field(default_factory=dict)
    final_state: Optional[CurveState] = None
    non_trade_transactions: int = 0


def decode_records(
    records: Iterable[TransactionRecord],
    report: AnalysisReport,
    metrics: Optional[DetectionMetrics] = None,
) -> List[TradeIntent]:
    """Decode each record's trade, collecting warnings and observed execution checks."""
    intents = []
    for record in records:
        intent, skipped = decode_transaction(record)

        for error in skipped:
            if isinstance(error, MalformedInstructionError):
                report.warnings.append(
                    f"{short_signature(record.signature)}: malformed instruction ({error})"
                )
                reason = "malformed"
            else:
                logger.debug(f"Skipped instruction in {short_signature(record.signature)}: {error}")
                reason = "unknown_variant"
            if metrics is not None:
                metrics.record_skipped(reason)

        if intent is None:
            report.non_trade_transactions += 1
            continue

        if metrics is not None:
            metrics.record_decoded(intent.side.value)
        intents.append(intent)

        requested_tokens = intent.limit if intent.side is TradeSide.BUY else intent.amount
        if record.sol_change is not None or record.token_change is not None:
            breaches = assess_observed_execution(
                intent, requested_tokens, record.sol_change, record.token_change
            )
            report.execution_checks[record.signature] = breaches or [FAIR_EXECUTION]

    return intents


def analyze_records(
    records: Iterable[TransactionRecord],
    config: DetectorConfig,
    curve_config: Optional[CurveConfig] = None,
    metrics: Optional[DetectionMetrics] = None,
) -> AnalysisReport:
    """
    Run the full detection pipeline over retrieved transactions.

    Args:
        records: Transactions of one mint, any order
        config: Detection thresholds
        curve_config: Reserves the replay starts from (launch state by default)
        metrics: Optional metrics sink

    Returns:
        AnalysisReport; non-fatal decode and curve failures appear as warnings

    Raises:
        OrderingError: If two trades share an ordering key
    """
    report = AnalysisReport(records=list(records))

    report.intents = sort_intents(decode_records(report.records, report, metrics))
    logger.info(
        f"Decoded {len(report.intents)} trades from {len(report.records)} transactions"
    )

    resolver = TradeResolver(initial_state(curve_config), config, metrics)
    replay = resolver.resolve_all(report.intents)
    report.resolved = replay.resolved
    report.unresolved = replay.unresolved
    report.final_state = replay.final_state

    for trade in report.unresolved:
        report.warnings.append(
            f"{short_signature(trade.intent.signature)}: unresolved "
            f"{trade.intent.side.badge} at slot {trade.intent.slot} ({trade.reason})"
        )

    report.detection = PatternDetector(config, metrics).detect(report.resolved)
    return report
