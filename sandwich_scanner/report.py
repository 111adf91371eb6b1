"""
Text reports for detection runs and simulations.

Every function returns a string; the CLIs print them. Output contains no
timestamps, so identical inputs render identically.
"""

from typing import Dict, List, Optional

from tabulate import tabulate

from pumpfun.types import ResolvedTrade, TradeSide

from .detector import DetectionSummary, PatternKind, SandwichMatch
from .impact import SandwichImpact
from .pipeline import AnalysisReport
from .simulation import SimulationTrace
from .utils import format_sol, format_tokens, short_signature

RULE = "=" * 80


def _leg(trade: Optional[ResolvedTrade]) -> str:
    if trade is None:
        return "-"
    return f"{trade.slot} {short_signature(trade.signature)}"


def _limit(trade: ResolvedTrade) -> str:
    if trade.side is TradeSide.BUY:
        return f"≥{format_tokens(trade.intent.limit, places=2)} tok"
    return f"≥{format_sol(trade.intent.limit)}"


def format_trade_table(
    trades: List[ResolvedTrade], execution_checks: Optional[Dict[str, List[str]]] = None
) -> str:
    """Slot-ordered table of resolved trades."""
    execution_checks = execution_checks or {}
    rows = []
    for trade in trades:
        executed = trade.executed
        rows.append(
            [
                trade.slot,
                trade.intent.position,
                short_signature(trade.signature),
                short_signature(trade.signer),
                trade.side.badge,
                format_sol(executed.sol_amount),
                format_tokens(executed.token_amount, places=2),
                _limit(trade),
                f"{trade.slippage_pct:+.3f}%",
                "⚠ yes" if trade.adverse else "no",
                "; ".join(execution_checks.get(trade.signature, [])) or "-",
            ]
        )
    return tabulate(
        rows,
        headers=[
            "Slot",
            "Pos",
            "Signature",
            "Signer",
            "Side",
            "SOL",
            "Tokens",
            "Limit",
            "Shortfall",
            "Adverse",
            "Execution",
        ],
        tablefmt="grid",
    )


def format_warnings(warnings: List[str]) -> str:
    if not warnings:
        return "No warnings."
    return "\n".join(f"⚠ {warning}" for warning in warnings)


def _deltas(match: SandwichMatch) -> List[str]:
    """Bot ΔSOL / Δtoken for a pattern."""
    if match.impact is not None:
        return [
            format_sol(match.impact.bot_net_profit, signed=True),
            f"{format_tokens(match.impact.net_token_delta, places=2)}",
        ]
    if match.front_run is not None:
        executed = match.front_run.executed
        return [
            format_sol(-executed.sol_amount, signed=True),
            f"+{format_tokens(executed.token_amount, places=2)}",
        ]
    executed = match.back_run.executed
    return [
        format_sol(executed.sol_amount, signed=True),
        f"-{format_tokens(executed.token_amount, places=2)}",
    ]


def _victim_note(match: SandwichMatch) -> str:
    if match.impact is not None:
        return match.impact.format_log()
    if match.victim is not None:
        victim = match.victim
        return (
            f"victim {short_signature(victim.signer)} "
            f"{victim.slippage_pct:.3f}% below baseline"
        )
    return "-"


def format_detection(summary: DetectionSummary) -> str:
    """Sections for matched sandwiches, attempts and partial patterns."""
    lines = []
    counts = summary.counts()
    lines.append(
        f"Trades analyzed: {summary.trades_analyzed} | "
        f"Bot candidates: {len(summary.bots)} | "
        f"Sandwiches: {counts['sandwich']} | Attempted: {counts['attempted']} | "
        f"Front-runs: {counts['front_run']} | Back-runs: {counts['back_run']}"
    )

    titles = [
        (PatternKind.SANDWICH, "🥪 SANDWICHES"),
        (PatternKind.ATTEMPTED, "ATTEMPTED SANDWICHES (below profit floor)"),
        (PatternKind.FRONT_RUN, "FRONT-RUNS (no matching back-run)"),
        (PatternKind.BACK_RUN, "BACK-RUNS (no matching front-run)"),
    ]
    for kind, title in titles:
        matches = summary.of_kind(kind)
        if not matches:
            continue
        rows = []
        for match in matches:
            rows.append(
                [
                    short_signature(match.bot),
                    _leg(match.front_run),
                    _leg(match.victim),
                    _leg(match.back_run),
                    *_deltas(match),
                    _victim_note(match),
                ]
            )
        lines.append("")
        lines.append(title)
        lines.append(
            tabulate(
                rows,
                headers=["Bot", "Front-run", "Victim", "Back-run", "ΔSOL", "Δtoken", "Impact"],
                tablefmt="grid",
            )
        )

    if summary.matches and (summary.sandwiches or summary.attempts):
        lines.append("")
        lines.append(
            f"Total bot net across matches: {format_sol(summary.total_bot_profit, signed=True)}"
        )
    elif not summary.matches:
        lines.append("")
        lines.append("No sandwich patterns detected.")
    return "\n".join(lines)


def format_analysis(report: AnalysisReport, mint: str = "") -> str:
    """Full detector report: trade table, warnings, detection."""
    header = f"SANDWICH SCAN {mint}".rstrip()
    lines = [RULE, header, RULE]
    lines.append(
        f"Transactions: {len(report.records)} | Trades: {len(report.intents)} | "
        f"Resolved: {len(report.resolved)} | Unresolved: {len(report.unresolved)} | "
        f"Non-trade: {report.non_trade_transactions}"
    )
    lines.append("")
    if report.resolved:
        lines.append(format_trade_table(report.resolved, report.execution_checks))
    else:
        lines.append("No resolved trades.")
    lines.append("")
    lines.append("WARNINGS")
    lines.append(format_warnings(report.warnings))
    lines.append("")
    lines.append("DETECTION")
    lines.append(format_detection(report.detection))
    lines.append(RULE)
    return "\n".join(lines)


def _format_impact(impact: SandwichImpact) -> List[str]:
    return [
        f"Victim baseline tokens: {format_tokens(impact.victim_baseline_out or 0)}",
        f"Victim token shortage:  {format_tokens(impact.victim_token_shortage)} "
        f"({impact.victim_loss_pct:.4f}%)",
        f"Victim overpayment:     {format_sol(impact.victim_overpayment)}",
        f"Bot gross:              {format_sol(impact.bot_gross_profit, signed=True)}",
        f"Bot fees paid:          {format_sol(impact.bot_fees_paid)}",
        f"Bot gas ({impact.legs} legs):     {format_sol(impact.bot_gas)}",
        f"Bot net:                {format_sol(impact.bot_net_profit, signed=True)}",
    ]


def format_simulation_trace(trace: SimulationTrace) -> str:
    """Step-by-step simulation trace."""
    baseline = trace.baseline
    lines = [
        f"Hypothetical victim TX: buy with {format_sol(trace.victim_sol_in, places=3)}, "
        f"min tokens {format_tokens(trace.victim_min_tokens)}",
        f"Initial price: {trace.initial_price:.12f} SOL/token",
        "",
        f"Baseline (no attack): {format_tokens(baseline.token_amount)} tokens "
        f"for {format_sol(baseline.sol_amount, places=3)}",
    ]

    for offset, step in enumerate(trace.steps):
        lines.append("")
        slot = f"Slot n+{offset} ({step.slot})" if offset else f"Slot n ({step.slot})"
        if not step.executed:
            status = " [REJECTED]"
        else:
            status = ""
        if step.side is TradeSide.BUY:
            lines.append(
                f"{slot}: {step.label}{status}: {format_tokens(step.token_amount)} tokens "
                f"for {format_sol(step.sol_amount, places=3)}"
            )
        else:
            lines.append(
                f"{slot}: {step.label}{status}: sell {format_tokens(step.token_amount)} tokens "
                f"(min {format_sol(step.min_out)}), received {format_sol(step.sol_amount)} "
                f"(net {format_sol(step.net, signed=True)})"
            )
        lines.append(f"Price after {step.label.lower()}: {step.price_after:.12f} SOL/token")

    lines.append("")
    lines.append(f"Bot total net profit: {format_sol(trace.total_net, signed=True)}")
    if trace.impact is not None:
        lines.append("")
        lines.extend(_format_impact(trace.impact))
    return "\n".join(lines)
