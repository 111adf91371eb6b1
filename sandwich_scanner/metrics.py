"""
Prometheus metrics for sandwich detection runs.

Counts what the pipeline decoded, skipped and detected so degraded runs are
visible without reading the log.
"""

import logging
from typing import Optional

from prometheus_client import REGISTRY, CollectorRegistry, Counter, Gauge, Histogram

logger = logging.getLogger(__name__)


class DetectionMetrics:
    """
    Detection metrics collection

    Provides Prometheus-compatible metrics for:
    - Instruction decoding outcomes
    - Curve replay failures
    - RPC retries
    - Detected patterns and bot profit
    """

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        """Initialize metrics with custom registry or default"""
        self.registry = registry or REGISTRY
        self._initialize_metrics()

    def _initialize_metrics(self):
        """Initialize all Prometheus metrics"""

        # === DECODE METRICS ===
        self.instructions_decoded_total = Counter(
            "sandwich_scanner_instructions_decoded_total",
            "Pump instructions decoded into trade intents",
            ["side"],
            registry=self.registry,
        )

        self.instructions_skipped_total = Counter(
            "sandwich_scanner_instructions_skipped_total",
            "Instructions skipped by the decoder",
            ["reason"],
            registry=self.registry,
        )

        # === REPLAY METRICS ===
        self.trades_resolved_total = Counter(
            "sandwich_scanner_trades_resolved_total",
            "Trades replayed against the bonding curve",
            ["side", "adverse"],
            registry=self.registry,
        )

        self.trades_unresolved_total = Counter(
            "sandwich_scanner_trades_unresolved_total",
            "Trades that could not be applied to the bonding curve",
            ["reason"],
            registry=self.registry,
        )

        # === FETCH METRICS ===
        self.fetch_retries_total = Counter(
            "sandwich_scanner_fetch_retries_total",
            "RPC requests retried after a transient failure",
            ["error"],
            registry=self.registry,
        )

        # === DETECTION METRICS ===
        self.patterns_detected_total = Counter(
            "sandwich_scanner_patterns_detected_total",
            "Detected attack patterns",
            ["kind"],
            registry=self.registry,
        )

        self.bot_net_profit_sol = Histogram(
            "sandwich_scanner_bot_net_profit_sol",
            "Bot net profit per matched pattern in SOL",
            buckets=[-1, -0.1, -0.01, 0, 0.001, 0.01, 0.1, 1, 10],
            registry=self.registry,
        )

        self.bot_net_profit_total_sol = Gauge(
            "sandwich_scanner_bot_net_profit_total_sol",
            "Cumulative bot net profit across matched patterns in SOL",
            registry=self.registry,
        )

    def record_decoded(self, side: str):
        self.instructions_decoded_total.labels(side=side).inc()

    def record_skipped(self, reason: str):
        self.instructions_skipped_total.labels(reason=reason).inc()

    def record_resolved(self, side: str, adverse: bool):
        self.trades_resolved_total.labels(
            side=side, adverse=str(adverse).lower()
        ).inc()

    def record_unresolved(self, reason: str):
        self.trades_unresolved_total.labels(reason=reason).inc()

    def record_fetch_retry(self, error: str):
        self.fetch_retries_total.labels(error=error).inc()

    def record_pattern(self, kind: str, net_profit_sol: Optional[float] = None):
        """Record a detected pattern, with profit for matched ones"""
        self.patterns_detected_total.labels(kind=kind).inc()
        if net_profit_sol is not None:
            self.bot_net_profit_sol.observe(net_profit_sol)
            self.bot_net_profit_total_sol.inc(net_profit_sol)


_global_metrics: Optional[DetectionMetrics] = None


def get_metrics() -> DetectionMetrics:
    """Get or create global metrics instance"""
    global _global_metrics
    if _global_metrics is None:
        _global_metrics = DetectionMetrics()
    return _global_metrics


def initialize_metrics(registry: Optional[CollectorRegistry] = None) -> DetectionMetrics:
    """Initialize global metrics with custom registry"""
    global _global_metrics
    _global_metrics = DetectionMetrics(registry)
    return _global_metrics
