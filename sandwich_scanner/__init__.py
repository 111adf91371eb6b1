"""
Pump.fun Sandwich Scanner.

Detects and quantifies sandwich attacks around a single pump.fun token by
replaying its trades against the bonding curve, and simulates the attack a
bot would run against a hypothetical victim buy.

Entry points:
    sandwich_scanner.pipeline.analyze_records  - live detection
    sandwich_scanner.simulation.run_simulation - hypothetical attack
"""

PROJECT_NAME = "pumpfun-sandwich-scanner"

from sandwich_scanner.version import __version__

__all__ = ["PROJECT_NAME", "__version__"]
