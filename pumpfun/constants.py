"""
Pump.fun program constants.

Reserve and fee values must match the on-chain program exactly; amounts are in
lamports (SOL side) and token base units (6 decimals).
"""

from sandwich_scanner.utils import LAMPORTS_PER_SOL, TOKEN_UNIT

PUMP_PROGRAM_ID = "6EF8rrecthR5Dkzon8Nwu78hRvfCKubJ14M5uBEwF6P"

# Anchor discriminators: sha256("global:buy")[:8] / sha256("global:sell")[:8]
BUY_DISCRIMINATOR = bytes([102, 6, 61, 18, 1, 218, 235, 234])
SELL_DISCRIMINATOR = bytes([51, 230, 133, 164, 1, 127, 131, 173])

DISCRIMINATOR_LEN = 8
ARGS_LEN = 16  # two little-endian u64 fields

INITIAL_VIRTUAL_SOL = 30 * LAMPORTS_PER_SOL
INITIAL_VIRTUAL_TOKEN = 1_073_000_000 * TOKEN_UNIT
INITIAL_REAL_SOL = 0
INITIAL_REAL_TOKEN = 793_100_000 * TOKEN_UNIT
FEE_BPS = 30
BPS_DENOMINATOR = 10_000

# Base fee of a single-signature transaction
GAS_EST_PER_TX = 5_000
