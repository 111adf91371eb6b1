"""
Core data types for pump.fun trade analysis.
"""

from dataclasses import dataclass, field, replace
from decimal import Decimal
from enum import Enum
from typing import Optional, Tuple

OrderKey = Tuple[int, int, int]


class TradeSide(Enum):
    """Closed set of trade directions against the bonding curve."""

    BUY = "buy"
    SELL = "sell"

    @property
    def badge(self) -> str:
        return self.value.upper()


@dataclass(frozen=True)
class RawInstruction:
    """
    A single instruction as retrieved from the chain.

    Attributes:
        program_id: Base58 program address the instruction targets
        accounts: Ordered base58 account addresses
        data: Opaque payload bytes
        slot: Slot of the owning transaction
        signer: Fee payer of the owning transaction
        signature: Owning transaction signature
        position: Order of the owning transaction within its slot
        index: Order of the instruction within its transaction (inner
            instructions follow the top-level ones)
    """

    program_id: str
    accounts: Tuple[str, ...]
    data: bytes
    slot: int
    signer: str
    signature: str = ""
    position: int = 0
    index: int = 0

    @property
    def order_key(self) -> OrderKey:
        return (self.slot, self.position, self.index)


@dataclass(frozen=True)
class TransactionRecord:
    """
    A retrieved transaction reduced to what the decoder consumes.

    Attributes:
        signature: Transaction signature
        slot: Slot the transaction landed in
        signer: Fee payer
        position: Order within the slot (ascending = earlier)
        instructions: Top-level then inner instructions, in order
        sol_change: Observed lamport delta of the signer, if known
        token_change: Observed token delta of the signer for the mint, if known
    """

    signature: str
    slot: int
    signer: str
    position: int = 0
    instructions: Tuple[RawInstruction, ...] = ()
    sol_change: Optional[int] = None
    token_change: Optional[int] = None


@dataclass(frozen=True)
class TradeIntent:
    """
    What a transaction asked the bonding curve to do.

    Attributes:
        side: BUY or SELL
        amount: Input amount (lamports for BUY, token base units for SELL)
        limit: Minimum output (tokens for BUY, lamports for SELL)
        signer: Trader address
        slot: Slot of the transaction
        signature: Transaction signature
        position: Order of the transaction within its slot
        index: Instruction index within the transaction
    """

    side: TradeSide
    amount: int
    limit: int
    signer: str
    slot: int
    signature: str = ""
    position: int = 0
    index: int = 0

    @property
    def order_key(self) -> OrderKey:
        return (self.slot, self.position, self.index)


@dataclass
class CurveState:
    """
    Bonding curve reserves. Mutable, owned by exactly one replay at a time.

    Attributes:
        virtual_sol: Virtual SOL reserve (lamports)
        virtual_token: Virtual token reserve (base units)
        real_sol: Real SOL held by the curve (lamports)
        real_token: Real tokens held by the curve (base units)
        fee_bps: Fee charged on the input side, in basis points
    """

    virtual_sol: int
    virtual_token: int
    real_sol: int
    real_token: int
    fee_bps: int

    @property
    def k(self) -> int:
        return self.virtual_sol * self.virtual_token

    @property
    def price(self) -> Decimal:
        """Spot price in lamports per token base unit."""
        if self.virtual_token == 0:
            return Decimal("0")
        return Decimal(self.virtual_sol) / Decimal(self.virtual_token)

    def copy(self) -> "CurveState":
        return replace(self)


@dataclass(frozen=True)
class ExecutedTrade:
    """
    Outcome of applying a trade to the curve.

    Attributes:
        side: BUY or SELL
        sol_amount: Lamports spent (BUY, fee included) or received (SELL)
        token_amount: Tokens received (BUY) or sold (SELL)
        fee: Fee charged on the input side (lamports for BUY, tokens for SELL)
        slot: Slot of the trade
        signer: Trader address
        signature: Transaction signature
    """

    side: TradeSide
    sol_amount: int
    token_amount: int
    fee: int
    slot: int = 0
    signer: str = ""
    signature: str = ""

    @property
    def price(self) -> Decimal:
        """Realized price in lamports per token base unit."""
        if self.token_amount == 0:
            return Decimal("0")
        return Decimal(self.sol_amount) / Decimal(self.token_amount)

    @property
    def output(self) -> int:
        """What the trader received: tokens for BUY, lamports for SELL."""
        return self.token_amount if self.side is TradeSide.BUY else self.sol_amount


@dataclass(frozen=True)
class ResolvedTrade:
    """
    A trade replayed against the curve and compared with its baseline.

    Attributes:
        intent: Decoded intent
        executed: Outcome on the replayed curve
        state_before: Curve snapshot immediately before this trade
        baseline_out: Output expected without interference (None when the
            limit-margin policy was used)
        shortfall: Baseline (or margin floor) minus actual output; negative
            means favorable execution
        slippage_pct: Shortfall as a percent of the baseline
        adverse: True when execution was worse than the baseline policy allows
    """

    intent: TradeIntent
    executed: ExecutedTrade
    state_before: CurveState
    baseline_out: Optional[int]
    shortfall: int
    slippage_pct: Decimal
    adverse: bool

    @property
    def side(self) -> TradeSide:
        return self.intent.side

    @property
    def signer(self) -> str:
        return self.intent.signer

    @property
    def slot(self) -> int:
        return self.intent.slot

    @property
    def signature(self) -> str:
        return self.intent.signature

    @property
    def order_key(self) -> OrderKey:
        return self.intent.order_key

    @property
    def sol_size(self) -> int:
        """Trade size in lamports, whichever side SOL is on."""
        return self.executed.sol_amount


@dataclass(frozen=True)
class UnresolvedTrade:
    """A trade the curve could not apply; excluded from detection."""

    intent: TradeIntent
    reason: str
    error_type: str = field(default="CurveError")
