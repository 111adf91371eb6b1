"""
Pump.fun instruction decoder.

Turns a raw instruction into a TradeIntent. The payload is Anchor/borsh:

    discriminator[8] | amount: u64 LE | bound: u64 LE

buy(amount, max_sol_cost) asks for `amount` tokens paying at most
`max_sol_cost` lamports; sell(amount, min_sol_output) sells `amount` tokens for
at least `min_sol_output` lamports. Both are mapped onto the curve's input /
minimum-output view used by the rest of the pipeline.
"""

import struct
from typing import List, Optional, Tuple

from sandwich_scanner.exceptions import (
    DecodeError,
    MalformedInstructionError,
    UnknownVariantError,
)

from .constants import (
    ARGS_LEN,
    BUY_DISCRIMINATOR,
    DISCRIMINATOR_LEN,
    PUMP_PROGRAM_ID,
    SELL_DISCRIMINATOR,
)
from .types import RawInstruction, TradeIntent, TradeSide, TransactionRecord

_ARGS = struct.Struct("<QQ")

_VARIANTS = {
    BUY_DISCRIMINATOR: TradeSide.BUY,
    SELL_DISCRIMINATOR: TradeSide.SELL,
}


def _match_variant(data: bytes, offset: int) -> Optional[TradeSide]:
    return _VARIANTS.get(bytes(data[offset : offset + DISCRIMINATOR_LEN]))


def _build_intent(raw: RawInstruction, side: TradeSide, args: bytes) -> TradeIntent:
    first, second = _ARGS.unpack_from(args)
    if side is TradeSide.BUY:
        # first = tokens wanted, second = max_sol_cost
        amount, limit = second, first
    else:
        # first = tokens in, second = min_sol_output
        amount, limit = first, second
    return TradeIntent(
        side=side,
        amount=amount,
        limit=limit,
        signer=raw.signer,
        slot=raw.slot,
        signature=raw.signature,
        position=raw.position,
        index=raw.index,
    )


def decode_instruction(
    raw: RawInstruction, program_id: str = PUMP_PROGRAM_ID
) -> TradeIntent:
    """
    Decode a raw instruction into a trade intent.

    Args:
        raw: Instruction to decode
        program_id: Program whose buy/sell variants are recognized

    Returns:
        TradeIntent for a buy or sell

    Raises:
        UnknownVariantError: Not the target program, or not a buy/sell
        MalformedInstructionError: Payload shorter than its fixed-width fields
    """
    if raw.program_id != program_id:
        raise UnknownVariantError(
            f"Instruction targets {raw.program_id}, not {program_id}",
            program_id=raw.program_id,
            signature=raw.signature,
        )

    data = raw.data
    if len(data) < DISCRIMINATOR_LEN:
        raise MalformedInstructionError(
            f"Payload of {len(data)} bytes is shorter than the discriminator",
            program_id=raw.program_id,
            signature=raw.signature,
            details={"length": len(data)},
        )

    offset = 0
    side = _match_variant(data, 0)
    if side is None and len(data) >= DISCRIMINATOR_LEN + 1:
        # Some routers prefix the payload with a one-byte tag
        offset = 1
        side = _match_variant(data, 1)

    if side is None:
        raise UnknownVariantError(
            f"Unrecognized discriminator {bytes(data[:DISCRIMINATOR_LEN]).hex()}",
            program_id=raw.program_id,
            signature=raw.signature,
        )

    args = data[offset + DISCRIMINATOR_LEN :]
    if len(args) < ARGS_LEN:
        raise MalformedInstructionError(
            f"{side.badge} payload has {len(args)} argument bytes, need {ARGS_LEN}",
            program_id=raw.program_id,
            signature=raw.signature,
            details={"length": len(data), "offset": offset},
        )

    return _build_intent(raw, side, args)


def decode_transaction(
    record: TransactionRecord, program_id: str = PUMP_PROGRAM_ID
) -> Tuple[Optional[TradeIntent], List[DecodeError]]:
    """
    Find the pump trade in a transaction.

    Instructions are tried in order (top-level, then inner) and the first
    buy/sell wins; a transaction carries at most one trade.

    Returns:
        Tuple of (intent or None, decode errors of the instructions skipped
        before the trade was found)
    """
    skipped: List[DecodeError] = []
    for raw in record.instructions:
        try:
            return decode_instruction(raw, program_id), skipped
        except DecodeError as e:
            skipped.append(e)
    return None, skipped
