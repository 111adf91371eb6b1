"""
Tests for the Solana RPC transaction source (HTTP layer mocked).
"""

import asyncio
import struct
from dataclasses import replace
from unittest.mock import Mock

import base58
import pytest
import requests
from prometheus_client import generate_latest

from pumpfun.constants import BUY_DISCRIMINATOR, PUMP_PROGRAM_ID
from pumpfun.decoder import decode_transaction
from pumpfun.source import (
    SolanaRpcSource,
    intra_slot_positions,
    parse_transaction,
    validate_mint,
)
from pumpfun.types import TradeSide
from sandwich_scanner.exceptions import (
    FetchError,
    FetchTimeoutError,
    NotFoundError,
    RateLimitedError,
)

MINT = "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v"
SIGNER = "9WzDXwBbmkg8ZTbNMqUxvQRAyrZzDsGYdLVL9zYtAWWM"
COMPUTE_BUDGET = "ComputeBudget111111111111111111111111111111"


def rpc_response(result=None, error=None, status_code=200):
    body = {"jsonrpc": "2.0", "id": 1}
    if error is not None:
        body["error"] = error
    else:
        body["result"] = result
    response = Mock()
    response.status_code = status_code
    response.json.return_value = body
    return response


def make_tx(signature, slot, err=None, sol_delta=-100_005_000, token_delta=3_000_000):
    payload = BUY_DISCRIMINATOR + struct.pack("<QQ", 3_000_000, 100_000_000)
    return {
        "slot": slot,
        "transaction": {
            "signatures": [signature],
            "message": {
                "accountKeys": [SIGNER, MINT, COMPUTE_BUDGET, PUMP_PROGRAM_ID],
                "instructions": [
                    {"programIdIndex": 2, "accounts": [], "data": base58.b58encode(b"\x02\x01").decode()},
                ],
            },
        },
        "meta": {
            "err": err,
            "preBalances": [1_000_000_000, 0, 1, 1],
            "postBalances": [1_000_000_000 + sol_delta, 0, 1, 1],
            "preTokenBalances": [],
            "postTokenBalances": [
                {
                    "accountIndex": 1,
                    "mint": MINT,
                    "owner": SIGNER,
                    "uiTokenAmount": {"amount": str(token_delta), "decimals": 6},
                }
            ],
            "innerInstructions": [
                {
                    "index": 0,
                    "instructions": [
                        {
                            "programIdIndex": 3,
                            "accounts": [1, 0],
                            "data": base58.b58encode(payload).decode(),
                        }
                    ],
                }
            ],
        },
    }


class TestValidateMint:
    def test_valid(self):
        assert validate_mint(f" {PUMP_PROGRAM_ID} ") == PUMP_PROGRAM_ID

    @pytest.mark.parametrize("mint", ["", "abc", "0OIl0OIl0OIl", "not a mint at all!"])
    def test_invalid(self, mint):
        with pytest.raises(NotFoundError):
            validate_mint(mint)


class TestParseTransaction:
    def test_parses_signer_balances_and_instructions(self):
        record = parse_transaction(make_tx("sigA", 300), MINT, position=2)

        assert record.signature == "sigA"
        assert record.slot == 300
        assert record.signer == SIGNER
        assert record.position == 2
        assert record.sol_change == -100_005_000
        assert record.token_change == 3_000_000
        assert [ix.index for ix in record.instructions] == [0, 1]
        assert record.instructions[1].program_id == PUMP_PROGRAM_ID
        assert record.instructions[1].accounts == (MINT, SIGNER)

    def test_inner_pump_instruction_is_decoded(self):
        record = parse_transaction(make_tx("sigA", 300), MINT)
        intent, skipped = decode_transaction(record)

        assert intent.side is TradeSide.BUY
        assert intent.amount == 100_000_000
        assert intent.limit == 3_000_000
        assert intent.index == 1
        assert len(skipped) == 1

    def test_failed_transaction_is_skipped(self):
        assert parse_transaction(make_tx("sigA", 300, err={"InstructionError": [0, "Custom"]}), MINT) is None

    def test_missing_transaction(self):
        assert parse_transaction(None, MINT) is None

    def test_other_owner_token_balance_ignored(self):
        tx = make_tx("sigA", 300)
        tx["meta"]["postTokenBalances"][0]["owner"] = "someone-else"
        assert parse_transaction(tx, MINT).token_change == 0


def test_intra_slot_positions_reverse_newest_first():
    entries = [
        {"signature": "c", "slot": 11},
        {"signature": "b", "slot": 10},
        {"signature": "a", "slot": 10},
    ]
    assert intra_slot_positions(entries) == {"c": 0, "a": 0, "b": 1}


class TestRpcErrors:
    def test_http_429_is_rate_limited(self, fetch_config):
        session = Mock()
        session.post.return_value = rpc_response(status_code=429)
        source = SolanaRpcSource(fetch_config, session=session)

        with pytest.raises(RateLimitedError):
            source._post("getSlot", [])

    def test_rpc_rate_limit_code(self, fetch_config):
        session = Mock()
        session.post.return_value = rpc_response(error={"code": -32005, "message": "busy"})
        source = SolanaRpcSource(fetch_config, session=session)

        with pytest.raises(RateLimitedError):
            source._post("getSlot", [])

    def test_invalid_param_is_not_found(self, fetch_config):
        session = Mock()
        session.post.return_value = rpc_response(
            error={"code": -32602, "message": "Invalid param: WrongSize"}
        )
        source = SolanaRpcSource(fetch_config, session=session)

        with pytest.raises(NotFoundError):
            source._post("getSignaturesForAddress", [MINT])

    def test_timeout(self, fetch_config):
        session = Mock()
        session.post.side_effect = requests.Timeout("slow")
        source = SolanaRpcSource(fetch_config, session=session)

        with pytest.raises(FetchTimeoutError):
            source._post("getSlot", [])

    def test_other_rpc_error_is_not_retryable(self, fetch_config):
        session = Mock()
        session.post.return_value = rpc_response(error={"code": -32000, "message": "boom"})
        source = SolanaRpcSource(fetch_config, session=session)

        with pytest.raises(FetchError) as exc_info:
            asyncio.run(source._call("getSlot", []))
        assert not exc_info.value.retryable
        assert session.post.call_count == 1


class TestRetries:
    def test_retries_then_succeeds(self, fetch_config, metrics):
        session = Mock()
        session.post.side_effect = [
            requests.Timeout("slow"),
            rpc_response(status_code=429),
            rpc_response(result=42),
        ]
        source = SolanaRpcSource(fetch_config, metrics, session=session)

        assert asyncio.run(source._call("getSlot", [])) == 42
        assert session.post.call_count == 3

        output = generate_latest(metrics.registry).decode("utf-8")
        assert 'error="FetchTimeoutError"' in output
        assert 'error="RateLimitedError"' in output

    def test_gives_up_after_max_retries(self, fetch_config):
        session = Mock()
        session.post.side_effect = requests.Timeout("slow")
        source = SolanaRpcSource(fetch_config, session=session)

        with pytest.raises(FetchTimeoutError):
            asyncio.run(source._call("getSlot", []))
        assert session.post.call_count == fetch_config.max_retries + 1


def route(responses):
    """Session.post side effect dispatching on the JSON-RPC method."""

    def post(url, json=None, timeout=None):
        method = json["method"]
        if method == "getSignaturesForAddress":
            return rpc_response(result=responses["signatures"].pop(0))
        signature = json["params"][0]
        return rpc_response(result=responses["transactions"][signature])

    return post


class TestFetchTransactions:
    def test_paginates_with_before_cursor(self, fetch_config):
        config = replace(fetch_config, signature_limit=3, page_size=2)
        session = Mock()
        session.post.side_effect = [
            rpc_response(result=[{"signature": "s3", "slot": 3}, {"signature": "s2", "slot": 2}]),
            rpc_response(result=[{"signature": "s1", "slot": 1}]),
        ]
        source = SolanaRpcSource(config, session=session)

        entries = asyncio.run(source.fetch_signatures(MINT))

        assert [e["signature"] for e in entries] == ["s3", "s2", "s1"]
        second_call = session.post.call_args_list[1]
        assert second_call.kwargs["json"]["params"][1] == {"limit": 1, "before": "s2"}

    def test_no_signatures_is_not_found(self, fetch_config):
        session = Mock()
        session.post.return_value = rpc_response(result=[])
        source = SolanaRpcSource(fetch_config, session=session)

        with pytest.raises(NotFoundError, match="No transactions"):
            source.fetch_transactions(MINT)

    def test_invalid_mint_never_hits_rpc(self, fetch_config):
        session = Mock()
        source = SolanaRpcSource(fetch_config, session=session)

        with pytest.raises(NotFoundError):
            source.fetch_transactions("bogus")
        session.post.assert_not_called()

    def test_records_ordered_and_failures_dropped(self, fetch_config):
        session = Mock()
        session.post.side_effect = route(
            {
                "signatures": [
                    [
                        {"signature": "late", "slot": 501, "err": None},
                        {"signature": "second", "slot": 500, "err": None},
                        {"signature": "failed", "slot": 500, "err": {"x": 1}},
                        {"signature": "first", "slot": 500, "err": None},
                    ]
                ],
                "transactions": {
                    "late": make_tx("late", 501),
                    "second": make_tx("second", 500),
                    "first": make_tx("first", 500),
                    "failed": make_tx("failed", 500, err={"x": 1}),
                },
            }
        )
        source = SolanaRpcSource(fetch_config, session=session)

        records = source.fetch_transactions(MINT)

        assert [(r.signature, r.slot, r.position) for r in records] == [
            ("first", 500, 0),
            ("second", 500, 1),
            ("late", 501, 0),
        ]

    def test_fatal_fetch_error_propagates(self, fetch_config):
        def post(url, json=None, timeout=None):
            if json["method"] == "getSignaturesForAddress":
                return rpc_response(result=[{"signature": "s1", "slot": 1, "err": None}])
            return rpc_response(status_code=500)

        session = Mock()
        session.post.side_effect = post
        source = SolanaRpcSource(fetch_config, session=session)

        with pytest.raises(FetchError) as exc_info:
            source.fetch_transactions(MINT)
        assert exc_info.value.status_code == 500


def test_calls_run_on_each_fresh_event_loop(fetch_config):
    session = Mock()
    session.post.return_value = rpc_response(result=7)
    source = SolanaRpcSource(fetch_config, session=session)

    async def both():
        return await asyncio.gather(source._call("getSlot", []), source._call("getSlot", []))

    assert asyncio.run(source._call("getSlot", [])) == 7
    assert asyncio.run(both()) == [7, 7]
    assert session.post.call_count == 3
