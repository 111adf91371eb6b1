"""
Solana JSON-RPC transaction source for a pump.fun mint.

Lists the mint's signatures (newest first, paginated with the `before`
cursor), fetches the transactions concurrently and reduces each one to a
TransactionRecord the decoder can consume.

Runs the synchronous HTTP calls in a thread pool to avoid blocking the event
loop. Includes exponential backoff for timeouts and rate limit errors.
"""

import asyncio
from collections import OrderedDict
from typing import Any, Dict, List, Optional

import base58
import requests

from sandwich_scanner.config_loader import FetchConfig
from sandwich_scanner.exceptions import (
    FetchError,
    FetchTimeoutError,
    NotFoundError,
    RateLimitedError,
)
from sandwich_scanner.metrics import DetectionMetrics
from sandwich_scanner.utils import get_logger, short_signature

from .types import RawInstruction, TransactionRecord

logger = get_logger(__name__)

PUBKEY_LEN = 32
RATE_LIMIT_CODE = -32005


def validate_mint(mint: str) -> str:
    """
    Check that `mint` is a base58 32-byte public key.

    Raises:
        NotFoundError: If the address cannot be a mint
    """
    mint = (mint or "").strip()
    try:
        raw = base58.b58decode(mint)
    except ValueError as e:
        raise NotFoundError(f"Invalid mint address '{mint}': {e}") from e
    if len(raw) != PUBKEY_LEN:
        raise NotFoundError(
            f"Invalid mint address '{mint}': decodes to {len(raw)} bytes, expected {PUBKEY_LEN}"
        )
    return mint


def _token_amount(balances: List[Dict[str, Any]], owner: str, mint: str) -> int:
    total = 0
    for balance in balances:
        if balance.get("owner") == owner and balance.get("mint") == mint:
            total += int(balance.get("uiTokenAmount", {}).get("amount", "0"))
    return total


def _build_instruction(
    ix: Dict[str, Any],
    account_keys: List[str],
    slot: int,
    signer: str,
    signature: str,
    position: int,
    index: int,
) -> Optional[RawInstruction]:
    try:
        program_id = account_keys[ix["programIdIndex"]]
        accounts = tuple(account_keys[i] for i in ix.get("accounts", []))
        data = base58.b58decode(ix.get("data", ""))
    except (IndexError, KeyError, ValueError) as e:
        logger.debug(f"Skipping unreadable instruction {index} of {short_signature(signature)}: {e}")
        return None
    return RawInstruction(
        program_id=program_id,
        accounts=accounts,
        data=data,
        slot=slot,
        signer=signer,
        signature=signature,
        position=position,
        index=index,
    )


def parse_transaction(
    tx: Optional[Dict[str, Any]], mint: str, position: int = 0
) -> Optional[TransactionRecord]:
    """
    Reduce a `getTransaction` (encoding=json) result to a TransactionRecord.

    Args:
        tx: RPC result, or None when the node does not have the transaction
        mint: Token mint used to pick the signer's token balance
        position: Order of the transaction within its slot

    Returns:
        TransactionRecord, or None for missing or failed transactions
    """
    if not tx:
        return None
    meta = tx.get("meta") or {}
    if meta.get("err") is not None:
        return None

    transaction = tx["transaction"]
    message = transaction["message"]
    signature = transaction["signatures"][0]
    slot = tx["slot"]

    account_keys = list(message["accountKeys"])
    loaded = meta.get("loadedAddresses") or {}
    account_keys.extend(loaded.get("writable", []))
    account_keys.extend(loaded.get("readonly", []))
    signer = account_keys[0]

    instructions: List[RawInstruction] = []
    ordered = list(message.get("instructions", []))
    for group in meta.get("innerInstructions") or []:
        ordered.extend(group.get("instructions", []))
    for index, ix in enumerate(ordered):
        raw = _build_instruction(ix, account_keys, slot, signer, signature, position, index)
        if raw is not None:
            instructions.append(raw)

    sol_change = None
    pre_balances = meta.get("preBalances")
    post_balances = meta.get("postBalances")
    if pre_balances and post_balances:
        sol_change = post_balances[0] - pre_balances[0]

    token_change = None
    if "preTokenBalances" in meta or "postTokenBalances" in meta:
        token_change = _token_amount(
            meta.get("postTokenBalances") or [], signer, mint
        ) - _token_amount(meta.get("preTokenBalances") or [], signer, mint)

    return TransactionRecord(
        signature=signature,
        slot=slot,
        signer=signer,
        position=position,
        instructions=tuple(instructions),
        sol_change=sol_change,
        token_change=token_change,
    )


def intra_slot_positions(entries: List[Dict[str, Any]]) -> Dict[str, int]:
    """
    Map signatures to their order within a slot.

    Signature listings are newest first, so each slot's entries are reversed
    to give ascending execution order.
    """
    by_slot: "OrderedDict[int, List[str]]" = OrderedDict()
    for entry in entries:
        by_slot.setdefault(entry["slot"], []).append(entry["signature"])
    positions = {}
    for signatures in by_slot.values():
        for position, signature in enumerate(reversed(signatures)):
            positions[signature] = position
    return positions


class SolanaRpcSource:
    """
    Transaction source backed by a Solana JSON-RPC endpoint.

    Args:
        config: Endpoint, pagination, concurrency and retry settings
        metrics: Optional metrics sink for retries
        session: Optional requests session (injected in tests)
    """

    def __init__(
        self,
        config: FetchConfig,
        metrics: Optional[DetectionMetrics] = None,
        session: Optional[requests.Session] = None,
    ):
        self.config = config
        self.metrics = metrics
        self.session = session or requests.Session()
        self._request_id = 0

    def _post(self, method: str, params: List[Any]) -> Any:
        """Single JSON-RPC call, mapping transport and RPC failures to FetchErrors."""
        self._request_id += 1
        payload = {
            "jsonrpc": "2.0",
            "id": self._request_id,
            "method": method,
            "params": params,
        }
        endpoint = self.config.rpc_url.split("?")[0]

        try:
            response = self.session.post(
                self.config.rpc_url, json=payload, timeout=self.config.timeout_sec
            )
        except requests.Timeout as e:
            raise FetchTimeoutError(
                f"{method} timed out after {self.config.timeout_sec}s", endpoint=endpoint
            ) from e
        except requests.RequestException as e:
            raise FetchError(f"{method} failed: {e}", endpoint=endpoint) from e

        if response.status_code == 429:
            raise RateLimitedError(
                f"{method} rate limited (HTTP 429)", endpoint=endpoint, status_code=429
            )
        if response.status_code >= 400:
            raise FetchError(
                f"{method} failed with HTTP {response.status_code}",
                endpoint=endpoint,
                status_code=response.status_code,
            )

        try:
            body = response.json()
        except ValueError as e:
            raise FetchError(f"{method} returned invalid JSON", endpoint=endpoint) from e

        error = body.get("error")
        if error:
            code = error.get("code")
            message = str(error.get("message", ""))
            details = {"code": code, "method": method}
            if code == RATE_LIMIT_CODE or "rate limit" in message.lower():
                raise RateLimitedError(
                    f"{method} rate limited: {message}", endpoint=endpoint, details=details
                )
            if "invalid param" in message.lower():
                raise NotFoundError(
                    f"{method} rejected its parameters: {message}",
                    endpoint=endpoint,
                    details=details,
                )
            raise FetchError(
                f"{method} RPC error {code}: {message}", endpoint=endpoint, details=details
            )

        return body.get("result")

    async def _call(self, method: str, params: List[Any]) -> Any:
        """JSON-RPC call in the default executor with exponential backoff."""
        max_retries = self.config.max_retries
        for attempt in range(max_retries + 1):
            try:
                loop = asyncio.get_running_loop()
                return await loop.run_in_executor(None, self._post, method, params)
            except FetchError as e:
                if not e.retryable or attempt == max_retries:
                    raise
                wait_time = self.config.backoff_base_sec * (2**attempt)
                if self.metrics is not None:
                    self.metrics.record_fetch_retry(type(e).__name__)
                logger.warning(
                    f"⚠ {e} (attempt {attempt + 1}/{max_retries + 1}), retrying in {wait_time:.1f}s"
                )
                await asyncio.sleep(wait_time)

        # Unreachable: the last attempt either returns or raises
        raise FetchError(f"{method} failed after {max_retries} retries")

    async def fetch_signatures(self, mint: str) -> List[Dict[str, Any]]:
        """
        List up to `signature_limit` signatures for the mint, newest first.

        Raises:
            NotFoundError: If the mint has no transactions
        """
        limit = self.config.signature_limit
        collected: List[Dict[str, Any]] = []
        before = None

        while len(collected) < limit:
            page_size = min(self.config.page_size, limit - len(collected))
            options: Dict[str, Any] = {"limit": page_size}
            if before is not None:
                options["before"] = before
            page = await self._call("getSignaturesForAddress", [mint, options])
            if not page:
                break
            collected.extend(page)
            before = page[-1]["signature"]
            if len(page) < page_size:
                break

        if not collected:
            raise NotFoundError(f"No transactions found for mint {mint}")

        logger.info(f"Found {len(collected)} signatures for {short_signature(mint)}")
        return collected

    async def fetch_transactions_async(self, mint: str) -> List[TransactionRecord]:
        """
        Fetch and parse the mint's recent transactions.

        Returns:
            Successful transactions in (slot, position) order

        Raises:
            NotFoundError: Invalid mint or no transactions
            FetchError: Any request that still fails after retries
        """
        mint = validate_mint(mint)
        entries = [e for e in await self.fetch_signatures(mint) if e.get("err") is None]
        positions = intra_slot_positions(entries)

        # Create semaphore to limit concurrent requests
        semaphore = asyncio.Semaphore(self.config.concurrency)

        async def fetch_one(signature: str) -> Optional[TransactionRecord]:
            async with semaphore:
                tx = await self._call(
                    "getTransaction",
                    [
                        signature,
                        {"encoding": "json", "maxSupportedTransactionVersion": 0},
                    ],
                )
            return parse_transaction(tx, mint, positions[signature])

        results = await asyncio.gather(
            *[fetch_one(e["signature"]) for e in entries], return_exceptions=True
        )

        records: List[TransactionRecord] = []
        for result in results:
            if isinstance(result, BaseException):
                raise result
            if result is not None:
                records.append(result)

        records.sort(key=lambda r: (r.slot, r.position))
        logger.info(
            f"Fetched {len(records)}/{len(entries)} successful transactions "
            f"for {short_signature(mint)}"
        )
        return records

    def fetch_transactions(self, mint: str) -> List[TransactionRecord]:
        """Synchronous wrapper around fetch_transactions_async."""
        return asyncio.run(self.fetch_transactions_async(mint))
