"""Extraction of treasury fee transfers from parsed transactions.

This module turns one page of upstream transactions into FeeTransfer
records, applying the cursor, failure, and recipient filters.

Helius reports ``tokenTransfers[].tokenAmount`` in UI units. The
smallest-unit amount is recovered by scaling it with the mint's decimals
from ``accountData[].tokenBalanceChanges[].rawTokenAmount``. A transfer
whose exact amount cannot be recovered aborts the page rather than being
dropped, so the ledger cursor never moves past it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any, Mapping, Sequence

from core.errors import FeeLedgerAmountError
from core.logging_config import get_logger
from core.types import FeeTransfer

_LOGGER = get_logger(__name__)


@dataclass
class ParseStats:
    """Skip counters for one page."""

    duplicate: int = 0
    failed: int = 0
    old: int = 0
    no_transfers: int = 0
    not_recipient: int = 0
    missing_mint: int = 0
    found: int = 0

    def as_fields(self) -> dict[str, int]:
        return {
            "skipped_duplicate": self.duplicate,
            "skipped_failed": self.failed,
            "skipped_old": self.old,
            "skipped_no_transfers": self.no_transfers,
            "skipped_not_recipient": self.not_recipient,
            "skipped_missing_mint": self.missing_mint,
            "transfers_found": self.found,
        }


@dataclass
class ParsedPage:
    """Transfers extracted from one page plus skip counters."""

    transfers: list[FeeTransfer] = field(default_factory=list)
    stats: ParseStats = field(default_factory=ParseStats)


def extract_fee_transfers(
    transactions: Sequence[Mapping[str, Any]],
    recipient_address: str,
    since_block_time: int | None,
    seen_signatures: set[str],
) -> ParsedPage:
    """Extract transfers into the recipient from one history page.

    Args:
        transactions: Parsed transactions from the upstream API.
        recipient_address: Treasury address receiving fees.
        since_block_time: Exclusive lower bound on block time; None keeps all.
        seen_signatures: Signatures already processed in this run; updated.

    Returns:
        Extracted transfers and skip counters.

    Raises:
        FeeLedgerAmountError: If a transfer into the recipient has no exact
            smallest-unit amount.
    """
    page = ParsedPage()
    stats = page.stats
    for transaction in transactions:
        signature = str(transaction.get("signature") or "")
        if not signature or signature in seen_signatures:
            stats.duplicate += 1
            continue
        if transaction.get("transactionError"):
            stats.failed += 1
            continue
        block_time = transaction_block_time(transaction)
        if block_time is None or (since_block_time is not None and block_time <= since_block_time):
            stats.old += 1
            continue
        token_transfers = transaction.get("tokenTransfers") or []
        if not token_transfers:
            stats.no_transfers += 1
            continue
        matched = False
        mint_decimals = token_decimals(transaction)
        # One ledger row per (signature, mint); repeated legs of a mint are summed.
        by_mint: dict[str, FeeTransfer] = {}
        for token_transfer in token_transfers:
            if token_transfer.get("toUserAccount") != recipient_address:
                continue
            matched = True
            mint = token_transfer.get("mint")
            if not mint:
                stats.missing_mint += 1
                _LOGGER.warning("fee_transfer_mint_missing", signature=signature)
                continue
            mint = str(mint)
            amount_raw = raw_transfer_amount(token_transfer, mint_decimals.get(mint))
            if amount_raw is None:
                raise FeeLedgerAmountError(
                    f"Fee transfer of {mint} in transaction {signature} has no exact "
                    f"smallest-unit amount (tokenAmount={token_transfer.get('tokenAmount')!r}, "
                    f"decimals={mint_decimals.get(mint)!r}). Nothing from this run was stored; "
                    "inspect the transaction payload before rerunning ingestion."
                )
            previous = by_mint.get(mint)
            if previous is not None:
                amount_raw = str(int(previous.amount_raw) + int(amount_raw))
            by_mint[mint] = FeeTransfer(
                signature=signature,
                mint=mint,
                amount_raw=amount_raw,
                block_time=block_time,
                source=token_transfer.get("fromUserAccount"),
                raw_data=_audit_payload(transaction, token_transfer),
            )
        page.transfers.extend(by_mint.values())
        stats.found += len(by_mint)
        if not matched:
            stats.not_recipient += 1
        seen_signatures.add(signature)
    return page


def transaction_block_time(transaction: Mapping[str, Any]) -> int | None:
    """Return a transaction's block time in seconds when present."""
    timestamp = transaction.get("timestamp")
    if timestamp is None:
        return None
    try:
        return int(timestamp)
    except (TypeError, ValueError):
        return None


def token_decimals(transaction: Mapping[str, Any]) -> dict[str, int]:
    """Collect mint decimals from a transaction's token balance changes."""
    decimals_by_mint: dict[str, int] = {}
    for account in transaction.get("accountData") or []:
        for change in account.get("tokenBalanceChanges") or []:
            raw_token_amount = change.get("rawTokenAmount") or {}
            decimals = raw_token_amount.get("decimals")
            if not change.get("mint") or isinstance(decimals, bool):
                continue
            if isinstance(decimals, int) and decimals >= 0:
                decimals_by_mint.setdefault(str(change["mint"]), decimals)
    return decimals_by_mint


def raw_transfer_amount(token_transfer: Mapping[str, Any], decimals: int | None) -> str | None:
    """Return a transfer leg's amount in the mint's smallest unit.

    An explicit ``rawTokenAmount.tokenAmount`` on the leg wins. Otherwise
    the UI ``tokenAmount`` is scaled by ``decimals``; without decimals, or
    when scaling leaves a fraction, the amount is unknown and None is
    returned.
    """
    raw_token_amount = token_transfer.get("rawTokenAmount")
    if isinstance(raw_token_amount, Mapping) and raw_token_amount.get("tokenAmount") is not None:
        return _integral_string(_to_decimal(raw_token_amount["tokenAmount"]))
    ui_amount = _to_decimal(token_transfer.get("tokenAmount"))
    if ui_amount is None or decimals is None:
        return None
    return _integral_string(ui_amount.scaleb(decimals))


def _to_decimal(value: object) -> Decimal | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        amount = Decimal(str(value))
    except InvalidOperation:
        return None
    return amount if amount.is_finite() else None


def _integral_string(amount: Decimal | None) -> str | None:
    if amount is None or amount != amount.to_integral_value() or amount < 0:
        return None
    return str(int(amount))


def _audit_payload(
    transaction: Mapping[str, Any],
    token_transfer: Mapping[str, Any],
) -> dict[str, Any]:
    return {
        "transaction": {
            "signature": transaction.get("signature"),
            "description": transaction.get("description"),
            "type": transaction.get("type"),
            "source": transaction.get("source"),
            "fee": transaction.get("fee"),
            "feePayer": transaction.get("feePayer"),
            "slot": transaction.get("slot"),
            "timestamp": transaction.get("timestamp"),
        },
        "matchedTransfer": dict(token_transfer),
    }
