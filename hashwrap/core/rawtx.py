"""Reading what a serialized transaction spends."""

from __future__ import annotations

from typing import List

from bsv import Transaction

from hashwrap.core.errors import MalformedTransaction

COINBASE_PREV = "00" * 32


def parse_transaction(raw_tx: str) -> Transaction:
    """Deserialize hex ``raw_tx``, rejecting anything that does not re-serialize to the same bytes."""
    try:
        raw_bytes = bytes.fromhex(raw_tx)
    except ValueError as exc:
        raise MalformedTransaction("Raw transaction is not hex") from exc

    try:
        tx = Transaction.from_hex(raw_tx)
    except Exception as exc:
        raise MalformedTransaction(f"Could not deserialize transaction: {exc}") from exc
    if tx is None:
        raise MalformedTransaction(f"Could not deserialize transaction ({len(raw_bytes)} bytes)")
    if tx.serialize() != raw_bytes:
        raise MalformedTransaction(f"Transaction does not re-serialize to the {len(raw_bytes)} bytes given")
    return tx


def extract_input_txids(raw_tx: str) -> List[str]:
    """
    Return the previous-transaction id of every input, in input order.

    Duplicates are kept (a transaction can spend several outputs of one
    ancestor). Coinbase inputs are skipped since they reference nothing.
    """
    tx = parse_transaction(raw_tx)
    return [i.source_txid for i in tx.inputs if i.source_txid != COINBASE_PREV]


def unique_in_order(txids: List[str]) -> List[str]:
    return list(dict.fromkeys(txids))
