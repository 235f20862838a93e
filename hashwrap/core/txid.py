from __future__ import annotations

import re

from bsv import hash256

from hashwrap.core.errors import InvalidIdentifier

TXID_RE = re.compile(r"[0-9a-f]{64}")


def validate_txid(txid: object) -> str:
    """Return ``txid`` unchanged if it is 64 lowercase hex characters."""
    if not txid:
        raise InvalidIdentifier("TXID is missing")
    if not isinstance(txid, str) or not TXID_RE.fullmatch(txid):
        raise InvalidIdentifier(f"Invalid TXID: {txid!r}")
    return txid


def txid_of(raw_tx: bytes) -> str:
    # Display order is the reverse of the internal hash bytes.
    return hash256(raw_tx)[::-1].hex()
