from __future__ import annotations

from typing import Any, List, Mapping, Optional, Sequence, Union

from pydantic import ValidationError

from hashwrap.core.errors import MalformedProof
from hashwrap.core.models import MerkleProof

ProofRecord = Union[Mapping[str, Any], Sequence[Mapping[str, Any]]]


def _first(record: Mapping[str, Any], *keys: str) -> Optional[Any]:
    for k in keys:
        v = record.get(k)
        if v is not None:
            return v
    return None


def branches_to_index(branches: Sequence[Mapping[str, Any]]) -> int:
    """
    Fold branch side markers into the proof index.

    A branch on the right ("R") means the subject is the left child and
    contributes a 0 bit, anything else contributes a 1. The first branch ends
    up as the most significant bit.
    """
    bits = "".join("0" if b.get("pos") == "R" else "1" for b in branches)
    return int(bits, 2) if bits else 0


def normalize_proof(record: ProofRecord) -> MerkleProof:
    """Convert an indexer proof record into a canonical MerkleProof."""
    if isinstance(record, Sequence) and not isinstance(record, (str, bytes)):
        if len(record) == 0:
            raise MalformedProof("Empty proof record")
        record = record[0]
    if not isinstance(record, Mapping):
        raise MalformedProof(f"Unsupported proof record type: {type(record).__name__}")

    subject = _first(record, "txOrId", "hash")
    target = _first(record, "target", "merkleRoot")
    if not subject or not target:
        raise MalformedProof("Proof record is missing its subject hash or target")

    branches = record.get("branches")
    if branches is not None:
        nodes: List[str] = [b.get("hash") for b in branches]
        index = branches_to_index(branches)
    else:
        nodes = list(record.get("nodes") or [])
        index = record.get("index") or 0

    try:
        return MerkleProof(
            tx_or_id=subject,
            target=target,
            nodes=nodes,
            index=index,
            height=_first(record, "blockHeight", "height"),
        )
    except ValidationError as exc:
        raise MalformedProof(f"Invalid proof record: {exc}") from exc
