"""
BEEF transport encoding of an envelope.

Layout (BRC-62, version 1):

    version        4 bytes, 0100BEEF
    nBUMPs         varint, then each BUMP (BRC-74)
    nTransactions  varint, then each raw transaction followed by
                   0x01 <varint bump index> if it is mined, else 0x00

Transactions are written ancestors first, each once. ``Transaction.to_beef``
walks every input edge and would repeat an ancestor shared by several
descendants, so the container is written here from the library's pieces.
"""

from __future__ import annotations

from typing import Dict, List, Tuple, Union

from bsv import Transaction
from bsv.merkle_path import MerklePath
from bsv.utils import Writer

from hashwrap.core.errors import MalformedTransaction, TransportEncodingError
from hashwrap.core.models import MerkleProof, MinedEnvelope, PendingEnvelope
from hashwrap.core.rawtx import parse_transaction

BEEF_V1 = bytes.fromhex("0100beef")

AnyEnvelope = Union[MinedEnvelope, PendingEnvelope]


def leaf_offset(index: int, levels: int) -> int:
    """Position of the subject among the leaves, from the packed proof index."""
    offset = 0
    for level in range(levels):
        bit = (index >> (levels - 1 - level)) & 1
        offset |= bit << level
    return offset


def merkle_path_for(txid: str, proof: MerkleProof) -> MerklePath:
    """Convert a canonical proof into a BUMP for its block."""
    if proof.height is None:
        raise TransportEncodingError(f"Block height unknown for mined transaction {txid}")

    n = len(proof.nodes)
    offset = leaf_offset(proof.index, n)
    levels: List[List[Dict]] = [[] for _ in range(max(n, 1))]
    levels[0].append({"offset": offset, "hash_str": txid, "txid": True})
    for level, node in enumerate(proof.nodes):
        sibling = (offset >> level) ^ 1
        if node == "*":
            levels[level].append({"offset": sibling, "duplicate": True})
        else:
            levels[level].append({"offset": sibling, "hash_str": node.lower()})
    for leaves in levels:
        leaves.sort(key=lambda leaf: leaf["offset"])

    try:
        path = MerklePath(proof.height, levels)
        root = path.compute_root(txid)
    except (ValueError, KeyError) as exc:
        raise TransportEncodingError(f"Proof for {txid} is not a valid Merkle path: {exc}") from exc
    if root != proof.target.lower():
        raise TransportEncodingError(f"Proof for {txid} leads to {root}, not {proof.target}")
    return path


def ancestors_first(envelope: AnyEnvelope) -> List[Tuple[Transaction, AnyEnvelope]]:
    """Flatten an envelope tree so every transaction follows its ancestors."""
    order: List[Tuple[Transaction, AnyEnvelope]] = []
    done = set()
    stack: List[Tuple[str, AnyEnvelope, bool]] = [("", envelope, False)]
    while stack:
        txid, env, expanded = stack.pop()
        if txid in done:
            continue
        if expanded or isinstance(env, MinedEnvelope):
            try:
                tx = parse_transaction(env.raw_tx)
            except MalformedTransaction as exc:
                raise TransportEncodingError(f"Cannot encode transaction {txid or 'at root'}: {exc}") from exc
            done.add(txid or tx.txid())
            order.append((tx, env))
            continue
        stack.append((txid, env, True))
        for parent_txid, parent in reversed(list(env.inputs.items())):
            if parent_txid not in done:
                stack.append((parent_txid, parent, False))
    return order


def to_beef(envelope: AnyEnvelope) -> bytes:
    txs = ancestors_first(envelope)

    bumps: List[MerklePath] = []
    bump_by_block: Dict[Tuple[int, str], int] = {}
    tx_bump: Dict[str, int] = {}
    for tx, env in txs:
        if not isinstance(env, MinedEnvelope):
            continue
        txid = tx.txid()
        path = merkle_path_for(txid, env.proof)
        key = (path.block_height, env.proof.target.lower())
        if key in bump_by_block:
            try:
                bumps[bump_by_block[key]].combine(path)
            except ValueError as exc:
                raise TransportEncodingError(f"Cannot merge proof for {txid} into its block path: {exc}") from exc
        else:
            bump_by_block[key] = len(bumps)
            bumps.append(path)
        tx_bump[txid] = bump_by_block[key]

    writer = Writer()
    writer.write(BEEF_V1)
    writer.write_var_int_num(len(bumps))
    for bump in bumps:
        writer.write(bump.to_binary())
    writer.write_var_int_num(len(txs))
    for tx, _ in txs:
        writer.write(tx.serialize())
        txid = tx.txid()
        if txid in tx_bump:
            writer.write_uint8(1)
            writer.write_var_int_num(tx_bump[txid])
        else:
            writer.write_uint8(0)
    return writer.to_bytes()
