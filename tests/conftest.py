import hashlib
import json
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import pytest

# Ensure repo root is on sys.path so `import hashwrap` works under all pytest import modes.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from bsv.utils import Writer  # noqa: E402
from ecdsa import SECP256k1, SigningKey  # noqa: E402
from ecdsa.util import sigencode_der  # noqa: E402

from hashwrap.config import ProviderConfig  # noqa: E402
from hashwrap.core.models import Attestation  # noqa: E402


def build_raw_tx(prev_txids: List[str], tag: int = 0) -> str:
    """Serialize a minimal transaction spending output i of each prev txid."""
    w = Writer()
    w.write_uint32_le(1)
    w.write_var_int_num(len(prev_txids))
    for i, prev in enumerate(prev_txids):
        w.write(bytes.fromhex(prev)[::-1])
        w.write_uint32_le(i)
        w.write_var_int_num(2)
        w.write(b"\x51\x51")
        w.write_uint32_le(0xFFFFFFFF)
    w.write_var_int_num(1)
    w.write_uint64_le(1000 + tag)
    w.write_var_int_num(1)
    w.write(b"\x6a")
    w.write_uint32_le(0)
    return w.to_bytes().hex()


class Signer:
    def __init__(self, secret: int = 0xC0FFEE):
        self.sk = SigningKey.from_secret_exponent(secret, curve=SECP256k1)
        self.public_key = self.sk.get_verifying_key().to_string("compressed").hex()

    def payload_for(self, txid: str, **overrides: Any) -> Dict[str, Any]:
        payload = {
            "apiVersion": "1.4.0",
            "timestamp": "2023-03-01T10:00:00.000Z",
            "txid": txid,
            "returnResult": "success",
            "resultDescription": "",
            "blockHash": None,
            "blockHeight": None,
            "confirmations": 0,
            "minerId": "030d1fe5c1b560efe196ba40540ce9017c20daa9504c4c4cec6184fc702d9f274e",
            "txSecondMempoolExpiry": 0,
        }
        payload.update(overrides)
        return payload

    def sign(self, payload: str) -> str:
        digest = hashlib.sha256(payload.encode("utf-8")).digest()
        return self.sk.sign_digest(digest, sigencode=sigencode_der).hex()

    def attest(self, txid: str, **overrides: Any) -> Attestation:
        payload = json.dumps(self.payload_for(txid, **overrides))
        return Attestation(
            payload=payload,
            signature=self.sign(payload),
            public_key=self.public_key,
            encoding="UTF-8",
            mimetype="application/json",
        )


class FakeChain:
    """In-memory indexer and attestation service with call logs."""

    def __init__(self, signer: Signer):
        self.signer = signer
        self.raw: Dict[str, str] = {}
        self.proofs: Dict[str, Any] = {}
        self.attestations: Dict[str, Attestation] = {}
        self.raw_calls: List[Tuple[str, str]] = []
        self.proof_calls: List[Tuple[str, str]] = []
        self.height_calls: List[Tuple[str, str]] = []
        self.attestation_calls: List[Tuple[str, ProviderConfig]] = []

    def add_mined(self, txid: str, raw_tx: Optional[str] = None, **record: Any) -> str:
        self.raw[txid] = raw_tx or build_raw_tx([], tag=len(self.raw))
        self.proofs[txid] = [
            {
                "blockHash": "00" * 32,
                "branches": record.pop("branches", [{"hash": "ab" * 32, "pos": "R"}]),
                "hash": txid,
                "merkleRoot": record.pop("merkleRoot", "cd" * 32),
                "blockHeight": record.pop("blockHeight", 800000),
            }
        ]
        return txid

    def add_pending(self, txid: str, prev_txids: List[str], attestation: Optional[Attestation] = None) -> str:
        self.raw[txid] = build_raw_tx(prev_txids, tag=len(self.raw))
        self.attestations[txid] = attestation or self.signer.attest(txid)
        return txid

    def fetch_raw_transaction(self, txid: str, network: str) -> Optional[str]:
        self.raw_calls.append((txid, network))
        return self.raw.get(txid)

    def fetch_merkle_proof(self, txid: str, network: str) -> Optional[Any]:
        self.proof_calls.append((txid, network))
        return self.proofs.get(txid)

    def fetch_block_height(self, txid: str, network: str) -> Optional[int]:
        self.height_calls.append((txid, network))
        return 800000 if txid in self.proofs else None

    def fetch_attestation(self, txid: str, provider: ProviderConfig) -> Attestation:
        self.attestation_calls.append((txid, provider))
        return self.attestations[txid]


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch):
    for name in ("HASHWRAP_NETWORK", "HASHWRAP_TAAL_API_KEY"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def signer() -> Signer:
    return Signer()


@pytest.fixture
def chain(signer: Signer) -> FakeChain:
    return FakeChain(signer)


@pytest.fixture
def make_raw_tx():
    return build_raw_tx
