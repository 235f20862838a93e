from __future__ import annotations

import hashlib
import json

from ecdsa import BadSignatureError, SECP256k1, VerifyingKey
from ecdsa.der import UnexpectedDER
from ecdsa.errors import MalformedPointError
from ecdsa.util import sigdecode_der
from pydantic import ValidationError

from hashwrap.core.errors import (
    AttestationRejected,
    MalformedPayload,
    SignatureInvalid,
    TxidMismatch,
)
from hashwrap.core.models import Attestation, DecodedPayload


def payload_digest(payload: str) -> bytes:
    return hashlib.sha256(payload.encode("utf-8")).digest()


def verify_signature(attestation: Attestation) -> bool:
    """Check the DER secp256k1 signature over sha256(payload)."""
    if not attestation.signature or not attestation.public_key:
        return False
    try:
        vk = VerifyingKey.from_string(bytes.fromhex(attestation.public_key), curve=SECP256k1)
        sig = bytes.fromhex(attestation.signature)
        return bool(vk.verify_digest(sig, payload_digest(attestation.payload), sigdecode=sigdecode_der))
    except (BadSignatureError, MalformedPointError, UnexpectedDER, ValueError):
        return False


def verify_attestation(attestation: Attestation, expected_txid: str) -> DecodedPayload:
    """
    Validate a processor attestation for ``expected_txid``.

    Checks run in order (signature, payload shape, txid, result) and the first
    one that fails raises. Returns the decoded payload.
    """
    if not verify_signature(attestation):
        raise SignatureInvalid(f"Attestation signature does not verify for {expected_txid}")

    try:
        data = json.loads(attestation.payload)
    except ValueError as exc:
        raise MalformedPayload(f"Attestation payload is not JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise MalformedPayload("Attestation payload is not a JSON object")

    try:
        decoded = DecodedPayload.model_validate(data)
    except ValidationError as exc:
        raise MalformedPayload(f"Attestation payload is missing fields: {exc}") from exc

    if decoded.txid != expected_txid:
        raise TxidMismatch(expected_txid, decoded.txid)
    if decoded.return_result != "success":
        raise AttestationRejected(decoded.return_result, decoded.result_description)
    return decoded
