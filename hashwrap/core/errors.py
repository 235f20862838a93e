from __future__ import annotations

from typing import Optional


class HashwrapError(Exception):
    """Base class for every failure surfaced by envelope resolution."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidIdentifier(HashwrapError):
    """Raised for a txid that is not 64 lowercase hex characters."""


class TransactionNotFound(HashwrapError):
    def __init__(self, txid: str):
        super().__init__(f"Transaction not found: {txid}")
        self.txid = txid


class CredentialError(HashwrapError):
    """Raised when the network/provider credential policy is violated."""


class MissingCredential(CredentialError):
    def __init__(self, network: str):
        super().__init__(f"A processor API key is required on {network}")
        self.network = network


class WrongCredentialScope(CredentialError):
    def __init__(self, network: str):
        super().__init__(f"The processor API key is not scoped to {network}")
        self.network = network


class InvalidAttestation(HashwrapError):
    """Raised when a processor attestation fails validation."""


class SignatureInvalid(InvalidAttestation):
    pass


class MalformedPayload(InvalidAttestation):
    pass


class TxidMismatch(InvalidAttestation):
    def __init__(self, expected: str, actual: Optional[str]):
        super().__init__(f"Attestation is for txid {actual!r}, expected {expected!r}")
        self.expected = expected
        self.actual = actual


class AttestationRejected(InvalidAttestation):
    def __init__(self, result: str, description: str = ""):
        msg = f"Attestation returnResult is {result!r}"
        if description:
            msg = f"{msg}: {description}"
        super().__init__(msg)
        self.result = result
        self.description = description


class AncestorResolutionFailed(HashwrapError):
    """Raised on a descendant when resolving one of its ancestors failed.

    The ancestor's error is available as ``__cause__``.
    """

    def __init__(self, txid: str, ancestor: str, reason: str = ""):
        msg = f"Resolving ancestor {ancestor} of {txid} failed"
        if reason:
            msg = f"{msg}: {reason}"
        super().__init__(msg)
        self.txid = txid
        self.ancestor = ancestor


class MalformedProof(HashwrapError):
    pass


class MalformedTransaction(HashwrapError):
    pass


class CyclicAncestry(HashwrapError):
    def __init__(self, txid: str):
        super().__init__(f"Transaction {txid} appears in its own ancestry")
        self.txid = txid


class ServiceError(HashwrapError):
    """Raised when an external service answers with an unusable response."""


class IndexerError(ServiceError):
    pass


class AttestationServiceError(ServiceError):
    pass


class TransportEncodingError(HashwrapError):
    pass
