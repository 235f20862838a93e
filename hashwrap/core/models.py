from __future__ import annotations

from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator


class MerkleProof(BaseModel):
    """Canonical Merkle inclusion proof for one transaction.

    ``index`` packs the subject's side at each tree level, one bit per level,
    the leaf-adjacent level in the most significant bit. A ``1`` bit means the
    sibling sits on the left.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    tx_or_id: str = Field(alias="txOrId")
    target: str
    target_type: Literal["merkleRoot"] = Field("merkleRoot", alias="targetType")
    nodes: List[str] = Field(default_factory=list)
    index: int = 0

    # Block height is not part of the proof itself; transport encoding needs it.
    height: Optional[int] = None

    @model_validator(mode="after")
    def _check_index(self) -> "MerkleProof":
        if self.index < 0 or self.index >= 2 ** len(self.nodes):
            raise ValueError(f"index {self.index} out of range for {len(self.nodes)} nodes")
        return self

    def to_json_dict(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude={"height"})


class DecodedPayload(BaseModel):
    """Processor status statement, parsed from a verified attestation payload."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="allow")

    txid: str
    return_result: str = Field(alias="returnResult")
    result_description: str = Field("", alias="resultDescription")


class Attestation(BaseModel):
    """A signed mAPI response as received from the processor."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    payload: str
    # Null when the processor has no miner identity to sign with.
    signature: Optional[str] = None
    public_key: Optional[str] = Field(None, alias="publicKey")
    encoding: Optional[str] = None
    mimetype: Optional[str] = None

    # Set only on attestations that passed verification.
    decoded_payload: Optional[DecodedPayload] = Field(None, exclude=True)

    def to_json_dict(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class MinedEnvelope(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    kind: Literal["mined"] = "mined"
    raw_tx: str = Field(alias="rawTx")
    proof: MerkleProof

    def to_json_dict(self) -> Dict[str, Any]:
        return {"rawTx": self.raw_tx, "proof": self.proof.to_json_dict()}


class PendingEnvelope(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    kind: Literal["pending"] = "pending"
    raw_tx: str = Field(alias="rawTx")
    attestations: List[Attestation]
    inputs: Dict[str, "Envelope"] = Field(default_factory=dict)

    def to_json_dict(self) -> Dict[str, Any]:
        return {
            "rawTx": self.raw_tx,
            "mapiResponses": [a.to_json_dict() for a in self.attestations],
            "inputs": {txid: env.to_json_dict() for txid, env in self.inputs.items()},
        }


Envelope = Annotated[Union[MinedEnvelope, PendingEnvelope], Field(discriminator="kind")]

PendingEnvelope.model_rebuild()
