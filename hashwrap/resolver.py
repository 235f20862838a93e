"""
Envelope resolution.

A transaction with a Merkle proof is terminal. An unconfirmed one is vouched
for by a processor attestation and pulls in every distinct transaction its
inputs spend, until each branch of the ancestry ends in a mined transaction.

The ancestry is walked as a breadth-first worklist keyed by txid. Each txid is
fetched and verified once per top-level call, however many descendants
reference it; the memo lives and dies with the call.
"""

from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Protocol, Sequence, Tuple, Union

import bittensor as bt

from hashwrap.config import (
    HashwrapEnvConfig,
    Network,
    OutputFormat,
    ProviderConfig,
    ProviderEndpoints,
    ResolveOptions,
    load_hashwrap_env,
    select_provider,
)
from hashwrap.core.attestation import verify_attestation
from hashwrap.core.beef import to_beef
from hashwrap.core.errors import (
    AncestorResolutionFailed,
    CyclicAncestry,
    InvalidAttestation,
    TransactionNotFound,
)
from hashwrap.core.models import (
    Attestation,
    MerkleProof,
    MinedEnvelope,
    PendingEnvelope,
)
from hashwrap.core.proof import normalize_proof
from hashwrap.core.rawtx import extract_input_txids, unique_in_order
from hashwrap.core.txid import validate_txid
from hashwrap.services.mapi import MapiClient
from hashwrap.services.whatsonchain import WhatsOnChainClient

AnyEnvelope = Union[MinedEnvelope, PendingEnvelope]


class TransactionIndexer(Protocol):
    def fetch_raw_transaction(self, txid: str, network: Network) -> Optional[str]: ...

    def fetch_merkle_proof(self, txid: str, network: Network) -> Optional[Any]: ...

    def fetch_block_height(self, txid: str, network: Network) -> Optional[int]: ...


class AttestationService(Protocol):
    def fetch_attestation(self, txid: str, provider: ProviderConfig) -> Attestation: ...


@dataclass(frozen=True)
class _Resolved:
    """One transaction's own evidence, before its ancestors are attached."""

    txid: str
    raw_tx: str
    proof: Optional[MerkleProof] = None
    attestation: Optional[Attestation] = None
    input_txids: Tuple[str, ...] = ()


@dataclass
class _Scope:
    """State owned by a single top-level resolution."""

    options: ResolveOptions
    endpoints: ProviderEndpoints
    resolved: Dict[str, _Resolved] = field(default_factory=dict)
    # ancestor txid -> descendant that first referenced it
    referrer: Dict[str, str] = field(default_factory=dict)
    _provider: Optional[ProviderConfig] = None
    _lock: threading.Lock = field(default_factory=threading.Lock)

    def provider(self) -> ProviderConfig:
        # Only unconfirmed transactions need a provider, so pick it lazily and once.
        with self._lock:
            if self._provider is None:
                self._provider = select_provider(
                    self.options.network, self.options.credential, self.endpoints
                )
                bt.logging.debug(f"Using {self._provider.name} attestation provider ({self._provider.base_url})")
            return self._provider


class EnvelopeResolver:
    def __init__(
        self,
        indexer: TransactionIndexer,
        attestations: AttestationService,
        *,
        endpoints: ProviderEndpoints = ProviderEndpoints(),
        max_workers: int = 1,
        extract_inputs: Callable[[str], Sequence[str]] = extract_input_txids,
        encode_transport: Callable[[AnyEnvelope], bytes] = to_beef,
    ) -> None:
        self.indexer = indexer
        self.attestations = attestations
        self.endpoints = endpoints
        self.max_workers = max(1, int(max_workers))
        self.extract_inputs = extract_inputs
        self.encode_transport = encode_transport

    def resolve(self, txid: str, options: Optional[ResolveOptions] = None) -> Union[AnyEnvelope, bytes]:
        options = options or ResolveOptions()
        validate_txid(txid)

        scope = _Scope(options=options, endpoints=self.endpoints)
        if self.max_workers > 1:
            with ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="hashwrap") as pool:
                self._crawl(scope, txid, pool)
        else:
            self._crawl(scope, txid, None)

        envelope = self._assemble(scope, txid)
        bt.logging.info(
            f"Resolved envelope for {txid} on {options.network}: "
            f"{len(scope.resolved)} transaction(s), {envelope.kind}"
        )
        if options.output_format == "transport":
            return self.encode_transport(envelope)
        return envelope

    # -- crawl ---------------------------------------------------------------

    def _crawl(self, scope: _Scope, root: str, pool: Optional[ThreadPoolExecutor]) -> None:
        frontier = [root]
        seen = {root}
        while frontier:
            for txid, outcome in self._resolve_level(scope, frontier, pool):
                if isinstance(outcome, BaseException):
                    raise self._chain_failure(scope, txid, outcome)
                scope.resolved[txid] = outcome

            next_frontier: List[str] = []
            for txid in frontier:
                for parent in scope.resolved[txid].input_txids:
                    if parent in seen:
                        continue
                    seen.add(parent)
                    scope.referrer[parent] = txid
                    next_frontier.append(parent)
            frontier = next_frontier

    def _resolve_level(
        self,
        scope: _Scope,
        frontier: List[str],
        pool: Optional[ThreadPoolExecutor],
    ) -> List[Tuple[str, Union[_Resolved, BaseException]]]:
        """Resolve one worklist level; outcomes come back in worklist order."""
        if pool is None or len(frontier) == 1:
            out: List[Tuple[str, Union[_Resolved, BaseException]]] = []
            for txid in frontier:
                try:
                    out.append((txid, self._resolve_one(scope, txid)))
                except Exception as exc:
                    # Sequential mode stops at the first failure.
                    out.append((txid, exc))
                    break
            return out

        futures = [(txid, pool.submit(self._resolve_one, scope, txid)) for txid in frontier]
        out = []
        for txid, fut in futures:
            exc = fut.exception()
            out.append((txid, exc if exc is not None else fut.result()))
        return out

    def _resolve_one(self, scope: _Scope, txid: str) -> _Resolved:
        network = scope.options.network
        raw_tx = self.indexer.fetch_raw_transaction(txid, network)
        if not raw_tx:
            raise TransactionNotFound(txid)
        bt.logging.debug(f"Fetched raw transaction {txid} ({len(raw_tx) // 2} bytes)")

        record = self.indexer.fetch_merkle_proof(txid, network)
        if record:
            proof = normalize_proof(record)
            if proof.height is None and scope.options.output_format == "transport":
                # Only the transport encoding places proofs by block.
                proof = proof.model_copy(update={"height": self.indexer.fetch_block_height(txid, network)})
            bt.logging.debug(f"{txid} is mined under merkle root {proof.target}")
            return _Resolved(txid=txid, raw_tx=raw_tx, proof=proof)

        attestation = self.attestations.fetch_attestation(txid, scope.provider())
        try:
            decoded = verify_attestation(attestation, txid)
        except InvalidAttestation as exc:
            bt.logging.warning(f"Attestation for {txid} rejected: {exc}")
            raise

        parents = tuple(unique_in_order(list(self.extract_inputs(raw_tx))))
        for parent in parents:
            validate_txid(parent)
        bt.logging.debug(f"{txid} is unconfirmed, {len(parents)} distinct ancestor(s)")
        return _Resolved(
            txid=txid,
            raw_tx=raw_tx,
            attestation=attestation.model_copy(update={"decoded_payload": decoded}),
            input_txids=parents,
        )

    def _chain_failure(self, scope: _Scope, txid: str, exc: BaseException) -> BaseException:
        """Wrap an ancestor's failure once per edge on its path back to the root."""
        err = exc
        child = txid
        while child in scope.referrer:
            parent_of_child = scope.referrer[child]
            wrapped = AncestorResolutionFailed(parent_of_child, child, reason=str(exc))
            wrapped.__cause__ = err
            err = wrapped
            child = parent_of_child
        return err

    # -- assembly ------------------------------------------------------------

    def _assemble(self, scope: _Scope, root: str) -> AnyEnvelope:
        built: Dict[str, AnyEnvelope] = {}
        visiting = set()
        stack: List[Tuple[str, bool]] = [(root, False)]
        while stack:
            txid, parents_built = stack.pop()
            if txid in built:
                continue
            node = scope.resolved[txid]
            if node.proof is not None:
                built[txid] = MinedEnvelope(raw_tx=node.raw_tx, proof=node.proof)
                continue
            if parents_built:
                visiting.discard(txid)
                built[txid] = PendingEnvelope(
                    raw_tx=node.raw_tx,
                    attestations=[node.attestation],
                    inputs={p: built[p] for p in node.input_txids},
                )
                continue
            if txid in visiting:
                raise CyclicAncestry(txid)
            visiting.add(txid)
            stack.append((txid, True))
            for parent in reversed(node.input_txids):
                if parent in visiting:
                    raise CyclicAncestry(parent)
                if parent not in built:
                    stack.append((parent, False))
        return built[root]


def build_resolver(config: Optional[HashwrapEnvConfig] = None, *, max_workers: Optional[int] = None) -> EnvelopeResolver:
    """Resolver wired to WhatsOnChain and mAPI using env configuration."""
    config = config or load_hashwrap_env()
    return EnvelopeResolver(
        WhatsOnChainClient(config.woc_url, config.woc_api_key, timeout_s=config.timeout_s),
        MapiClient(timeout_s=config.timeout_s),
        endpoints=config.endpoints,
        max_workers=max_workers if max_workers is not None else config.max_workers,
    )


def get_envelope(
    txid: str,
    *,
    network: Optional[Network] = None,
    credential: Optional[str] = None,
    output_format: OutputFormat = "structured",
    resolver: Optional[EnvelopeResolver] = None,
) -> Union[AnyEnvelope, bytes]:
    """
    Return the SPV envelope for ``txid``.

    Mined transactions come back as a MinedEnvelope carrying the Merkle proof.
    Unconfirmed ones come back as a PendingEnvelope with the processor's
    attestation and the envelopes of every distinct ancestor they spend.
    With ``output_format="transport"`` the BEEF bytes are returned instead.

    ``network`` and ``credential`` fall back to HASHWRAP_NETWORK and
    HASHWRAP_TAAL_API_KEY when not given.
    """
    # Validate before building clients so a bad txid never touches config or network.
    validate_txid(txid)
    config = None
    if resolver is None or network is None or credential is None:
        config = load_hashwrap_env()
        network = network or config.network
        credential = credential if credential is not None else config.credential
    options = ResolveOptions(network=network, credential=credential, output_format=output_format)
    return (resolver or build_resolver(config)).resolve(txid, options)
