from __future__ import annotations

from typing import Any, Dict, Optional

import bittensor as bt
import requests

from hashwrap.config import DEFAULT_WOC_URL, Network
from hashwrap.core.errors import IndexerError


def _chain(network: Network) -> str:
    return "test" if network == "testnet" else "main"


class WhatsOnChainClient:
    """Indexer client: raw transactions and Merkle proofs from api.whatsonchain.com."""

    def __init__(
        self,
        base_url: str = DEFAULT_WOC_URL,
        api_key: Optional[str] = None,
        *,
        timeout_s: float = 10.0,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout_s = timeout_s

    def _headers(self) -> Dict[str, str]:
        return {"Authorization": self.api_key} if self.api_key else {}

    def _get(self, network: Network, path: str) -> Optional[requests.Response]:
        url = f"{self.base_url}/{_chain(network)}{path}"
        try:
            r = requests.get(url, headers=self._headers(), timeout=self.timeout_s)
        except requests.RequestException as exc:
            raise IndexerError(f"GET {url} failed: {exc}") from exc
        if r.status_code == 404:
            return None
        if r.status_code >= 400:
            raise IndexerError(f"GET {url} returned HTTP {r.status_code}")
        return r

    def _get_json(self, network: Network, path: str) -> Optional[Any]:
        r = self._get(network, path)
        if r is None:
            return None
        try:
            return r.json()
        except ValueError as exc:
            raise IndexerError(f"Indexer returned non-JSON body for {path}") from exc

    def fetch_raw_transaction(self, txid: str, network: Network) -> Optional[str]:
        r = self._get(network, f"/tx/{txid}/hex")
        if r is None:
            return None
        raw = r.text.strip().lower()
        return raw or None

    def fetch_block_height(self, txid: str, network: Network) -> Optional[int]:
        info = self._get_json(network, f"/tx/hash/{txid}")
        if not isinstance(info, dict) or info.get("blockheight") is None:
            return None
        return int(info["blockheight"])

    def fetch_merkle_proof(self, txid: str, network: Network) -> Optional[Dict[str, Any]]:
        """
        Return the proof record for a mined transaction, or None while unconfirmed.

        The record keeps the indexer's own shape. The proof endpoint does not
        report the block height; ``fetch_block_height`` does when it is needed.
        """
        data = self._get_json(network, f"/tx/{txid}/proof")
        if isinstance(data, list):
            data = data[0] if data else None
        if not isinstance(data, dict) or not data:
            bt.logging.debug(f"No merkle proof for {txid} on {network}")
            return None
        return dict(data)

