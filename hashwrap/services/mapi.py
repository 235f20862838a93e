from __future__ import annotations

import requests
from pydantic import ValidationError

from hashwrap.config import ProviderConfig
from hashwrap.core.errors import AttestationServiceError
from hashwrap.core.models import Attestation


class MapiClient:
    """Fetches signed transaction status (mAPI ``GET /mapi/tx/{txid}``) from a provider."""

    def __init__(self, *, timeout_s: float = 10.0) -> None:
        self.timeout_s = timeout_s

    def fetch_attestation(self, txid: str, provider: ProviderConfig) -> Attestation:
        url = f"{provider.base_url}/mapi/tx/{txid}"
        try:
            r = requests.get(url, headers=dict(provider.headers), timeout=self.timeout_s)
            r.raise_for_status()
            data = r.json()
        except requests.RequestException as exc:
            raise AttestationServiceError(f"{provider.name} provider request failed: {exc}") from exc
        except ValueError as exc:
            raise AttestationServiceError(f"{provider.name} provider returned non-JSON body") from exc

        if not isinstance(data, dict):
            raise AttestationServiceError(f"{provider.name} provider returned {type(data).__name__}, expected object")
        try:
            return Attestation.model_validate(data)
        except ValidationError as exc:
            raise AttestationServiceError(f"{provider.name} provider response is not a signed envelope: {exc}") from exc
