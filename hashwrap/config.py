from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Literal, Optional

from hashwrap.core.errors import MissingCredential, WrongCredentialScope
from hashwrap.utils.env import _env_float, _env_int, _env_str


Network = Literal["mainnet", "testnet"]
OutputFormat = Literal["structured", "transport"]

NETWORKS = ("mainnet", "testnet")
OUTPUT_FORMATS = ("structured", "transport")

DEFAULT_WOC_URL = "https://api.whatsonchain.com/v1/bsv"
DEFAULT_MAPI_URL = "https://mapi.gorillapool.io"
DEFAULT_TAAL_MAPI_URL = "https://mapi.taal.com"

TESTNET_KEY_PREFIX = "testnet_"


@dataclass(frozen=True)
class ResolveOptions:
    network: Network = "mainnet"
    credential: Optional[str] = None
    output_format: OutputFormat = "structured"

    def __post_init__(self) -> None:
        if self.network not in NETWORKS:
            raise ValueError(f"Invalid network {self.network!r} (expected 'mainnet' or 'testnet').")
        if self.output_format not in OUTPUT_FORMATS:
            raise ValueError(
                f"Invalid output format {self.output_format!r} (expected 'structured' or 'transport')."
            )


@dataclass(frozen=True)
class ProviderEndpoints:
    default_url: str = DEFAULT_MAPI_URL
    keyed_url: str = DEFAULT_TAAL_MAPI_URL


@dataclass(frozen=True)
class ProviderConfig:
    """Attestation provider picked for one resolution call."""

    name: str
    base_url: str
    headers: Dict[str, str] = field(default_factory=dict)


def select_provider(
    network: Network,
    credential: Optional[str],
    endpoints: ProviderEndpoints = ProviderEndpoints(),
) -> ProviderConfig:
    """
    Pick the mAPI provider for ``network``.

    Without a key the public default provider is used. With a key the keyed
    provider is used and the key is sent as the Authorization header. Testnet
    has no public provider, so a testnet-scoped key is required there.
    """
    key = (credential or "").strip()
    if network == "testnet":
        if not key:
            raise MissingCredential(network)
        if not key.startswith(TESTNET_KEY_PREFIX):
            raise WrongCredentialScope(network)
    elif key.startswith(TESTNET_KEY_PREFIX):
        raise WrongCredentialScope(network)

    if not key:
        return ProviderConfig(name="default", base_url=endpoints.default_url.rstrip("/"))
    return ProviderConfig(
        name="keyed",
        base_url=endpoints.keyed_url.rstrip("/"),
        headers={"Authorization": key},
    )


@dataclass(frozen=True)
class HashwrapEnvConfig:
    network: Network
    credential: Optional[str]
    woc_url: str
    woc_api_key: Optional[str]
    endpoints: ProviderEndpoints
    timeout_s: float
    max_workers: int


def _die(msg: str) -> None:
    raise SystemExit(f"[hashwrap] {msg}")


def _http_url(name: str, default: str) -> str:
    url = (_env_str(name, default) or default).rstrip("/")
    if not url.startswith("http"):
        _die(f"{name} must be http(s). Got: {url!r}")
    return url


def load_hashwrap_env() -> HashwrapEnvConfig:
    """Load defaults for clients and resolution options from env/.env with strict validation."""
    network = (_env_str("HASHWRAP_NETWORK", "mainnet") or "mainnet").lower()
    if network not in NETWORKS:
        _die(f"Invalid HASHWRAP_NETWORK={network!r} (expected 'mainnet' or 'testnet').")

    timeout_s = _env_float("HASHWRAP_HTTP_TIMEOUT_S", 10.0)
    if timeout_s <= 0:
        _die(f"HASHWRAP_HTTP_TIMEOUT_S must be positive. Got: {timeout_s}")

    max_workers = _env_int("HASHWRAP_MAX_WORKERS", 1)
    max_workers = max(1, min(32, max_workers))

    return HashwrapEnvConfig(
        network="testnet" if network == "testnet" else "mainnet",
        credential=_env_str("HASHWRAP_TAAL_API_KEY", "") or None,
        woc_url=_http_url("HASHWRAP_WOC_URL", DEFAULT_WOC_URL),
        woc_api_key=_env_str("HASHWRAP_WOC_API_KEY", "") or None,
        endpoints=ProviderEndpoints(
            default_url=_http_url("HASHWRAP_DEFAULT_MAPI_URL", DEFAULT_MAPI_URL),
            keyed_url=_http_url("HASHWRAP_TAAL_MAPI_URL", DEFAULT_TAAL_MAPI_URL),
        ),
        timeout_s=float(timeout_s),
        max_workers=int(max_workers),
    )
