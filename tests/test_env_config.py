import pytest

from hashwrap.config import (
    DEFAULT_MAPI_URL,
    DEFAULT_TAAL_MAPI_URL,
    DEFAULT_WOC_URL,
    ProviderEndpoints,
    ResolveOptions,
    load_hashwrap_env,
    select_provider,
)
from hashwrap.core.errors import MissingCredential, WrongCredentialScope

ENV_VARS = (
    "HASHWRAP_NETWORK",
    "HASHWRAP_TAAL_API_KEY",
    "HASHWRAP_WOC_URL",
    "HASHWRAP_WOC_API_KEY",
    "HASHWRAP_DEFAULT_MAPI_URL",
    "HASHWRAP_TAAL_MAPI_URL",
    "HASHWRAP_HTTP_TIMEOUT_S",
    "HASHWRAP_MAX_WORKERS",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def test_load_hashwrap_env_defaults():
    cfg = load_hashwrap_env()
    assert cfg.network == "mainnet"
    assert cfg.credential is None
    assert cfg.woc_url == DEFAULT_WOC_URL
    assert cfg.woc_api_key is None
    assert cfg.endpoints == ProviderEndpoints(DEFAULT_MAPI_URL, DEFAULT_TAAL_MAPI_URL)
    assert cfg.timeout_s == pytest.approx(10.0)
    assert cfg.max_workers == 1


def test_load_hashwrap_env_reads_overrides(monkeypatch):
    monkeypatch.setenv("HASHWRAP_NETWORK", "TESTNET")
    monkeypatch.setenv("HASHWRAP_TAAL_API_KEY", "testnet_abc")
    monkeypatch.setenv("HASHWRAP_WOC_URL", "http://woc.local/v1/bsv/")
    monkeypatch.setenv("HASHWRAP_TAAL_MAPI_URL", "http://taal.local")
    monkeypatch.setenv("HASHWRAP_MAX_WORKERS", "500")

    cfg = load_hashwrap_env()
    assert cfg.network == "testnet"
    assert cfg.credential == "testnet_abc"
    assert cfg.woc_url == "http://woc.local/v1/bsv"
    assert cfg.endpoints.keyed_url == "http://taal.local"
    assert cfg.max_workers == 32


def test_load_hashwrap_env_rejects_unknown_network(monkeypatch):
    monkeypatch.setenv("HASHWRAP_NETWORK", "regtest")
    with pytest.raises(SystemExit):
        load_hashwrap_env()


def test_load_hashwrap_env_requires_http_urls(monkeypatch):
    monkeypatch.setenv("HASHWRAP_DEFAULT_MAPI_URL", "mapi.gorillapool.io")
    with pytest.raises(SystemExit):
        load_hashwrap_env()


def test_load_hashwrap_env_rejects_non_positive_timeout(monkeypatch):
    monkeypatch.setenv("HASHWRAP_HTTP_TIMEOUT_S", "0")
    with pytest.raises(SystemExit):
        load_hashwrap_env()


def test_resolve_options_validate_values():
    assert ResolveOptions().network == "mainnet"
    with pytest.raises(ValueError):
        ResolveOptions(network="regtest")  # type: ignore[arg-type]
    with pytest.raises(ValueError):
        ResolveOptions(output_format="beefHex")  # type: ignore[arg-type]


def test_select_provider_defaults_to_public_provider():
    p = select_provider("mainnet", None)
    assert p.name == "default"
    assert p.base_url == DEFAULT_MAPI_URL
    assert p.headers == {}


def test_select_provider_uses_keyed_provider_with_credential():
    p = select_provider("mainnet", "mainnet_9596de07e92300c6287e43")
    assert p.name == "keyed"
    assert p.base_url == DEFAULT_TAAL_MAPI_URL
    assert p.headers == {"Authorization": "mainnet_9596de07e92300c6287e43"}


def test_select_provider_testnet_requires_credential():
    with pytest.raises(MissingCredential):
        select_provider("testnet", None)
    with pytest.raises(MissingCredential):
        select_provider("testnet", "   ")


def test_select_provider_testnet_requires_testnet_scope():
    with pytest.raises(WrongCredentialScope):
        select_provider("testnet", "mainnet_123")
    p = select_provider("testnet", "testnet_123", ProviderEndpoints(keyed_url="http://taal.local/"))
    assert p.base_url == "http://taal.local"
    assert p.headers["Authorization"] == "testnet_123"


def test_select_provider_mainnet_rejects_testnet_key():
    with pytest.raises(WrongCredentialScope):
        select_provider("mainnet", "testnet_123")
