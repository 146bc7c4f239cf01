"""Ledger endpoint configuration values."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Final

from .env import env_int, optional_env, require_env_vars
from .http_resilience import RateLimit, ResilienceConfig, RetryPolicy

DEFAULT_NETWORK: Final[str] = "localnet"
DEFAULT_SUI_BINARY: Final[str] = "sui"
DEFAULT_GAS_BUDGET: Final[int] = 100_000_000
RPC_TIMEOUT_SECONDS: Final[float] = 30.0
FAUCET_TIMEOUT_SECONDS: Final[float] = 60.0


@dataclass(frozen=True, slots=True)
class NetworkEndpoints:
    rpc_url: str
    faucet_url: str | None = None


KNOWN_NETWORKS: Final[dict[str, NetworkEndpoints]] = {
    "localnet": NetworkEndpoints(
        rpc_url="http://127.0.0.1:9000",
        faucet_url="http://127.0.0.1:9123",
    ),
    "devnet": NetworkEndpoints(
        rpc_url="https://fullnode.devnet.sui.io:443",
        faucet_url="https://faucet.devnet.sui.io",
    ),
    "testnet": NetworkEndpoints(
        rpc_url="https://fullnode.testnet.sui.io:443",
        faucet_url="https://faucet.testnet.sui.io",
    ),
    "mainnet": NetworkEndpoints(rpc_url="https://fullnode.mainnet.sui.io:443"),
}


@dataclass(frozen=True, slots=True)
class LedgerConfig:
    """Holds the network name, endpoints and toolchain used to reach the ledger."""

    network: str
    rpc: ResilienceConfig
    faucet: ResilienceConfig | None
    sui_binary: str = DEFAULT_SUI_BINARY
    gas_budget: int = DEFAULT_GAS_BUDGET

    @property
    def rpc_url(self) -> str:
        return self.rpc.base_url or ""

    @property
    def has_faucet(self) -> bool:
        return self.faucet is not None


def rpc_resilience(rpc_url: str) -> ResilienceConfig:
    return ResilienceConfig(
        name="sui-rpc",
        base_url=rpc_url,
        timeout_seconds=RPC_TIMEOUT_SECONDS,
        retry=RetryPolicy(total=4),
        ratelimit=RateLimit(max_calls=20, per_seconds=1.0),
        default_headers={"Content-Type": "application/json"},
    )


def faucet_resilience(faucet_url: str) -> ResilienceConfig:
    return ResilienceConfig(
        name="sui-faucet",
        base_url=faucet_url,
        timeout_seconds=FAUCET_TIMEOUT_SECONDS,
        retry=RetryPolicy(total=2, backoff_factor=1.0),
        ratelimit=RateLimit(max_calls=1, per_seconds=1.0),
    )


def get_ledger_config(*, network: str | None = None) -> LedgerConfig:
    """Build the ledger configuration from ``CHAINSEED_*`` and ``SUI_*`` variables.

    Known network names supply default endpoints; ``SUI_RPC_URL`` and
    ``SUI_FAUCET_URL`` override them; custom networks must set ``SUI_RPC_URL``.
    """

    network_name = network or optional_env("CHAINSEED_NETWORK") or DEFAULT_NETWORK
    defaults = KNOWN_NETWORKS.get(network_name)

    if defaults is None:
        rpc_url = require_env_vars(("SUI_RPC_URL",))["SUI_RPC_URL"].strip()
    else:
        rpc_url = optional_env("SUI_RPC_URL") or defaults.rpc_url
    faucet_url = optional_env("SUI_FAUCET_URL") or (defaults.faucet_url if defaults else None)

    return LedgerConfig(
        network=network_name,
        rpc=rpc_resilience(rpc_url),
        faucet=faucet_resilience(faucet_url) if faucet_url else None,
        sui_binary=optional_env("SUI_BINARY") or DEFAULT_SUI_BINARY,
        gas_budget=env_int("CHAINSEED_GAS_BUDGET", DEFAULT_GAS_BUDGET, minimum=1),
    )
