from __future__ import annotations

import pytest

from chainseed.config import (
    ConfigurationError,
    MissingConfigurationError,
    get_ledger_config,
    get_provisioning_config,
    require_env_vars,
)

_LEDGER_VARS = (
    "CHAINSEED_NETWORK",
    "SUI_RPC_URL",
    "SUI_FAUCET_URL",
    "SUI_BINARY",
    "CHAINSEED_GAS_BUDGET",
)


@pytest.fixture
def clean_env(monkeypatch: pytest.MonkeyPatch) -> pytest.MonkeyPatch:
    for name in _LEDGER_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


def test_require_env_vars_returns_values(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("EXAMPLE_VAR", "value")

    result = require_env_vars(["EXAMPLE_VAR"])

    assert result["EXAMPLE_VAR"] == "value"


def test_require_env_vars_raises_for_blank_values(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("BLANK_VAR", "   ")
    monkeypatch.delenv("MISSING_VAR", raising=False)

    with pytest.raises(MissingConfigurationError) as exc:
        require_env_vars(["MISSING_VAR", "BLANK_VAR"])

    assert "BLANK_VAR, MISSING_VAR" in str(exc.value)
    assert exc.value.names == ("BLANK_VAR", "MISSING_VAR")


def test_ledger_config_defaults_to_localnet(clean_env: pytest.MonkeyPatch) -> None:
    del clean_env
    config = get_ledger_config()

    assert config.network == "localnet"
    assert config.rpc_url == "http://127.0.0.1:9000"
    assert config.has_faucet
    assert config.faucet is not None
    assert config.faucet.base_url == "http://127.0.0.1:9123"
    assert config.sui_binary == "sui"


def test_ledger_config_applies_overrides(clean_env: pytest.MonkeyPatch) -> None:
    clean_env.setenv("CHAINSEED_NETWORK", "mainnet")
    clean_env.setenv("SUI_RPC_URL", "https://rpc.example")
    clean_env.setenv("CHAINSEED_GAS_BUDGET", "5000")

    config = get_ledger_config()

    assert config.network == "mainnet"
    assert config.rpc_url == "https://rpc.example"
    assert not config.has_faucet
    assert config.gas_budget == 5000


def test_explicit_network_wins_over_environment(clean_env: pytest.MonkeyPatch) -> None:
    clean_env.setenv("CHAINSEED_NETWORK", "mainnet")

    assert get_ledger_config(network="testnet").network == "testnet"


def test_custom_network_requires_rpc_url(clean_env: pytest.MonkeyPatch) -> None:
    del clean_env
    with pytest.raises(MissingConfigurationError) as exc:
        get_ledger_config(network="my-devnet")

    assert exc.value.names == ("SUI_RPC_URL",)


def test_invalid_gas_budget_is_rejected(clean_env: pytest.MonkeyPatch) -> None:
    clean_env.setenv("CHAINSEED_GAS_BUDGET", "lots")

    with pytest.raises(ConfigurationError):
        get_ledger_config()


def test_provisioning_config_reads_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("CHAINSEED_MAX_ATTEMPTS", "5")
    monkeypatch.setenv("CHAINSEED_POLL_TIMEOUT", "2.5")
    monkeypatch.setenv("CHAINSEED_MOVE_DIR", "contracts")

    config = get_provisioning_config()

    assert config.max_attempts == 5
    assert config.poll_timeout_seconds == 2.5
    assert config.amm_package_path.name == "prop_amm"
    assert config.amm_package_path.parent.name == "contracts"


def test_provisioning_config_rejects_zero_attempts(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("CHAINSEED_MAX_ATTEMPTS", "0")

    with pytest.raises(ConfigurationError):
        get_provisioning_config()
