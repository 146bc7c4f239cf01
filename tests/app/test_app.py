from __future__ import annotations

import pytest

from chainseed.app import (
    SeedAmmOptions,
    SeedMocksOptions,
    UpdateAmmOptions,
    seed_amm,
    seed_mocks,
    show_artifacts,
    update_amm,
    view_amm,
)
from chainseed.config import ConfigurationError
from chainseed.domain.errors import NotFoundError, TransactionFailedError
from chainseed.domain.model import (
    DEFAULT_MOCK_PRICE_FEED,
    ArtifactRecord,
    ProvisionStatus,
    ResourceKind,
    TransactionEffects,
)
from chainseed.domain.reconciliation import RunReport  # noqa: TC001
from chainseed.domain.reconciliation.config_objects import AmmConfigOverrides, amm_config_type
from chainseed.domain.reconciliation.price_feeds import price_info_type
from tests.support.ledger import (
    FakeFunding,
    FakeLedger,
    FakeSigner,
    InMemoryArtifactStore,
    created,
    effects,
    oid,
)

ORACLE = oid(0x0A)
COIN = oid(0xC0)
AMM = oid(0xA11)
COIN_TYPE = f"{COIN}::mock_coin::LocalMockUsd"
CONFIG_ID = oid(0xC0F)
STORE_ID = oid(0x5)
CAP_TYPE = f"{AMM}::manager::AMMAdminCap"

_ENV_VARS = (
    "CHAINSEED_NETWORK",
    "SUI_RPC_URL",
    "SUI_FAUCET_URL",
    "SUI_BINARY",
    "CHAINSEED_GAS_BUDGET",
    "CHAINSEED_POLL_TIMEOUT",
    "CHAINSEED_POLL_INTERVAL",
    "CHAINSEED_MAX_ATTEMPTS",
    "CHAINSEED_MIN_BALANCE",
    "CHAINSEED_MOVE_DIR",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("CHAINSEED_POLL_TIMEOUT", "0.05")
    monkeypatch.setenv("CHAINSEED_POLL_INTERVAL", "0.001")


def _mock_outcomes() -> tuple[TransactionEffects, ...]:
    return (
        effects(
            "0xoracle",
            created(oid(0x101), "0x2::package::UpgradeCap"),
            published=ORACLE,
        ),
        effects("0xcoin", published=COIN),
        effects(
            "0xinit",
            created(oid(0x11), f"0x2::coin_registry::Currency<{COIN_TYPE}>", shared=True),
            created(oid(0x12), f"0x2::coin::TreasuryCap<{COIN_TYPE}>"),
        ),
        effects("0xfeed", created(oid(0xF1), price_info_type(ORACLE), shared=True)),
        effects("0xrefresh"),
    )


def _seed_mocks(
    ledger: FakeLedger,
    store: InMemoryArtifactStore,
    options: SeedMocksOptions | None = None,
    *,
    network: str = "localnet",
) -> RunReport:
    return seed_mocks(
        options,
        network=network,
        ledger=ledger,
        signer=FakeSigner(),
        artifacts=store,
        funding=FakeFunding(),
    )


def test_seed_mocks_provisions_everything_once() -> None:
    ledger = FakeLedger().with_system_objects().script(*_mock_outcomes())
    store = InMemoryArtifactStore()

    report = _seed_mocks(ledger, store)

    assert report.ok
    assert [outcome.label for outcome in report.outcomes] == [
        "pyth-mock",
        "coin-mock",
        "LocalMockUsd",
        DEFAULT_MOCK_PRICE_FEED.label,
    ]
    assert len(ledger.executed) == 5
    records = store.data["localnet"]
    assert set(records) == {
        "package/pyth-mock",
        "package/coin-mock",
        "currency/LocalMockUsd",
        f"price_feed/{DEFAULT_MOCK_PRICE_FEED.label}",
    }

    # A second run without the refresh step needs no transactions.
    again = _seed_mocks(ledger, store, SeedMocksOptions(refresh_feeds=False))

    assert again.ok
    assert all(outcome.status is ProvisionStatus.REUSED for outcome in again.outcomes)
    assert len(ledger.executed) == 5


def test_seed_mocks_isolates_a_failed_package() -> None:
    oracle, _coin, _init, feed, refresh = _mock_outcomes()
    ledger = FakeLedger().with_system_objects()
    ledger.script(
        oracle,
        TransactionFailedError("MoveAbort in build: dependency missing"),
        feed,
        refresh,
    )
    store = InMemoryArtifactStore()

    report = _seed_mocks(ledger, store)

    assert not report.ok
    (failure,) = report.failures
    assert failure.label == "coin-mock"
    assert report.skipped == ["LocalMockUsd"]
    assert f"price_feed/{DEFAULT_MOCK_PRICE_FEED.label}" in store.data["localnet"]


def test_seed_mocks_is_localnet_only() -> None:
    ledger = FakeLedger()

    with pytest.raises(ConfigurationError):
        _seed_mocks(ledger, InMemoryArtifactStore(), network="testnet")

    assert ledger.executed == []


def test_seed_amm_publishes_package_and_config() -> None:
    ledger = FakeLedger().script(
        effects(
            "0xamm",
            created(STORE_ID, f"{AMM}::manager::AdminCapStore", shared=True),
            published=AMM,
        ),
        effects("0xcfg", created(CONFIG_ID, amm_config_type(AMM), shared=True)),
    )
    store = InMemoryArtifactStore()

    report = seed_amm(
        SeedAmmOptions(base_spread_bps="30"),
        network="localnet",
        ledger=ledger,
        signer=FakeSigner(),
        artifacts=store,
        funding=FakeFunding(),
    )

    assert report.ok
    package = store.data["localnet"]["package/prop_amm"]
    assert package.auxiliary_ids["admin_cap_store"] == STORE_ID
    assert package.attributes["publish_digest"] == "0xamm"
    config = store.data["localnet"]["config_object/amm_config"]
    assert config.object_id == CONFIG_ID
    assert config.attributes["package_id"] == AMM


def test_seed_amm_on_shared_network_needs_a_feed_id() -> None:
    ledger = FakeLedger()
    ledger.add_package(AMM)
    store = InMemoryArtifactStore()

    report = seed_amm(
        SeedAmmOptions(amm_package_id=AMM),
        network="testnet",
        ledger=ledger,
        signer=FakeSigner(),
        artifacts=store,
        funding=FakeFunding(),
    )

    assert not report.ok
    (failure,) = report.failures
    assert failure.stage == "resolve-feed-id"
    assert ledger.executed == []


def _amm_state() -> tuple[FakeLedger, InMemoryArtifactStore]:
    ledger = FakeLedger()
    ledger.add_package(AMM)
    ledger.add_object(STORE_ID, f"{AMM}::manager::AdminCapStore", shared=True)
    ledger.add_object(
        CONFIG_ID,
        amm_config_type(AMM),
        shared=True,
        fields={
            "base_spread_bps": "25",
            "volatility_multiplier_bps": "200",
            "use_laser": False,
            "trading_paused": False,
            "pyth_price_feed_id": list(bytes.fromhex("20" * 32)),
        },
    )
    ledger.transactions["0xamm"] = effects(
        "0xamm",
        created(STORE_ID, f"{AMM}::manager::AdminCapStore", shared=True),
        published=AMM,
    )
    package = ArtifactRecord(
        network="localnet",
        kind=ResourceKind.PACKAGE,
        label="prop_amm",
        object_id=AMM,
        attributes={"publish_digest": "0xamm"},
    )
    config = ArtifactRecord(
        network="localnet",
        kind=ResourceKind.CONFIG_OBJECT,
        label="amm_config",
        object_id=CONFIG_ID,
        attributes={"package_id": AMM},
    )
    store = InMemoryArtifactStore(data={"localnet": {package.key: package, config.key: config}})
    return ledger, store


def test_update_amm_claims_the_admin_cap_then_updates() -> None:
    ledger, store = _amm_state()
    ledger.script(effects("0xclaim", created(oid(0xCA9), CAP_TYPE)), effects("0xupdate"))

    update = update_amm(
        UpdateAmmOptions(overrides=AmmConfigOverrides(trading_paused=True)),
        network="localnet",
        ledger=ledger,
        signer=FakeSigner(),
        artifacts=store,
        funding=FakeFunding(),
    )

    assert update.capability.object_id == oid(0xCA9)
    assert update.capability.granting_store_id == STORE_ID
    assert update.settings.trading_paused is True
    assert update.effects.digest == "0xupdate"
    assert len(ledger.executed) == 2
    assert store.data["localnet"]["config_object/amm_config"].auxiliary_ids == {
        "admin_cap": oid(0xCA9)
    }


def test_update_amm_resolves_feed_label() -> None:
    ledger, store = _amm_state()
    feed_id = "0x" + "ab" * 32
    feed = ArtifactRecord(
        network="localnet",
        kind=ResourceKind.PRICE_FEED,
        label="MOCK_ETH_FEED",
        object_id=oid(0xF2),
        attributes={"feed_id": feed_id},
    )
    store.data["localnet"][feed.key] = feed

    update = update_amm(
        UpdateAmmOptions(price_feed_label="MOCK_ETH_FEED", admin_cap_id="0xca9", dry_run=True),
        network="localnet",
        ledger=ledger,
        signer=FakeSigner(),
        artifacts=store,
    )

    assert update.dry_run
    assert update.settings.price_feed_id_hex == feed_id
    assert ledger.executed == []
    assert len(ledger.dry_runs) == 1


def test_update_amm_requires_known_ids() -> None:
    with pytest.raises(NotFoundError) as excinfo:
        update_amm(
            UpdateAmmOptions(),
            network="localnet",
            ledger=FakeLedger(),
            signer=FakeSigner(),
            artifacts=InMemoryArtifactStore(),
        )

    assert excinfo.value.stage == "resolve-ids"


def test_show_artifacts_reads_the_network_cache() -> None:
    record = ArtifactRecord(
        network="localnet", kind=ResourceKind.PACKAGE, label="prop_amm", object_id=AMM
    )
    store = InMemoryArtifactStore(data={"localnet": {record.key: record}})

    assert show_artifacts(network="localnet", artifacts=store) == {record.key: record}
    assert show_artifacts(network="devnet", artifacts=store) == {}


def test_view_amm_reads_the_cached_config_without_transactions() -> None:
    ledger, store = _amm_state()

    view = view_amm(network="localnet", ledger=ledger, artifacts=store)

    assert view.overview.config_id == CONFIG_ID
    assert view.overview.base_spread_bps == 25
    assert view.overview.volatility_multiplier_bps == 200
    assert view.overview.price_feed_id_hex == "0x" + "20" * 32
    assert view.initial_shared_version == 3
    assert ledger.executed == []
    assert ledger.dry_runs == []


def test_view_amm_prefers_an_explicit_config_id() -> None:
    ledger, store = _amm_state()

    with pytest.raises(NotFoundError) as excinfo:
        view_amm(config_id="0xdead", network="localnet", ledger=ledger, artifacts=store)

    assert excinfo.value.stage == "read-config"


def test_view_amm_requires_a_config_id() -> None:
    with pytest.raises(NotFoundError) as excinfo:
        view_amm(network="localnet", ledger=FakeLedger(), artifacts=InMemoryArtifactStore())

    assert excinfo.value.stage == "resolve-ids"
