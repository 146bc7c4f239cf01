from __future__ import annotations

import asyncio

import pytest

from chainseed.domain.authorization import AuthorizationResolver
from chainseed.domain.errors import FormatError, MissingCapabilityError, RangeError
from chainseed.domain.model import (
    AmmConfigSettings,
    ArtifactRecord,
    DiscoveredResource,
    ProvisionStatus,
    ResourceKind,
)
from chainseed.domain.reconciliation.config_objects import (
    AmmConfigOverrides,
    admin_cap_request,
    amm_config_type,
    decode_amm_config,
    ensure_amm_config,
    resolve_amm_config_settings,
    update_amm_config,
)
from chainseed.domain.transactions import MoveCall, ObjectArg, PureArg, ResultArg
from tests.support.ledger import (
    FakeLedger,
    FakeSigner,
    InMemoryArtifactStore,
    created,
    effects,
    make_context,
    oid,
)

AMM = oid(0xA11)
CONFIG_ID = oid(0xC0F)
CAP_ID = oid(0xCA9)
FEED_ID = "0x" + "20" * 32
CONFIG_FIELDS: dict[str, object] = {
    "base_spread_bps": "25",
    "volatility_multiplier_bps": "200",
    "use_laser": False,
    "trading_paused": False,
    "pyth_price_feed_id": list(bytes.fromhex("20" * 32)),
}


def _settings() -> AmmConfigSettings:
    return resolve_amm_config_settings(price_feed_id_hex=FEED_ID)


def _config_record(package_id: str = AMM, **aux: str) -> ArtifactRecord:
    return ArtifactRecord(
        network="localnet",
        kind=ResourceKind.CONFIG_OBJECT,
        label="amm_config",
        object_id=CONFIG_ID,
        auxiliary_ids=aux,
        attributes={"package_id": package_id},
    )


def _ledger_with_config(**fields: object) -> FakeLedger:
    ledger = FakeLedger()
    ledger.add_object(
        CONFIG_ID,
        amm_config_type(AMM),
        shared=True,
        fields={**CONFIG_FIELDS, **fields},
    )
    ledger.add_object(CAP_ID, f"{AMM}::manager::AMMAdminCap", owner=FakeSigner().address)
    return ledger


def _resolver(ledger: FakeLedger) -> AuthorizationResolver:
    ctx = make_context(ledger)
    return AuthorizationResolver(ledger=ledger, executor=ctx.executor, signer=ctx.signer)


def test_settings_apply_defaults_and_validate() -> None:
    settings = resolve_amm_config_settings(price_feed_id_hex=FEED_ID.upper().replace("0X", "0x"))

    assert settings.base_spread_bps == 25
    assert settings.volatility_multiplier_bps == 200
    assert settings.use_laser is False
    assert settings.price_feed_id_hex == FEED_ID

    with pytest.raises(RangeError):
        resolve_amm_config_settings(price_feed_id_hex=FEED_ID, base_spread_bps="0")
    with pytest.raises(FormatError):
        resolve_amm_config_settings(price_feed_id_hex="0x1234")


def test_config_is_created_and_shared() -> None:
    ledger = FakeLedger().script(
        effects("0xcreate", created(CONFIG_ID, amm_config_type(AMM), shared=True))
    )
    store = InMemoryArtifactStore()

    result = asyncio.run(
        ensure_amm_config(make_context(ledger, store), _settings(), package_id=AMM)
    )

    assert result.status is ProvisionStatus.CREATED
    (block,) = ledger.executed
    create, share = block.commands
    assert isinstance(create, MoveCall)
    assert isinstance(share, MoveCall)
    assert create.target == f"{AMM}::manager::create_amm_config"
    assert share.target == f"{AMM}::manager::share_amm_config"
    assert share.arguments == (ResultArg(command_index=0),)
    record = store.data["localnet"]["config_object/amm_config"]
    assert record.attributes["package_id"] == AMM
    assert record.attributes["initial_shared_version"] == "3"


def test_cached_config_is_reused() -> None:
    ledger = _ledger_with_config()
    record = _config_record()
    store = InMemoryArtifactStore(data={"localnet": {record.key: record}})

    result = asyncio.run(
        ensure_amm_config(make_context(ledger, store), _settings(), package_id=AMM)
    )

    assert result.status is ProvisionStatus.REUSED
    assert ledger.executed == []


def test_config_of_another_package_is_not_reused() -> None:
    ledger = _ledger_with_config().script(
        effects("0xcreate", created(oid(0xC10), amm_config_type(AMM), shared=True))
    )
    stale = _config_record(package_id=oid(0xB0B))
    store = InMemoryArtifactStore(data={"localnet": {stale.key: stale}})

    result = asyncio.run(
        ensure_amm_config(make_context(ledger, store), _settings(), package_id=AMM)
    )

    assert result.status is ProvisionStatus.CREATED
    assert result.object_id == oid(0xC10)


def test_update_keeps_unspecified_fields() -> None:
    ledger = _ledger_with_config().script(effects("0xupdate"))
    store = InMemoryArtifactStore(
        data={"localnet": {"config_object/amm_config": _config_record(extra=oid(0xE))}}
    )
    ctx = make_context(ledger, store)

    update = asyncio.run(
        update_amm_config(
            ctx,
            _resolver(ledger),
            admin_cap_request(AMM, publish_digest=None),
            config_id=CONFIG_ID,
            overrides=AmmConfigOverrides(base_spread_bps="40", trading_paused=True),
        )
    )

    assert update.settings.base_spread_bps == 40
    assert update.settings.volatility_multiplier_bps == 200
    assert update.settings.trading_paused is True
    assert update.settings.price_feed_id_hex == FEED_ID
    assert update.capability.object_id == CAP_ID
    assert update.current is not None

    (block,) = ledger.executed
    (command,) = block.commands
    assert isinstance(command, MoveCall)
    assert command.target == f"{AMM}::manager::update_amm_config"
    _config, cap, spread, volatility, laser, paused, feed = command.arguments
    assert cap == ObjectArg(object_id=CAP_ID)
    assert [
        arg.value for arg in (spread, volatility, laser, paused) if isinstance(arg, PureArg)
    ] == [40, 200, False, True]
    assert isinstance(feed, PureArg)
    assert feed.value == bytes.fromhex("20" * 32)

    record = store.data["localnet"]["config_object/amm_config"]
    assert record.auxiliary_ids == {"extra": oid(0xE), "admin_cap": CAP_ID}


def test_dry_run_update_simulates_only() -> None:
    ledger = _ledger_with_config()
    store = InMemoryArtifactStore()

    update = asyncio.run(
        update_amm_config(
            make_context(ledger, store),
            _resolver(ledger),
            admin_cap_request(AMM, publish_digest=None),
            config_id=CONFIG_ID,
            overrides=AmmConfigOverrides(use_laser=True),
            dry_run=True,
        )
    )

    assert update.dry_run
    assert update.current is None
    assert update.settings.use_laser is True
    assert ledger.executed == []
    assert len(ledger.dry_runs) == 1
    assert store.writes == 0


def test_dry_run_without_capability_fails_before_simulating() -> None:
    ledger = _ledger_with_config()
    del ledger.objects[CAP_ID]

    with pytest.raises(MissingCapabilityError):
        asyncio.run(
            update_amm_config(
                make_context(ledger),
                _resolver(ledger),
                admin_cap_request(AMM, publish_digest="0xpublish"),
                config_id=CONFIG_ID,
                overrides=AmmConfigOverrides(),
                dry_run=True,
            )
        )

    assert ledger.dry_runs == []
    assert ledger.executed == []


def test_decoding_rejects_missing_and_malformed_fields() -> None:
    def discovered(**fields: object) -> DiscoveredResource:
        return DiscoveredResource(
            object_id=CONFIG_ID,
            object_type=amm_config_type(AMM),
            content_fields={**CONFIG_FIELDS, **fields},
        )

    overview = decode_amm_config(discovered(pyth_price_feed_id=FEED_ID))
    assert overview.price_feed_id_hex == FEED_ID

    with pytest.raises(FormatError, match="missing field"):
        decode_amm_config(discovered(use_laser=None))
    with pytest.raises(FormatError, match="not a boolean"):
        decode_amm_config(discovered(trading_paused="yes"))
    with pytest.raises(FormatError, match="not numeric"):
        decode_amm_config(discovered(base_spread_bps=[1]))
    with pytest.raises(FormatError, match="byte vector"):
        decode_amm_config(discovered(pyth_price_feed_id=[256]))
