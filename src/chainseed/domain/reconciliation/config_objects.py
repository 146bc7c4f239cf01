"""Create, read and update the shared AMM configuration object."""

from __future__ import annotations

from dataclasses import dataclass, replace
from logging import getLogger
from typing import TYPE_CHECKING, Final

from chainseed.domain.authorization import CapabilityRequest
from chainseed.domain.codec import (
    decode_hex,
    encode_price_feed_id,
    normalize_hex,
    normalize_object_id,
    parse_non_negative_u64,
    parse_positive_u64,
)
from chainseed.domain.errors import FormatError, NotFoundError
from chainseed.domain.model import (
    AmmConfigOverview,
    AmmConfigSettings,
    ArtifactRecord,
    ProvisionedResource,
    ResourceDescriptor,
    ResourceKind,
    artifact_key,
)
from chainseed.domain.transactions import TransactionBlock, move_target

from .context import fetch_shared_ref
from .effects import require_created
from .engine import Creation

if TYPE_CHECKING:
    from collections.abc import Mapping

    from chainseed.domain.authorization import AuthorizationResolver
    from chainseed.domain.model import (
        CapabilityHandle,
        DiscoveredResource,
        SharedObjectRef,
        TransactionEffects,
    )
    from chainseed.domain.ports import LedgerClient

    from .context import ReconcileContext

log = getLogger(__name__)

AMM_CONFIG_TYPE_SUFFIX: Final[str] = "::manager::AMMConfig"
AMM_ADMIN_CAP_TYPE_SUFFIX: Final[str] = "::manager::AMMAdminCap"
AMM_ADMIN_CAP_STORE_TYPE_SUFFIX: Final[str] = "::manager::AdminCapStore"
AMM_MODULE: Final[str] = "manager"
CLAIM_ADMIN_CAP_FUNCTION: Final[str] = f"{AMM_MODULE}::claim_admin_cap"

DEFAULT_AMM_CONFIG_LABEL: Final[str] = "amm_config"
DEFAULT_BASE_SPREAD_BPS: Final[int] = 25
DEFAULT_VOLATILITY_MULTIPLIER_BPS: Final[int] = 200

PACKAGE_ID_ATTRIBUTE: Final[str] = "package_id"


@dataclass(frozen=True, slots=True)
class AmmConfigOverrides:
    """Fields to change; ``None`` keeps the current on-chain value."""

    base_spread_bps: str | int | None = None
    volatility_multiplier_bps: str | int | None = None
    use_laser: bool | None = None
    trading_paused: bool | None = None
    price_feed_id_hex: str | None = None


@dataclass(frozen=True, slots=True)
class ConfigUpdate:
    previous: AmmConfigOverview
    settings: AmmConfigSettings
    capability: CapabilityHandle
    effects: TransactionEffects
    dry_run: bool
    current: AmmConfigOverview | None = None


@dataclass(frozen=True, slots=True)
class AmmConfigView:
    overview: AmmConfigOverview
    initial_shared_version: int | None


def resolve_amm_config_settings(
    *,
    price_feed_id_hex: str,
    base_spread_bps: str | int | None = None,
    volatility_multiplier_bps: str | int | None = None,
    use_laser: bool | None = None,
) -> AmmConfigSettings:
    """Validate creation inputs, applying defaults for omitted values."""

    encode_price_feed_id(price_feed_id_hex)
    return AmmConfigSettings(
        base_spread_bps=parse_positive_u64(
            DEFAULT_BASE_SPREAD_BPS if base_spread_bps is None else base_spread_bps,
            "Base spread bps",
        ),
        volatility_multiplier_bps=parse_non_negative_u64(
            DEFAULT_VOLATILITY_MULTIPLIER_BPS
            if volatility_multiplier_bps is None
            else volatility_multiplier_bps,
            "Volatility multiplier bps",
        ),
        use_laser=bool(use_laser),
        price_feed_id_hex=normalize_hex(price_feed_id_hex),
    )


def merge_overrides(
    current: AmmConfigOverview,
    overrides: AmmConfigOverrides,
) -> AmmConfigSettings:
    base_spread = (
        current.base_spread_bps
        if overrides.base_spread_bps is None
        else parse_positive_u64(overrides.base_spread_bps, "Base spread bps")
    )
    volatility = (
        current.volatility_multiplier_bps
        if overrides.volatility_multiplier_bps is None
        else parse_non_negative_u64(
            overrides.volatility_multiplier_bps, "Volatility multiplier bps"
        )
    )
    feed_id = current.price_feed_id_hex
    if overrides.price_feed_id_hex is not None:
        encode_price_feed_id(overrides.price_feed_id_hex)
        feed_id = normalize_hex(overrides.price_feed_id_hex)

    return AmmConfigSettings(
        base_spread_bps=base_spread,
        volatility_multiplier_bps=volatility,
        use_laser=current.use_laser if overrides.use_laser is None else overrides.use_laser,
        trading_paused=(
            current.trading_paused if overrides.trading_paused is None else overrides.trading_paused
        ),
        price_feed_id_hex=feed_id,
    )


def amm_config_type(package_id: str) -> str:
    return f"{normalize_object_id(package_id)}{AMM_CONFIG_TYPE_SUFFIX}"


def amm_config_descriptor(label: str, package_id: str) -> ResourceDescriptor:
    return ResourceDescriptor(
        kind=ResourceKind.CONFIG_OBJECT,
        label=label,
        expected_type_suffix=amm_config_type(package_id),
        match_keys=frozenset({(PACKAGE_ID_ATTRIBUTE, normalize_object_id(package_id))}),
    )


def admin_cap_request(
    package_id: str,
    *,
    publish_digest: str | None,
    explicit_id: str | None = None,
    dry_run: bool = False,
) -> CapabilityRequest:
    return CapabilityRequest(
        package_id=package_id,
        capability_type_suffix=AMM_ADMIN_CAP_TYPE_SUFFIX,
        store_type_suffix=AMM_ADMIN_CAP_STORE_TYPE_SUFFIX,
        claim_function=CLAIM_ADMIN_CAP_FUNCTION,
        publish_digest=publish_digest,
        explicit_id=explicit_id,
        dry_run=dry_run,
        label="admin cap",
    )


# --- Decoding ----------------------------------------------------------------


def _require_field(fields: Mapping[str, object], name: str, config_id: str) -> object:
    if name not in fields or fields[name] is None:
        raise FormatError(
            f"AMM config {config_id} is missing field {name!r}",
            kind=ResourceKind.CONFIG_OBJECT.value,
            stage="decode-config",
        )
    return fields[name]


def _require_u64(fields: Mapping[str, object], name: str, config_id: str) -> int:
    value = _require_field(fields, name, config_id)
    if isinstance(value, bool) or not isinstance(value, int | str):
        raise FormatError(
            f"AMM config {config_id} field {name!r} is not numeric: {value!r}",
            kind=ResourceKind.CONFIG_OBJECT.value,
            stage="decode-config",
        )
    return parse_non_negative_u64(value, name)


def _require_bool(fields: Mapping[str, object], name: str, config_id: str) -> bool:
    value = _require_field(fields, name, config_id)
    if not isinstance(value, bool):
        raise FormatError(
            f"AMM config {config_id} field {name!r} is not a boolean: {value!r}",
            kind=ResourceKind.CONFIG_OBJECT.value,
            stage="decode-config",
        )
    return value


def _require_bytes_hex(fields: Mapping[str, object], name: str, config_id: str) -> str:
    value = _require_field(fields, name, config_id)
    if isinstance(value, str):
        return normalize_hex(value)
    if isinstance(value, list | tuple) and all(
        isinstance(item, int) and not isinstance(item, bool) and 0 <= item <= 0xFF
        for item in value
    ):
        return decode_hex(list(value))
    raise FormatError(
        f"AMM config {config_id} field {name!r} is not a byte vector",
        kind=ResourceKind.CONFIG_OBJECT.value,
        stage="decode-config",
    )


def decode_amm_config(discovered: DiscoveredResource) -> AmmConfigOverview:
    fields = discovered.content_fields
    config_id = discovered.object_id
    return AmmConfigOverview(
        config_id=config_id,
        base_spread_bps=_require_u64(fields, "base_spread_bps", config_id),
        volatility_multiplier_bps=_require_u64(fields, "volatility_multiplier_bps", config_id),
        use_laser=_require_bool(fields, "use_laser", config_id),
        trading_paused=_require_bool(fields, "trading_paused", config_id),
        price_feed_id_hex=_require_bytes_hex(fields, "pyth_price_feed_id", config_id),
    )


async def _get_config_object(
    ledger: LedgerClient,
    config_id: str,
    network: str,
) -> DiscoveredResource:
    object_id = normalize_object_id(config_id)
    discovered = await ledger.get_object(object_id)
    if discovered is None:
        raise NotFoundError(
            f"AMM config {object_id} was not found on {network}",
            kind=ResourceKind.CONFIG_OBJECT.value,
            stage="read-config",
        )
    return discovered


async def read_amm_config(ctx: ReconcileContext, config_id: str) -> AmmConfigOverview:
    return decode_amm_config(await _get_config_object(ctx.ledger, config_id, ctx.network))


async def view_amm_config(ledger: LedgerClient, config_id: str, *, network: str) -> AmmConfigView:
    """Read-only snapshot of the config, with the version needed to pass it as shared."""

    discovered = await _get_config_object(ledger, config_id, network)
    shared = discovered.shared_ref
    return AmmConfigView(
        overview=decode_amm_config(discovered),
        initial_shared_version=shared.initial_shared_version if shared else None,
    )


# --- Transactions ------------------------------------------------------------


def add_create_amm_config(
    block: TransactionBlock,
    package_id: str,
    settings: AmmConfigSettings,
) -> None:
    config = block.move_call(
        move_target(package_id, AMM_MODULE, "create_amm_config"),
        [
            block.pure_u64(settings.base_spread_bps, "base spread bps"),
            block.pure_u64(settings.volatility_multiplier_bps, "volatility multiplier bps"),
            block.pure_bool(settings.use_laser),
            block.pure_bytes(encode_price_feed_id(settings.price_feed_id_hex)),
        ],
    )
    block.move_call(move_target(package_id, AMM_MODULE, "share_amm_config"), [config])


def add_update_amm_config(
    block: TransactionBlock,
    package_id: str,
    config: SharedObjectRef,
    admin_cap_id: str,
    settings: AmmConfigSettings,
) -> None:
    block.move_call(
        move_target(package_id, AMM_MODULE, "update_amm_config"),
        [
            block.shared_object(config),
            block.object(admin_cap_id),
            block.pure_u64(settings.base_spread_bps, "base spread bps"),
            block.pure_u64(settings.volatility_multiplier_bps, "volatility multiplier bps"),
            block.pure_bool(settings.use_laser),
            block.pure_bool(settings.trading_paused),
            block.pure_bytes(encode_price_feed_id(settings.price_feed_id_hex)),
        ],
    )


# --- Reconciliation ----------------------------------------------------------


async def ensure_amm_config(
    ctx: ReconcileContext,
    settings: AmmConfigSettings,
    *,
    package_id: str,
    label: str = DEFAULT_AMM_CONFIG_LABEL,
    force: bool = False,
) -> ProvisionedResource:
    """Reuse the cached config of ``package_id`` or create and share a new one.

    A cached config is reused as-is; its field values are not compared with
    ``settings``. Use :func:`update_amm_config` to change them.
    """

    package_id = normalize_object_id(package_id)
    descriptor = amm_config_descriptor(label, package_id)
    existing = ctx.reconciler.cached(artifact_key(ResourceKind.CONFIG_OBJECT, label))
    if existing is not None and existing.attributes.get(PACKAGE_ID_ATTRIBUTE) != package_id:
        log.info("Cached %s belongs to another package; creating a new config", label)
        existing = None

    async def create() -> Creation:
        return await _create(ctx, settings, package_id=package_id, label=label)

    return await ctx.reconciler.ensure(descriptor, existing, create, force=force)


async def _create(
    ctx: ReconcileContext,
    settings: AmmConfigSettings,
    *,
    package_id: str,
    label: str,
) -> Creation:
    def build() -> TransactionBlock:
        block = TransactionBlock(gas_budget=ctx.gas_budget)
        add_create_amm_config(block, package_id, settings)
        return block

    effects = await ctx.executor.submit(ctx.signer, build, label=f"create {label}")
    created = require_created(effects, AMM_CONFIG_TYPE_SUFFIX, label=label)
    attributes = {PACKAGE_ID_ATTRIBUTE: package_id, "object_type": created.object_type}
    if created.initial_shared_version is not None:
        attributes["initial_shared_version"] = str(created.initial_shared_version)
    record = ArtifactRecord(
        network=ctx.network,
        kind=ResourceKind.CONFIG_OBJECT,
        label=label,
        object_id=created.object_id,
        attributes=attributes,
    )
    return Creation(record=record, effects=effects)


async def update_amm_config(
    ctx: ReconcileContext,
    resolver: AuthorizationResolver,
    capability: CapabilityRequest,
    *,
    config_id: str,
    overrides: AmmConfigOverrides,
    label: str = DEFAULT_AMM_CONFIG_LABEL,
    dry_run: bool = False,
) -> ConfigUpdate:
    """Patch the shared config: unspecified overrides keep their on-chain values.

    The update call replaces every field, so the current values are read
    first and merged with ``overrides``.
    """

    previous = await read_amm_config(ctx, config_id)
    settings = merge_overrides(previous, overrides)

    handle = await resolver.resolve(replace(capability, dry_run=dry_run))
    package_id = normalize_object_id(capability.package_id)

    shared = await fetch_shared_ref(ctx.ledger, previous.config_id, mutable=True)

    def build() -> TransactionBlock:
        block = TransactionBlock(gas_budget=ctx.gas_budget)
        add_update_amm_config(block, package_id, shared, handle.object_id, settings)
        return block

    if dry_run:
        effects = await ctx.executor.simulate(ctx.signer, build, label=f"update {label}")
        return ConfigUpdate(
            previous=previous,
            settings=settings,
            capability=handle,
            effects=effects,
            dry_run=True,
        )

    effects = await ctx.executor.submit(ctx.signer, build, label=f"update {label}")
    current = await read_amm_config(ctx, previous.config_id)
    cached = ctx.reconciler.cached(artifact_key(ResourceKind.CONFIG_OBJECT, label))
    kept = cached if cached is not None and cached.object_id == previous.config_id else None
    ctx.reconciler.persist(
        ArtifactRecord(
            network=ctx.network,
            kind=ResourceKind.CONFIG_OBJECT,
            label=label,
            object_id=previous.config_id,
            auxiliary_ids={**(kept.auxiliary_ids if kept else {}), "admin_cap": handle.object_id},
            attributes={**(kept.attributes if kept else {}), PACKAGE_ID_ATTRIBUTE: package_id},
        )
    )
    log.info("Updated %s %s in %s", label, previous.config_id, effects.digest)
    return ConfigUpdate(
        previous=previous,
        settings=settings,
        capability=handle,
        effects=effects,
        dry_run=False,
        current=current,
    )
