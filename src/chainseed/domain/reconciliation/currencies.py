"""Initialise-or-reuse for registry-managed currencies."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING, Final

from chainseed.domain.codec import normalize_object_id
from chainseed.domain.errors import FormatError, LedgerUnavailableError
from chainseed.domain.model import (
    ArtifactRecord,
    CurrencySeed,
    ProvisionedResource,
    ProvisionStatus,
    ResourceDescriptor,
    ResourceKind,
    artifact_key,
)
from chainseed.domain.transactions import TransactionBlock, move_target

from .effects import find_first_created, require_created
from .engine import Creation

if TYPE_CHECKING:
    from chainseed.domain.model import SharedObjectRef

    from .context import ReconcileContext

log = getLogger(__name__)

DEFAULT_CURRENCY_LABEL: Final[str] = "LocalMockUsd"
COIN_TYPE_ATTRIBUTE: Final[str] = "coin_type"
SOURCE_ATTRIBUTE: Final[str] = "source"
ADOPTED_SOURCE: Final[str] = "coin-metadata"


def currency_type_suffix(coin_type: str) -> str:
    return f"::coin_registry::Currency<{coin_type}>"


def treasury_cap_type_suffix(coin_type: str) -> str:
    return f"::coin::TreasuryCap<{coin_type}>"


def coin_metadata_type_suffix(coin_type: str) -> str:
    return f"::coin::CoinMetadata<{coin_type}>"


def coin_type_suffix(coin_type: str) -> str:
    return f"::coin::Coin<{coin_type}>"


def default_currency_seed(coin_package_id: str) -> CurrencySeed:
    """Seed for the mock USD coin shipped with the local coin package."""

    package_id = normalize_object_id(coin_package_id)
    return CurrencySeed(
        label=DEFAULT_CURRENCY_LABEL,
        coin_type=f"{package_id}::mock_coin::LocalMockUsd",
        init_target=move_target(package_id, "mock_coin", "init_local_mock_usd"),
    )


def currency_descriptor(seed: CurrencySeed, *, adopted: bool = False) -> ResourceDescriptor:
    """Records adopted from coin metadata point at the metadata object."""

    if adopted:
        suffix = coin_metadata_type_suffix(seed.coin_type)
    else:
        suffix = currency_type_suffix(seed.coin_type)
    return ResourceDescriptor(
        kind=ResourceKind.CURRENCY,
        label=seed.label,
        expected_type_suffix=suffix,
        match_keys=frozenset({(COIN_TYPE_ATTRIBUTE, seed.coin_type)}),
    )


async def ensure_currency(
    ctx: ReconcileContext,
    seed: CurrencySeed,
    *,
    owner: str,
    registry: SharedObjectRef,
    force: bool = False,
) -> ProvisionedResource:
    existing = ctx.reconciler.cached(artifact_key(ResourceKind.CURRENCY, seed.label))
    if existing is not None and existing.attributes.get(COIN_TYPE_ATTRIBUTE) != seed.coin_type:
        log.info("Cached %s record is for another coin type", seed.label)
        existing = None
    descriptor = currency_descriptor(
        seed,
        adopted=(
            existing is not None
            and existing.attributes.get(SOURCE_ATTRIBUTE) == ADOPTED_SOURCE
        ),
    )

    if existing is None and not force:
        adopted = await adopt_initialised_currency(ctx, seed)
        if adopted is not None:
            ctx.reconciler.persist(adopted)
            log.info("Adopting initialised currency %s: %s", seed.label, adopted.object_id)
            return ProvisionedResource(
                kind=ResourceKind.CURRENCY,
                label=seed.label,
                object_id=adopted.object_id,
                status=ProvisionStatus.REUSED,
                record=adopted,
            )

    async def create() -> Creation:
        return await _initialise(ctx, seed, owner=owner, registry=registry)

    return await ctx.reconciler.ensure(descriptor, existing, create, force=force)


async def adopt_initialised_currency(
    ctx: ReconcileContext,
    seed: CurrencySeed,
) -> ArtifactRecord | None:
    """Build a record for a currency initialised outside this cache, if any."""

    try:
        metadata = await ctx.ledger.get_coin_metadata(seed.coin_type)
    except LedgerUnavailableError as exc:
        log.warning("Coin metadata lookup for %s failed: %s", seed.coin_type, exc)
        return None
    if not metadata:
        return None

    raw_id = metadata.get("id")
    if not isinstance(raw_id, str) or not raw_id:
        raise FormatError(
            f"Coin metadata for {seed.coin_type} has no object id",
            kind=ResourceKind.CURRENCY.value,
            label=seed.label,
            stage="adopt-metadata",
        )
    metadata_id = normalize_object_id(raw_id)
    return ArtifactRecord(
        network=ctx.network,
        kind=ResourceKind.CURRENCY,
        label=seed.label,
        object_id=metadata_id,
        auxiliary_ids={"metadata": metadata_id},
        attributes={COIN_TYPE_ATTRIBUTE: seed.coin_type, SOURCE_ATTRIBUTE: ADOPTED_SOURCE},
    )


def _build_initialise(
    ctx: ReconcileContext,
    seed: CurrencySeed,
    owner: str,
    registry: SharedObjectRef,
) -> TransactionBlock:
    block = TransactionBlock(gas_budget=ctx.gas_budget)
    block.move_call(
        seed.init_target,
        [block.shared_object(registry), block.pure_address(owner)],
    )
    return block


async def _initialise(
    ctx: ReconcileContext,
    seed: CurrencySeed,
    *,
    owner: str,
    registry: SharedObjectRef,
) -> Creation:
    effects = await ctx.executor.submit(
        ctx.signer,
        lambda: _build_initialise(ctx, seed, owner, registry),
        label=f"initialise {seed.label}",
    )
    currency = require_created(effects, currency_type_suffix(seed.coin_type), label=seed.label)

    auxiliary_ids: dict[str, str] = {}
    for role, suffix in (
        ("treasury_cap", treasury_cap_type_suffix(seed.coin_type)),
        ("metadata", coin_metadata_type_suffix(seed.coin_type)),
        ("minted_coin", coin_type_suffix(seed.coin_type)),
    ):
        created = find_first_created(effects, suffix)
        if created is not None:
            auxiliary_ids[role] = created.object_id

    record = ArtifactRecord(
        network=ctx.network,
        kind=ResourceKind.CURRENCY,
        label=seed.label,
        object_id=currency.object_id,
        auxiliary_ids=auxiliary_ids,
        attributes={COIN_TYPE_ATTRIBUTE: seed.coin_type},
    )
    return Creation(record=record, effects=effects)
