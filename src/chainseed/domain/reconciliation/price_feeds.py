"""Publish-or-reuse and batched refresh for mock oracle price feeds.

A cached feed record is identified by *either* its label or its feed id.
Reusing a record whose object was published by an older oracle package is
not allowed: the full ``PriceInfoObject`` type embeds the package id, so a
package republish invalidates every cached feed.
"""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING, Final

from chainseed.domain import matcher
from chainseed.domain.codec import (
    derive_price_feed_value,
    encode_price_feed_id,
    normalize_hex,
    normalize_object_id,
)
from chainseed.domain.errors import NotFoundError
from chainseed.domain.model import (
    ArtifactRecord,
    PriceFeedConfig,
    ResourceDescriptor,
    ResourceKind,
)
from chainseed.domain.transactions import TransactionBlock, move_target

from .context import CLOCK_OBJECT_ID, fetch_shared_ref
from .effects import require_created
from .engine import Creation

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping, Sequence

    from chainseed.domain.model import ProvisionedResource, SharedObjectRef, TransactionEffects
    from chainseed.domain.transactions import CallArg

    from .context import ReconcileContext

log = getLogger(__name__)

PRICE_INFO_TYPE_SUFFIX: Final[str] = "::price_info::PriceInfoObject"
PRICE_INFO_MODULE: Final[str] = "price_info"


def price_info_type(oracle_package_id: str) -> str:
    return f"{normalize_object_id(oracle_package_id)}{PRICE_INFO_TYPE_SUFFIX}"


def price_feed_descriptor(config: PriceFeedConfig, oracle_package_id: str) -> ResourceDescriptor:
    return ResourceDescriptor(
        kind=ResourceKind.PRICE_FEED,
        label=config.label,
        expected_type_suffix=price_info_type(oracle_package_id),
        match_keys=frozenset({(matcher.FEED_ID_KEY, normalize_hex(config.feed_id_hex))}),
    )


def find_matching_record(
    descriptor: ResourceDescriptor,
    records: Iterable[ArtifactRecord],
) -> ArtifactRecord | None:
    """Pick the cached record for ``descriptor``; an exact label match wins."""

    feeds = [record for record in records if record.kind is ResourceKind.PRICE_FEED]
    for record in feeds:
        if record.label == descriptor.label:
            return record
    for record in feeds:
        if matcher.matches_feed_identity(
            descriptor,
            candidate_label=record.label,
            candidate_feed_id=record.attributes.get(matcher.FEED_ID_KEY),
        ):
            return record
    return None


def find_matching_config(
    record: ArtifactRecord,
    configs: Iterable[PriceFeedConfig],
) -> PriceFeedConfig | None:
    for config in configs:
        descriptor = ResourceDescriptor(
            kind=ResourceKind.PRICE_FEED,
            label=config.label,
            match_keys=frozenset({(matcher.FEED_ID_KEY, normalize_hex(config.feed_id_hex))}),
        )
        if matcher.matches_feed_identity(
            descriptor,
            candidate_label=record.label,
            candidate_feed_id=record.attributes.get(matcher.FEED_ID_KEY),
        ):
            return config
    return None


def _price_arguments(block: TransactionBlock, config: PriceFeedConfig) -> list[CallArg]:
    value = derive_price_feed_value(config.price, config.exponent)
    return [
        block.pure_u64(value.magnitude, "price magnitude"),
        block.pure_bool(value.is_negative),
        block.pure_u64(config.confidence, "confidence"),
        block.pure_u64(value.exponent_magnitude, "exponent magnitude"),
        block.pure_bool(value.exponent_is_negative),
    ]


def add_publish_price_feed(
    block: TransactionBlock,
    oracle_package_id: str,
    config: PriceFeedConfig,
    clock: SharedObjectRef,
) -> None:
    block.move_call(
        move_target(oracle_package_id, PRICE_INFO_MODULE, "publish_price_feed"),
        [
            block.pure_bytes(encode_price_feed_id(config.feed_id_hex)),
            *_price_arguments(block, config),
            block.shared_object(clock),
        ],
    )


def add_update_price_feed(
    block: TransactionBlock,
    oracle_package_id: str,
    price_info: SharedObjectRef,
    config: PriceFeedConfig,
    clock: SharedObjectRef,
) -> None:
    block.move_call(
        move_target(oracle_package_id, PRICE_INFO_MODULE, "update_price_feed"),
        [
            block.shared_object(price_info),
            *_price_arguments(block, config),
            block.shared_object(clock),
        ],
    )


async def ensure_price_feed(
    ctx: ReconcileContext,
    config: PriceFeedConfig,
    *,
    oracle_package_id: str,
    records: Iterable[ArtifactRecord] | None = None,
    force: bool = False,
) -> ProvisionedResource:
    descriptor = price_feed_descriptor(config, oracle_package_id)
    candidates = ctx.reconciler.cached_records().values() if records is None else records
    existing = find_matching_record(descriptor, candidates)
    if existing is not None and existing.label != config.label:
        log.info("Feed %s matched cached record %s by feed id", config.label, existing.label)

    async def create() -> Creation:
        return await _publish(ctx, config, oracle_package_id=oracle_package_id)

    return await ctx.reconciler.ensure(descriptor, existing, create, force=force)


async def _publish(
    ctx: ReconcileContext,
    config: PriceFeedConfig,
    *,
    oracle_package_id: str,
) -> Creation:
    clock = await fetch_shared_ref(ctx.ledger, CLOCK_OBJECT_ID, mutable=False)

    def build() -> TransactionBlock:
        block = TransactionBlock(gas_budget=ctx.gas_budget)
        add_publish_price_feed(block, oracle_package_id, config, clock)
        return block

    effects = await ctx.executor.submit(ctx.signer, build, label=f"publish feed {config.label}")
    created = require_created(effects, PRICE_INFO_TYPE_SUFFIX, label=config.label)
    record = ArtifactRecord(
        network=ctx.network,
        kind=ResourceKind.PRICE_FEED,
        label=config.label,
        object_id=created.object_id,
        attributes={
            matcher.FEED_ID_KEY: normalize_hex(config.feed_id_hex),
            "object_type": created.object_type,
        },
    )
    return Creation(record=record, effects=effects)


async def refresh_price_feeds(
    ctx: ReconcileContext,
    configs: Sequence[PriceFeedConfig],
    records: Iterable[ArtifactRecord],
    *,
    oracle_package_id: str,
) -> TransactionEffects | None:
    """Push fresh prices and timestamps for every feed with a known config.

    All updates go into one transaction. Returns ``None`` when no record has
    a matching config, in which case nothing is submitted.
    """

    pairs: list[tuple[ArtifactRecord, PriceFeedConfig]] = []
    for record in records:
        if record.kind is not ResourceKind.PRICE_FEED:
            continue
        config = find_matching_config(record, configs)
        if config is None:
            log.warning("No feed configuration matches %s; skipping update", record.label)
            continue
        pairs.append((record, config))

    if not pairs:
        return None

    clock = await fetch_shared_ref(ctx.ledger, CLOCK_OBJECT_ID, mutable=False)
    feed_refs: Mapping[str, SharedObjectRef] = {
        record.object_id: await fetch_shared_ref(ctx.ledger, record.object_id, mutable=True)
        for record, _ in pairs
    }

    def build() -> TransactionBlock:
        block = TransactionBlock(gas_budget=ctx.gas_budget)
        for record, config in pairs:
            add_update_price_feed(
                block, oracle_package_id, feed_refs[record.object_id], config, clock
            )
        return block

    effects = await ctx.executor.submit(ctx.signer, build, label="refresh price feeds")
    log.info("Refreshed %s price feed(s) in %s", len(pairs), effects.digest)
    return effects


LOCAL_NETWORK: Final[str] = "localnet"


def resolve_price_feed_id(
    *,
    network: str,
    explicit_feed_id: str | None,
    label: str,
    records: Iterable[ArtifactRecord],
    known_configs: Iterable[PriceFeedConfig],
) -> str:
    """Pick the feed id an AMM config should reference.

    An explicit id always wins. Shared networks have no mock feeds, so they
    require one; on localnet the cached mock feed for ``label`` is used,
    falling back to the built-in mock configuration.
    """

    if explicit_feed_id and explicit_feed_id.strip():
        return normalize_hex(explicit_feed_id)

    if network != LOCAL_NETWORK:
        raise NotFoundError(
            f"A price feed id is required on {network}; pass it explicitly",
            kind=ResourceKind.PRICE_FEED.value,
            label=label,
            stage="resolve-feed-id",
        )

    for record in records:
        feed_id = record.attributes.get(matcher.FEED_ID_KEY)
        if record.kind is ResourceKind.PRICE_FEED and record.label == label and feed_id:
            return normalize_hex(feed_id)

    for config in known_configs:
        if config.label == label:
            log.warning("No cached mock feed for %s; using the default feed id", label)
            return normalize_hex(config.feed_id_hex)

    raise NotFoundError(
        "Unable to resolve a price feed id; seed the mock feeds or pass one explicitly",
        kind=ResourceKind.PRICE_FEED.value,
        label=label,
        stage="resolve-feed-id",
    )
