"""Application orchestration entry points."""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from dataclasses import dataclass, field, replace
from logging import getLogger
from types import MappingProxyType
from typing import TYPE_CHECKING, Final

from chainseed.adapters.artifacts import JsonArtifactStore
from chainseed.adapters.sui import (
    ActiveAddressSigner,
    FaucetClient,
    SuiCliRunner,
    SuiLedgerClient,
    SuiRpcClient,
)
from chainseed.config import (
    ConfigurationError,
    get_ledger_config,
    get_provisioning_config,
    get_storage_config,
)
from chainseed.domain.authorization import AuthorizationResolver
from chainseed.domain.errors import NotFoundError
from chainseed.domain.execution import RetryPolicy, TransactionExecutor
from chainseed.domain.model import DEFAULT_MOCK_PRICE_FEED, ResourceKind, artifact_key
from chainseed.domain.reconciliation import (
    PollSettings,
    ReconcileContext,
    ReconciliationRun,
    Reconciler,
    fetch_shared_ref,
)
from chainseed.domain.reconciliation.config_objects import (
    AMM_ADMIN_CAP_STORE_TYPE_SUFFIX,
    DEFAULT_AMM_CONFIG_LABEL,
    AmmConfigOverrides,
    AmmConfigView,
    ConfigUpdate,
    admin_cap_request,
    ensure_amm_config,
    resolve_amm_config_settings,
    update_amm_config,
    view_amm_config,
)
from chainseed.domain.reconciliation.context import COIN_REGISTRY_OBJECT_ID
from chainseed.domain.reconciliation.currencies import (
    DEFAULT_CURRENCY_LABEL,
    default_currency_seed,
    ensure_currency,
)
from chainseed.domain.reconciliation.packages import (
    PUBLISH_DIGEST_ATTRIBUTE,
    PackageRequest,
    ensure_package,
)
from chainseed.domain.reconciliation.price_feeds import (
    LOCAL_NETWORK,
    ensure_price_feed,
    refresh_price_feeds,
    resolve_price_feed_id,
)

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from chainseed.config import ProvisioningConfig
    from chainseed.domain.model import ArtifactRecord, PriceFeedConfig, ProvisionedResource
    from chainseed.domain.ports import ArtifactStore, FundingSource, LedgerClient, Signer
    from chainseed.domain.reconciliation import RunReport

log = getLogger(__name__)

ORACLE_PACKAGE_LABEL: Final[str] = "pyth-mock"
COIN_PACKAGE_LABEL: Final[str] = "coin-mock"
AMM_PACKAGE_LABEL: Final[str] = "prop_amm"
REFRESH_FEEDS_LABEL: Final[str] = "refresh-price-feeds"

DEFAULT_PRICE_FEEDS: Final[tuple[PriceFeedConfig, ...]] = (DEFAULT_MOCK_PRICE_FEED,)


@dataclass(frozen=True, slots=True)
class SeedMocksOptions:
    re_publish: bool = False
    refresh_feeds: bool = True
    oracle_package_id: str | None = None
    coin_package_id: str | None = None


@dataclass(frozen=True, slots=True)
class SeedAmmOptions:
    re_publish: bool = False
    amm_package_id: str | None = None
    price_feed_id: str | None = None
    price_feed_label: str = DEFAULT_MOCK_PRICE_FEED.label
    base_spread_bps: str | int | None = None
    volatility_multiplier_bps: str | int | None = None
    use_laser: bool | None = None
    label: str = DEFAULT_AMM_CONFIG_LABEL


@dataclass(frozen=True, slots=True)
class UpdateAmmOptions:
    overrides: AmmConfigOverrides = field(default_factory=AmmConfigOverrides)
    config_id: str | None = None
    admin_cap_id: str | None = None
    amm_package_id: str | None = None
    price_feed_label: str | None = None
    label: str = DEFAULT_AMM_CONFIG_LABEL
    dry_run: bool = False


@dataclass(slots=True)
class Session:
    ctx: ReconcileContext
    resolver: AuthorizationResolver
    provisioning: ProvisioningConfig

    @property
    def network(self) -> str:
        return self.ctx.network

    def cached_records(self) -> dict[str, ArtifactRecord]:
        return self.ctx.reconciler.cached_records()


@asynccontextmanager
async def open_session(
    *,
    network: str | None = None,
    ledger: LedgerClient | None = None,
    signer: Signer | None = None,
    artifacts: ArtifactStore | None = None,
    funding: FundingSource | None = None,
) -> AsyncIterator[Session]:
    """Wire configuration and adapters into a reconciliation session.

    Any collaborator passed in replaces the configured adapter; the Sui
    adapters opened here are closed on exit.
    """

    ledger_config = get_ledger_config(network=network)
    provisioning = get_provisioning_config()

    owned: SuiLedgerClient | None = None
    if ledger is None:
        cli = SuiCliRunner(binary=ledger_config.sui_binary)
        owned = SuiLedgerClient(rpc=SuiRpcClient(resilience=ledger_config.rpc), cli=cli)
        ledger = owned
        if signer is None:
            signer = await ActiveAddressSigner.load(cli)
    if signer is None:
        raise ConfigurationError("A signer is required when a ledger client is supplied")
    if funding is None and ledger_config.faucet is not None:
        funding = FaucetClient(resilience=ledger_config.faucet)

    reconciler = Reconciler(
        ledger=ledger,
        artifacts=artifacts if artifacts is not None else JsonArtifactStore(get_storage_config()),
        network=ledger_config.network,
    )
    executor = TransactionExecutor(
        ledger=ledger,
        funding=funding,
        policy=RetryPolicy(max_attempts=provisioning.max_attempts),
        minimum_balance=provisioning.minimum_balance,
    )
    ctx = ReconcileContext(
        reconciler=reconciler,
        executor=executor,
        signer=signer,
        poll=PollSettings(
            timeout=provisioning.poll_timeout_seconds,
            interval=provisioning.poll_interval_seconds,
        ),
        gas_budget=ledger_config.gas_budget,
    )
    resolver = AuthorizationResolver(
        ledger=ledger,
        executor=executor,
        signer=signer,
        gas_budget=ledger_config.gas_budget,
    )
    log.info("Session on %s as %s", ledger_config.network, signer.address)
    try:
        yield Session(ctx=ctx, resolver=resolver, provisioning=provisioning)
    finally:
        if owned is not None:
            await owned.rpc.aclose()


def _object_id(outcome: ProvisionedResource | None, label: str) -> str:
    # Steps that depend on ``label`` are skipped when it failed.
    if outcome is None:
        raise NotFoundError(f"{label} was not provisioned", label=label, stage="dependency")
    return outcome.object_id


# --- Mock oracle and currency ------------------------------------------------


def seed_mocks(
    options: SeedMocksOptions | None = None,
    *,
    network: str | None = None,
    ledger: LedgerClient | None = None,
    signer: Signer | None = None,
    artifacts: ArtifactStore | None = None,
    funding: FundingSource | None = None,
) -> RunReport:
    """Provision the mock oracle, mock coin and price feeds on localnet."""

    async def run() -> RunReport:
        async with open_session(
            network=network,
            ledger=ledger,
            signer=signer,
            artifacts=artifacts,
            funding=funding,
        ) as session:
            return await seed_mocks_async(session, options or SeedMocksOptions())

    return asyncio.run(run())


async def seed_mocks_async(session: Session, options: SeedMocksOptions) -> RunReport:
    if session.network != LOCAL_NETWORK:
        raise ConfigurationError(
            f"Mock seeding only runs on {LOCAL_NETWORK}; the session targets {session.network}"
        )

    ctx = session.ctx
    paths = session.provisioning
    run = ReconciliationRun()

    oracle = await run.step(
        ResourceKind.PACKAGE,
        ORACLE_PACKAGE_LABEL,
        lambda: ensure_package(
            ctx,
            PackageRequest(
                label=ORACLE_PACKAGE_LABEL,
                package_path=str(paths.oracle_package_path),
                explicit_id=options.oracle_package_id,
                force_republish=options.re_publish,
            ),
        ),
    )
    coin = await run.step(
        ResourceKind.PACKAGE,
        COIN_PACKAGE_LABEL,
        lambda: ensure_package(
            ctx,
            PackageRequest(
                label=COIN_PACKAGE_LABEL,
                package_path=str(paths.coin_package_path),
                explicit_id=options.coin_package_id,
                force_republish=options.re_publish,
            ),
        ),
    )

    async def currency() -> ProvisionedResource:
        registry = await fetch_shared_ref(ctx.ledger, COIN_REGISTRY_OBJECT_ID, mutable=True)
        return await ensure_currency(
            ctx,
            default_currency_seed(_object_id(coin, COIN_PACKAGE_LABEL)),
            owner=ctx.signer.address,
            registry=registry,
            force=options.re_publish,
        )

    await run.step(
        ResourceKind.CURRENCY,
        DEFAULT_CURRENCY_LABEL,
        currency,
        requires=(COIN_PACKAGE_LABEL,),
    )

    feeds: list[ArtifactRecord] = []
    for config in DEFAULT_PRICE_FEEDS:

        async def feed(config: PriceFeedConfig = config) -> ProvisionedResource:
            return await ensure_price_feed(
                ctx,
                config,
                oracle_package_id=_object_id(oracle, ORACLE_PACKAGE_LABEL),
                force=options.re_publish,
            )

        outcome = await run.step(
            ResourceKind.PRICE_FEED,
            config.label,
            feed,
            requires=(ORACLE_PACKAGE_LABEL,),
        )
        if outcome is not None:
            feeds.append(outcome.record)

    if options.refresh_feeds and feeds:
        await run.step(
            ResourceKind.PRICE_FEED,
            REFRESH_FEEDS_LABEL,
            lambda: refresh_price_feeds(
                ctx,
                DEFAULT_PRICE_FEEDS,
                feeds,
                oracle_package_id=_object_id(oracle, ORACLE_PACKAGE_LABEL),
            ),
            requires=(ORACLE_PACKAGE_LABEL,),
        )

    return run.report


# --- AMM ---------------------------------------------------------------------


def seed_amm(
    options: SeedAmmOptions | None = None,
    *,
    network: str | None = None,
    ledger: LedgerClient | None = None,
    signer: Signer | None = None,
    artifacts: ArtifactStore | None = None,
    funding: FundingSource | None = None,
) -> RunReport:
    """Publish the AMM package (or reuse it) and ensure its shared config."""

    async def run() -> RunReport:
        async with open_session(
            network=network,
            ledger=ledger,
            signer=signer,
            artifacts=artifacts,
            funding=funding,
        ) as session:
            return await seed_amm_async(session, options or SeedAmmOptions())

    return asyncio.run(run())


async def seed_amm_async(session: Session, options: SeedAmmOptions) -> RunReport:
    ctx = session.ctx
    run = ReconciliationRun()

    package = await run.step(
        ResourceKind.PACKAGE,
        AMM_PACKAGE_LABEL,
        lambda: ensure_package(
            ctx,
            PackageRequest(
                label=AMM_PACKAGE_LABEL,
                package_path=str(session.provisioning.amm_package_path),
                explicit_id=options.amm_package_id,
                force_republish=options.re_publish,
                tracked_objects=MappingProxyType(
                    {"admin_cap_store": AMM_ADMIN_CAP_STORE_TYPE_SUFFIX}
                ),
            ),
        ),
    )

    async def config() -> ProvisionedResource:
        feed_id = resolve_price_feed_id(
            network=ctx.network,
            explicit_feed_id=options.price_feed_id,
            label=options.price_feed_label,
            records=session.cached_records().values(),
            known_configs=DEFAULT_PRICE_FEEDS,
        )
        settings = resolve_amm_config_settings(
            price_feed_id_hex=feed_id,
            base_spread_bps=options.base_spread_bps,
            volatility_multiplier_bps=options.volatility_multiplier_bps,
            use_laser=options.use_laser,
        )
        return await ensure_amm_config(
            ctx,
            settings,
            package_id=_object_id(package, AMM_PACKAGE_LABEL),
            label=options.label,
            force=options.re_publish,
        )

    await run.step(
        ResourceKind.CONFIG_OBJECT,
        options.label,
        config,
        requires=(AMM_PACKAGE_LABEL,),
    )
    return run.report


def update_amm(
    options: UpdateAmmOptions,
    *,
    network: str | None = None,
    ledger: LedgerClient | None = None,
    signer: Signer | None = None,
    artifacts: ArtifactStore | None = None,
    funding: FundingSource | None = None,
) -> ConfigUpdate:
    """Patch the shared AMM config; fields left unset keep their on-chain values."""

    async def run() -> ConfigUpdate:
        async with open_session(
            network=network,
            ledger=ledger,
            signer=signer,
            artifacts=artifacts,
            funding=funding,
        ) as session:
            return await update_amm_async(session, options)

    return asyncio.run(run())


async def update_amm_async(session: Session, options: UpdateAmmOptions) -> ConfigUpdate:
    records = session.cached_records()
    package_record = records.get(artifact_key(ResourceKind.PACKAGE, AMM_PACKAGE_LABEL))
    config_record = records.get(artifact_key(ResourceKind.CONFIG_OBJECT, options.label))

    package_id = options.amm_package_id or (package_record.object_id if package_record else None)
    if package_id is None:
        raise NotFoundError(
            "No AMM package id cached; run seed-amm or pass the package id",
            kind=ResourceKind.PACKAGE.value,
            label=AMM_PACKAGE_LABEL,
            stage="resolve-ids",
        )
    config_id = options.config_id or (config_record.object_id if config_record else None)
    if config_id is None:
        raise NotFoundError(
            "No AMM config id cached; run seed-amm or pass the config id",
            kind=ResourceKind.CONFIG_OBJECT.value,
            label=options.label,
            stage="resolve-ids",
        )

    overrides = options.overrides
    if overrides.price_feed_id_hex is None and options.price_feed_label:
        feed_id = resolve_price_feed_id(
            network=session.network,
            explicit_feed_id=None,
            label=options.price_feed_label,
            records=records.values(),
            known_configs=DEFAULT_PRICE_FEEDS,
        )
        overrides = replace(overrides, price_feed_id_hex=feed_id)

    publish_digest = None
    if package_record is not None and package_record.object_id == package_id:
        publish_digest = package_record.attributes.get(PUBLISH_DIGEST_ATTRIBUTE)

    capability = admin_cap_request(
        package_id,
        publish_digest=publish_digest,
        explicit_id=options.admin_cap_id,
    )
    return await update_amm_config(
        session.ctx,
        session.resolver,
        capability,
        config_id=config_id,
        overrides=overrides,
        label=options.label,
        dry_run=options.dry_run,
    )


# --- Read-only views ---------------------------------------------------------


def view_amm(
    *,
    config_id: str | None = None,
    label: str = DEFAULT_AMM_CONFIG_LABEL,
    network: str | None = None,
    ledger: LedgerClient | None = None,
    artifacts: ArtifactStore | None = None,
) -> AmmConfigView:
    """Read the AMM config without a signer; the id comes from the flag or the cache."""

    ledger_config = get_ledger_config(network=network)
    store = artifacts if artifacts is not None else JsonArtifactStore(get_storage_config())
    record = store.read(ledger_config.network).get(
        artifact_key(ResourceKind.CONFIG_OBJECT, label)
    )
    resolved_id = config_id or (record.object_id if record else None)
    if resolved_id is None:
        raise NotFoundError(
            "No AMM config id cached; run seed-amm or pass the config id",
            kind=ResourceKind.CONFIG_OBJECT.value,
            label=label,
            stage="resolve-ids",
        )

    async def run() -> AmmConfigView:
        if ledger is not None:
            return await view_amm_config(ledger, resolved_id, network=ledger_config.network)
        async with SuiLedgerClient(
            rpc=SuiRpcClient(resilience=ledger_config.rpc),
            cli=SuiCliRunner(binary=ledger_config.sui_binary),
        ) as owned:
            return await view_amm_config(owned, resolved_id, network=ledger_config.network)

    return asyncio.run(run())


# --- Artifacts ---------------------------------------------------------------


def show_artifacts(
    *,
    network: str | None = None,
    artifacts: ArtifactStore | None = None,
) -> dict[str, ArtifactRecord]:
    """Return the cached records of ``network`` without touching the ledger."""

    ledger_config = get_ledger_config(network=network)
    store = artifacts if artifacts is not None else JsonArtifactStore(get_storage_config())
    return store.read(ledger_config.network)
