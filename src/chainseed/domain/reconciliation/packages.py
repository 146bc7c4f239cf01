"""Publish-or-reuse for Move packages."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from logging import getLogger
from types import MappingProxyType
from typing import TYPE_CHECKING, Final

from chainseed.domain.codec import normalize_object_id
from chainseed.domain.errors import (
    ConflictingOptionsError,
    MissingCreatedObjectError,
    NotFoundError,
)
from chainseed.domain.execution import wait_for_object
from chainseed.domain.model import (
    ArtifactRecord,
    ProvisionedResource,
    ProvisionStatus,
    ResourceDescriptor,
    ResourceKind,
    artifact_key,
)
from chainseed.domain.transactions import TransactionBlock

from .effects import find_first_created
from .engine import Creation

if TYPE_CHECKING:
    from chainseed.domain.model import DiscoveredResource, TransactionEffects

    from .context import ReconcileContext

log = getLogger(__name__)

UPGRADE_CAP_TYPE_SUFFIX: Final[str] = "::package::UpgradeCap"
PUBLISH_DIGEST_ATTRIBUTE: Final[str] = "publish_digest"


@dataclass(frozen=True, slots=True)
class PackageRequest:
    """Desired package plus caller overrides.

    ``tracked_objects`` maps an auxiliary role (``"admin_cap_store"``) to the
    type suffix of an object created by the publish transaction.
    """

    label: str
    package_path: str
    explicit_id: str | None = None
    force_republish: bool = False
    with_unpublished_dependencies: bool = False
    tracked_objects: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))


def package_descriptor(label: str) -> ResourceDescriptor:
    return ResourceDescriptor(kind=ResourceKind.PACKAGE, label=label)


def _is_package(discovered: DiscoveredResource) -> bool:
    return discovered.is_package


async def ensure_package(ctx: ReconcileContext, request: PackageRequest) -> ProvisionedResource:
    if request.explicit_id and request.force_republish:
        raise ConflictingOptionsError(
            "Cannot combine a re-publish request with an explicit package id; "
            "omit the package id to republish.",
            kind=ResourceKind.PACKAGE.value,
            label=request.label,
            stage="validate-options",
        )

    descriptor = package_descriptor(request.label)
    existing = ctx.reconciler.cached(artifact_key(ResourceKind.PACKAGE, request.label))

    if request.explicit_id:
        return await _use_explicit_package(ctx, request, existing)

    async def create() -> Creation:
        return await _publish(ctx, request)

    return await ctx.reconciler.ensure(
        descriptor,
        existing,
        create,
        force=request.force_republish,
    )


async def _use_explicit_package(
    ctx: ReconcileContext,
    request: PackageRequest,
    existing: ArtifactRecord | None,
) -> ProvisionedResource:
    package_id = normalize_object_id(request.explicit_id or "")
    discovered = await ctx.reconciler.discover(package_id)
    if discovered is None or not discovered.is_package:
        raise NotFoundError(
            f"Package {package_id} was not found on {ctx.network}",
            kind=ResourceKind.PACKAGE.value,
            label=request.label,
            stage="explicit-override",
        )
    if existing is not None and existing.object_id == package_id:
        record = existing
    else:
        record = ArtifactRecord(
            network=ctx.network,
            kind=ResourceKind.PACKAGE,
            label=request.label,
            object_id=package_id,
        )
    return ProvisionedResource(
        kind=ResourceKind.PACKAGE,
        label=request.label,
        object_id=package_id,
        status=ProvisionStatus.REUSED,
        record=record,
    )


def _build_publish(ctx: ReconcileContext, request: PackageRequest) -> TransactionBlock:
    block = TransactionBlock(gas_budget=ctx.gas_budget)
    block.publish(
        request.package_path,
        with_unpublished_dependencies=request.with_unpublished_dependencies,
    )
    return block


async def _publish(ctx: ReconcileContext, request: PackageRequest) -> Creation:
    log.info("Publishing %s from %s", request.label, request.package_path)
    effects = await ctx.executor.submit(
        ctx.signer,
        lambda: _build_publish(ctx, request),
        label=f"publish {request.label}",
    )
    if not effects.published_package_id:
        raise MissingCreatedObjectError(
            f"Publish transaction {effects.digest} did not report a package id",
            kind=ResourceKind.PACKAGE.value,
            label=request.label,
            stage="extract-effects",
        )
    package_id = normalize_object_id(effects.published_package_id)

    # Publishing and global availability are not atomic.
    await wait_for_object(
        ctx.ledger,
        package_id,
        predicate=_is_package,
        timeout=ctx.poll.timeout,
        interval=ctx.poll.interval,
        label=f"{request.label} package",
    )

    return Creation(record=_publish_record(ctx, request, package_id, effects), effects=effects)


def _publish_record(
    ctx: ReconcileContext,
    request: PackageRequest,
    package_id: str,
    effects: TransactionEffects,
) -> ArtifactRecord:
    auxiliary_ids: dict[str, str] = {}
    upgrade_cap = find_first_created(effects, UPGRADE_CAP_TYPE_SUFFIX)
    if upgrade_cap is not None:
        auxiliary_ids["upgrade_cap"] = upgrade_cap.object_id
    for role, suffix in request.tracked_objects.items():
        created = find_first_created(effects, suffix)
        if created is not None:
            auxiliary_ids[role] = created.object_id
        else:
            log.warning("Publish of %s created no %s object", request.label, suffix)

    return ArtifactRecord(
        network=ctx.network,
        kind=ResourceKind.PACKAGE,
        label=request.label,
        object_id=package_id,
        auxiliary_ids=auxiliary_ids,
        attributes={
            PUBLISH_DIGEST_ATTRIBUTE: effects.digest,
            "package_path": request.package_path,
        },
    )
