"""Resolve-or-create state machine shared by every resource kind.

The engine only decides *whether* to reuse or (re)create; kind-specific
modules supply the creation coroutine and decide how effects turn into an
artifact record.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from logging import getLogger
from typing import TYPE_CHECKING

from chainseed.domain import matcher
from chainseed.domain.errors import LedgerUnavailableError, MismatchError, NotFoundError
from chainseed.domain.model import ProvisionedResource, ProvisionStatus

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from chainseed.domain.model import (
        ArtifactRecord,
        DiscoveredResource,
        ResourceDescriptor,
        TransactionEffects,
    )
    from chainseed.domain.ports import ArtifactStore, LedgerClient

log = getLogger(__name__)


class ResolveState(StrEnum):
    UNRESOLVED = "unresolved"
    CANDIDATE_FOUND = "candidate_found"
    VALIDATED = "validated"
    PROVISIONED = "provisioned"


@dataclass(frozen=True, slots=True)
class Creation:
    """Outcome of a kind-specific creation step."""

    record: ArtifactRecord
    effects: TransactionEffects | None = None


type CreateResource = Callable[[], Awaitable[Creation]]


@dataclass(slots=True)
class Reconciler:
    ledger: LedgerClient
    artifacts: ArtifactStore
    network: str

    def cached(self, key: str) -> ArtifactRecord | None:
        return self.artifacts.read(self.network).get(key)

    def cached_records(self) -> dict[str, ArtifactRecord]:
        return self.artifacts.read(self.network)

    async def discover(self, object_id: str) -> DiscoveredResource | None:
        """Best-effort read; lookup failures count as absence."""

        try:
            return await self.ledger.get_object(object_id)
        except (LedgerUnavailableError, NotFoundError) as exc:
            log.warning("Could not read %s: %s", object_id, exc)
            return None

    async def ensure(
        self,
        descriptor: ResourceDescriptor,
        existing: ArtifactRecord | None,
        create: CreateResource,
        *,
        force: bool = False,
    ) -> ProvisionedResource:
        """Reuse ``existing`` when it still matches ``descriptor``, else create.

        A matching record costs one read and no transaction, so repeated calls
        with an unchanged descriptor are free.
        """

        state = ResolveState.UNRESOLVED
        recreate = force and existing is not None

        if existing is not None and not force:
            state = _advance(descriptor, state, ResolveState.CANDIDATE_FOUND)
            discovered = await self.discover(existing.object_id)
            try:
                matcher.check(descriptor, discovered)
            except MismatchError as exc:
                log.warning("Stale %s record, recreating: %s", descriptor.kind.value, exc)
                recreate = True
                state = _advance(descriptor, state, ResolveState.UNRESOLVED)
            else:
                state = _advance(descriptor, state, ResolveState.VALIDATED)

        if state is ResolveState.VALIDATED and existing is not None:
            _advance(descriptor, state, ResolveState.PROVISIONED)
            log.info(
                "Reusing %s %s: %s", descriptor.kind.value, descriptor.label, existing.object_id
            )
            return ProvisionedResource(
                kind=descriptor.kind,
                label=descriptor.label,
                object_id=existing.object_id,
                status=ProvisionStatus.REUSED,
                record=existing,
            )

        log.info("Creating %s %s", descriptor.kind.value, descriptor.label)
        creation = await create()
        self.persist(creation.record)
        _advance(descriptor, state, ResolveState.PROVISIONED)
        return ProvisionedResource(
            kind=descriptor.kind,
            label=descriptor.label,
            object_id=creation.record.object_id,
            status=ProvisionStatus.RECREATED if recreate else ProvisionStatus.CREATED,
            record=creation.record,
            effects=creation.effects,
        )

    def persist(self, *records: ArtifactRecord) -> None:
        self.artifacts.write(self.network, {record.key: record for record in records})


def _advance(
    descriptor: ResourceDescriptor,
    current: ResolveState,
    target: ResolveState,
) -> ResolveState:
    log.debug("%s %s: %s -> %s", descriptor.kind.value, descriptor.label, current, target)
    return target
