"""Resolution of the capability object a privileged call must present.

Resolution order: explicit override, then an owned capability of the exact
type, then (outside dry runs) a claim from the package's capability store
followed by a second owned search.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from logging import getLogger
from typing import TYPE_CHECKING

from .codec import normalize_object_id
from .errors import (
    ClaimFailedError,
    ConflictingOptionsError,
    LedgerUnavailableError,
    MissingCapabilityError,
    NotFoundError,
    ProvisioningError,
)
from .model import CapabilityHandle
from .reconciliation.context import fetch_shared_ref
from .reconciliation.effects import find_first_created
from .transactions import DEFAULT_GAS_BUDGET, TransactionBlock

if TYPE_CHECKING:
    from .execution import TransactionExecutor
    from .model import TransactionEffects
    from .ports import LedgerClient, Signer

log = getLogger(__name__)


class CapabilityState(StrEnum):
    EXPLICIT_OVERRIDE = "explicit_override"
    OWNED_LOOKUP = "owned_lookup"
    CLAIM_FROM_STORE = "claim_from_store"
    RESOLVED = "resolved"


@dataclass(frozen=True, slots=True)
class CapabilityRequest:
    """What to look for and how it may be obtained.

    ``claim_function`` is ``<module>::<function>`` inside ``package_id`` and
    takes the shared store as its only argument.
    """

    package_id: str
    capability_type_suffix: str
    store_type_suffix: str | None = None
    claim_function: str | None = None
    publish_digest: str | None = None
    explicit_id: str | None = None
    force_republish: bool = False
    dry_run: bool = False
    label: str = "capability"

    @property
    def capability_type(self) -> str:
        return f"{normalize_object_id(self.package_id)}{self.capability_type_suffix}"

    @property
    def can_claim(self) -> bool:
        return bool(self.store_type_suffix and self.claim_function)


@dataclass(slots=True)
class AuthorizationResolver:
    ledger: LedgerClient
    executor: TransactionExecutor
    signer: Signer
    gas_budget: int = DEFAULT_GAS_BUDGET

    async def resolve(self, request: CapabilityRequest) -> CapabilityHandle:
        try:
            return await self._resolve(request)
        except ProvisioningError as exc:
            exc.with_context(kind="capability", label=request.label)
            raise

    async def _resolve(self, request: CapabilityRequest) -> CapabilityHandle:
        if request.explicit_id and request.force_republish:
            raise ConflictingOptionsError(
                "An explicit capability id cannot be combined with a re-publish request",
                stage=CapabilityState.EXPLICIT_OVERRIDE.value,
            )

        owner = self.signer.address
        if request.explicit_id:
            # The ledger rejects a capability the signer does not own.
            handle = CapabilityHandle(
                object_id=normalize_object_id(request.explicit_id),
                owner_address=owner,
            )
            log.debug("Using explicit %s %s", request.label, handle.object_id)
            return handle

        owned = await self.find_owned(request)
        if owned is not None:
            return owned

        if request.dry_run:
            raise MissingCapabilityError(
                f"No {request.capability_type} owned by {owner}; claiming is disabled for dry runs",
                stage=CapabilityState.OWNED_LOOKUP.value,
            )
        if not request.can_claim:
            raise MissingCapabilityError(
                f"No {request.capability_type} owned by {owner} and no store to claim from",
                stage=CapabilityState.OWNED_LOOKUP.value,
            )

        store_id = await self.locate_store(request)
        await self.claim(request, store_id)

        claimed = await self.find_owned(request)
        if claimed is None:
            raise ClaimFailedError(
                f"Claim from store {store_id} completed but no {request.capability_type} is owned",
                stage=CapabilityState.CLAIM_FROM_STORE.value,
            )
        return CapabilityHandle(
            object_id=claimed.object_id,
            owner_address=claimed.owner_address,
            granting_store_id=store_id,
        )

    async def find_owned(self, request: CapabilityRequest) -> CapabilityHandle | None:
        owner = self.signer.address
        found = await self.ledger.get_owned_objects(owner, request.capability_type)
        if not found:
            return None
        if len(found) > 1:
            log.info("%s owns %s %s objects; using the first", owner, len(found), request.label)
        return CapabilityHandle(object_id=found[0].object_id, owner_address=owner)

    async def locate_store(self, request: CapabilityRequest) -> str:
        """Find the store among the objects created by the package publish."""

        if not request.publish_digest:
            raise ClaimFailedError(
                f"No publish record for {request.package_id}; cannot locate the capability store",
                stage=CapabilityState.CLAIM_FROM_STORE.value,
            )
        try:
            effects = await self.ledger.get_transaction(request.publish_digest)
        except (LedgerUnavailableError, NotFoundError) as exc:
            raise ClaimFailedError(
                f"Could not read publish transaction {request.publish_digest}: {exc.message}",
                stage=CapabilityState.CLAIM_FROM_STORE.value,
            ) from exc

        store = find_first_created(effects, request.store_type_suffix or "")
        if store is None:
            raise ClaimFailedError(
                f"Publish transaction {request.publish_digest} created no "
                f"*{request.store_type_suffix}",
                stage=CapabilityState.CLAIM_FROM_STORE.value,
            )
        return store.object_id

    async def claim(self, request: CapabilityRequest, store_id: str) -> TransactionEffects:
        store = await fetch_shared_ref(self.ledger, store_id, mutable=True)
        target = f"{normalize_object_id(request.package_id)}::{request.claim_function}"

        def build() -> TransactionBlock:
            block = TransactionBlock(gas_budget=self.gas_budget)
            block.move_call(target, [block.shared_object(store)])
            return block

        log.info("Claiming %s from store %s", request.label, store_id)
        return await self.executor.submit(self.signer, build, label=f"claim {request.label}")
