"""Collaborators shared by the kind-specific reconcilers."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Final

from chainseed.domain.codec import normalize_object_id
from chainseed.domain.errors import NotFoundError
from chainseed.domain.model import SharedObjectRef
from chainseed.domain.transactions import DEFAULT_GAS_BUDGET

if TYPE_CHECKING:
    from chainseed.domain.execution import TransactionExecutor
    from chainseed.domain.ports import LedgerClient, Signer

    from .engine import Reconciler

CLOCK_OBJECT_ID: Final[str] = normalize_object_id("0x6")
COIN_REGISTRY_OBJECT_ID: Final[str] = normalize_object_id("0xc")

DEFAULT_PACKAGE_POLL_TIMEOUT: Final[float] = 20.0
DEFAULT_PACKAGE_POLL_INTERVAL: Final[float] = 0.25


@dataclass(frozen=True, slots=True)
class PollSettings:
    timeout: float = DEFAULT_PACKAGE_POLL_TIMEOUT
    interval: float = DEFAULT_PACKAGE_POLL_INTERVAL


@dataclass(slots=True)
class ReconcileContext:
    reconciler: Reconciler
    executor: TransactionExecutor
    signer: Signer
    poll: PollSettings = PollSettings()
    gas_budget: int = DEFAULT_GAS_BUDGET

    @property
    def ledger(self) -> LedgerClient:
        return self.reconciler.ledger

    @property
    def network(self) -> str:
        return self.reconciler.network


async def fetch_shared_ref(
    ledger: LedgerClient,
    object_id: str,
    *,
    mutable: bool,
) -> SharedObjectRef:
    """Read the shared-object reference needed to pass ``object_id`` to a call.

    Always re-read after contention: the reference must reflect the object as
    it exists now.
    """

    discovered = await ledger.get_object(object_id)
    if discovered is None:
        raise NotFoundError(f"Shared object {object_id} was not found", stage="shared-ref")
    if discovered.shared_ref is None:
        raise NotFoundError(f"Object {object_id} is not shared", stage="shared-ref")
    return SharedObjectRef(
        object_id=discovered.shared_ref.object_id,
        initial_shared_version=discovered.shared_ref.initial_shared_version,
        mutable=mutable,
    )
