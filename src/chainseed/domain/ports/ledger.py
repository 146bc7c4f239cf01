"""Ports for reading from and submitting to the ledger."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Mapping

    from chainseed.domain.model import DiscoveredResource, TransactionEffects
    from chainseed.domain.transactions import TransactionBlock


@runtime_checkable
class Signer(Protocol):
    """Identity that authorises transactions; key material stays with the wallet."""

    @property
    def address(self) -> str: ...


@runtime_checkable
class LedgerClient(Protocol):
    """Object reads and transaction submission against one network."""

    async def get_object(self, object_id: str) -> DiscoveredResource | None: ...

    async def get_owned_objects(
        self,
        owner: str,
        struct_type: str,
    ) -> list[DiscoveredResource]: ...

    async def get_object_at_version(
        self,
        object_id: str,
        version: int,
    ) -> DiscoveredResource | None: ...

    async def get_transaction(self, digest: str) -> TransactionEffects: ...

    async def get_coin_metadata(self, coin_type: str) -> Mapping[str, object] | None: ...

    async def get_balance(self, owner: str) -> int: ...

    async def execute_transaction(
        self,
        transaction: TransactionBlock,
        signer: Signer,
    ) -> TransactionEffects: ...

    async def dry_run_transaction(
        self,
        transaction: TransactionBlock,
        signer: Signer,
    ) -> TransactionEffects: ...


@runtime_checkable
class FundingSource(Protocol):
    """Source of gas funds for an address (a faucet on development networks)."""

    async def request_funds(self, address: str) -> None: ...
