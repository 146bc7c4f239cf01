"""Ledger client combining JSON-RPC reads with CLI submission."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING

from .translator import translate_transaction

if TYPE_CHECKING:
    from collections.abc import Mapping
    from types import TracebackType

    from chainseed.domain.model import DiscoveredResource, TransactionEffects
    from chainseed.domain.ports import Signer
    from chainseed.domain.transactions import TransactionBlock

    from .cli import SuiCliRunner
    from .client import SuiRpcClient

log = getLogger(__name__)


class SuiLedgerClient:
    """Implements the ledger port on top of a fullnode and the ``sui`` CLI."""

    def __init__(self, *, rpc: SuiRpcClient, cli: SuiCliRunner) -> None:
        self.rpc = rpc
        self.cli = cli

    async def __aenter__(self) -> SuiLedgerClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.rpc.aclose()

    async def get_object(self, object_id: str) -> DiscoveredResource | None:
        return await self.rpc.get_object(object_id)

    async def get_owned_objects(self, owner: str, struct_type: str) -> list[DiscoveredResource]:
        return await self.rpc.get_owned_objects(owner, struct_type)

    async def get_object_at_version(
        self,
        object_id: str,
        version: int,
    ) -> DiscoveredResource | None:
        return await self.rpc.get_object_at_version(object_id, version)

    async def get_transaction(self, digest: str) -> TransactionEffects:
        return await self.rpc.get_transaction(digest)

    async def get_coin_metadata(self, coin_type: str) -> Mapping[str, object] | None:
        return await self.rpc.get_coin_metadata(coin_type)

    async def get_balance(self, owner: str) -> int:
        return await self.rpc.get_balance(owner)

    async def execute_transaction(
        self,
        transaction: TransactionBlock,
        signer: Signer,
    ) -> TransactionEffects:
        response = await self.cli.execute(transaction, signer)
        return translate_transaction(response)

    async def dry_run_transaction(
        self,
        transaction: TransactionBlock,
        signer: Signer,
    ) -> TransactionEffects:
        response = await self.cli.execute(transaction, signer, dry_run=True)
        return translate_transaction(response)
