"""JSON-RPC client for Sui fullnode reads."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING, Any, Final

import httpx

from chainseed.adapters.http_resilience import ResilientClient
from chainseed.domain.codec import normalize_object_id
from chainseed.domain.errors import LedgerUnavailableError, NotFoundError

from .schema import (
    BalancePayload,
    CoinMetadataPayload,
    ObjectData,
    ObjectResponse,
    OwnedObjectsPage,
    PastObjectResponse,
    RpcEnvelope,
    TransactionBlockResponse,
)
from .translator import (
    SuiPayloadError,
    translate_object,
    translate_transaction,
    validate_payload,
)

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping

    from chainseed.config.http_resilience import ResilienceConfig
    from chainseed.domain.model import DiscoveredResource, TransactionEffects

log = getLogger(__name__)

SUI_COIN_TYPE: Final[str] = "0x2::sui::SUI"
OWNED_OBJECTS_PAGE_SIZE: Final[int] = 50

_OBJECT_OPTIONS: Final[dict[str, bool]] = {
    "showType": True,
    "showOwner": True,
    "showContent": True,
}
_TRANSACTION_OPTIONS: Final[dict[str, bool]] = {
    "showEffects": True,
    "showObjectChanges": True,
}
_MISSING_OBJECT_CODES: Final[frozenset[str]] = frozenset({"notExists", "deleted"})


class SuiRpcError(LedgerUnavailableError):
    """The fullnode answered with a JSON-RPC error object."""

    def __init__(self, message: str, *, code: int, method: str) -> None:
        super().__init__(f"{method}: {message} (code {code})", stage="rpc")
        self.code = code
        self.method = method


class SuiRpcClient:
    """Low-level JSON-RPC client; one HTTP client is reused until :meth:`aclose`."""

    def __init__(
        self,
        *,
        resilience: ResilienceConfig,
        client_factory: Callable[[ResilienceConfig], ResilientClient] | None = None,
    ) -> None:
        self._resilience = resilience
        self._client_factory = client_factory or ResilientClient
        self._http: ResilientClient | None = None
        self._request_id = 0

    async def aclose(self) -> None:
        if self._http is not None:
            await self._http.aclose()
            self._http = None

    def _client(self) -> ResilientClient:
        if self._http is None:
            self._http = self._client_factory(self._resilience)
        return self._http

    async def call(self, method: str, params: list[Any]) -> Any:
        self._request_id += 1
        body = {"jsonrpc": "2.0", "id": self._request_id, "method": method, "params": params}
        url = self._resilience.base_url or ""
        try:
            response = await self._client().post(url, json=body)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise LedgerUnavailableError(f"{method} request failed: {exc}", stage="rpc") from exc

        try:
            payload = response.json()
        except ValueError as exc:
            raise SuiPayloadError(f"{method} returned non-JSON body", stage="rpc") from exc

        envelope = validate_payload(RpcEnvelope, payload, what=method)
        if envelope.error is not None:
            raise SuiRpcError(envelope.error.message, code=envelope.error.code, method=method)
        return envelope.result

    async def get_object(self, object_id: str) -> DiscoveredResource | None:
        object_id = normalize_object_id(object_id)
        result = await self.call("sui_getObject", [object_id, _OBJECT_OPTIONS])
        response = validate_payload(ObjectResponse, result, what="sui_getObject")
        if response.error is not None:
            if response.error.code in _MISSING_OBJECT_CODES:
                return None
            raise NotFoundError(
                f"Object {object_id} could not be read: {response.error.code}",
                stage="rpc",
            )
        if response.data is None:
            return None
        return translate_object(response.data)

    async def get_owned_objects(self, owner: str, struct_type: str) -> list[DiscoveredResource]:
        owner = normalize_object_id(owner)
        query = {"filter": {"StructType": struct_type}, "options": _OBJECT_OPTIONS}
        found: list[DiscoveredResource] = []
        cursor: str | None = None
        while True:
            result = await self.call(
                "suix_getOwnedObjects",
                [owner, query, cursor, OWNED_OBJECTS_PAGE_SIZE],
            )
            page = validate_payload(OwnedObjectsPage, result, what="suix_getOwnedObjects")
            found.extend(
                translate_object(item.data) for item in page.data if item.data is not None
            )
            if not page.has_next_page or page.next_cursor is None:
                return found
            cursor = page.next_cursor

    async def get_object_at_version(
        self,
        object_id: str,
        version: int,
    ) -> DiscoveredResource | None:
        object_id = normalize_object_id(object_id)
        result = await self.call(
            "sui_tryGetPastObject",
            [object_id, version, _OBJECT_OPTIONS],
        )
        response = validate_payload(PastObjectResponse, result, what="sui_tryGetPastObject")
        if response.status != "VersionFound" or response.details is None:
            log.debug("Version %s of %s unavailable: %s", version, object_id, response.status)
            return None
        details = response.details
        if isinstance(details, str):
            return None
        if isinstance(details, dict):
            details = validate_payload(ObjectData, details, what="sui_tryGetPastObject")
        return translate_object(details)

    async def get_transaction(self, digest: str) -> TransactionEffects:
        result = await self.call("sui_getTransactionBlock", [digest, _TRANSACTION_OPTIONS])
        if result is None:
            raise NotFoundError(f"Transaction {digest} was not found", stage="rpc")
        response = validate_payload(
            TransactionBlockResponse, result, what="sui_getTransactionBlock"
        )
        return translate_transaction(response)

    async def get_coin_metadata(self, coin_type: str) -> Mapping[str, object] | None:
        result = await self.call("suix_getCoinMetadata", [coin_type])
        if result is None:
            return None
        metadata = validate_payload(CoinMetadataPayload, result, what="suix_getCoinMetadata")
        return metadata.model_dump()

    async def get_balance(self, owner: str, coin_type: str = SUI_COIN_TYPE) -> int:
        result = await self.call("suix_getBalance", [normalize_object_id(owner), coin_type])
        balance = validate_payload(BalancePayload, result, what="suix_getBalance")
        return int(balance.total_balance)
