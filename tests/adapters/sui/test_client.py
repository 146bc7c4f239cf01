"""JSON-RPC reads against a mocked fullnode."""

from __future__ import annotations

import asyncio
import json
from collections.abc import Callable  # noqa: TC003
from typing import Any

import httpx
import pytest

from chainseed.adapters.http_resilience import ResilienceConfig, ResilientClient
from chainseed.adapters.sui import SuiPayloadError, SuiRpcClient, SuiRpcError
from chainseed.domain.errors import LedgerUnavailableError, NotFoundError
from tests.support.ledger import oid

RPC_URL = "https://fullnode.test:9000"

type RpcHandler = Callable[[str, list[Any]], Any]


def _make_client_factory(
    handler: Callable[[httpx.Request], httpx.Response],
) -> Callable[[ResilienceConfig], ResilientClient]:
    async def async_handler(request: httpx.Request) -> httpx.Response:
        return handler(request)

    def factory(resilience: ResilienceConfig) -> ResilientClient:
        client = ResilientClient(resilience)
        client._client = httpx.AsyncClient(transport=httpx.MockTransport(async_handler))  # noqa: SLF001  # type: ignore[reportPrivateUsage]
        return client

    return factory


def _rpc_client(rpc: RpcHandler, calls: list[str] | None = None) -> SuiRpcClient:
    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        if calls is not None:
            calls.append(body["method"])
        result = rpc(body["method"], body["params"])
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": body["id"], "result": result})

    return SuiRpcClient(
        resilience=ResilienceConfig(name="sui-rpc", base_url=RPC_URL),
        client_factory=_make_client_factory(handler),
    )


def _run(client: SuiRpcClient, operation: Callable[[SuiRpcClient], Any]) -> Any:
    async def scenario() -> Any:
        try:
            return await operation(client)
        finally:
            await client.aclose()

    return asyncio.run(scenario())


def test_shared_object_is_translated() -> None:
    def rpc(method: str, params: list[Any]) -> Any:
        assert method == "sui_getObject"
        assert params[0] == oid(0xC0F)
        assert params[1]["showContent"] is True
        return {
            "data": {
                "objectId": "0xc0f",
                "version": "12",
                "type": "0xa11::manager::AMMConfig",
                "owner": {"Shared": {"initial_shared_version": 7}},
                "content": {
                    "dataType": "moveObject",
                    "type": "0xa11::manager::AMMConfig",
                    "fields": {
                        "id": {"id": "0xc0f"},
                        "base_spread_bps": "25",
                        "use_laser": False,
                        "pyth_price_feed_id": [1, 2],
                    },
                },
            }
        }

    discovered = _run(_rpc_client(rpc), lambda client: client.get_object("0xc0f"))

    assert discovered.object_id == oid(0xC0F)
    assert discovered.object_type == "0xa11::manager::AMMConfig"
    assert discovered.owner == "shared"
    assert discovered.shared_ref.initial_shared_version == 7
    assert discovered.version == 12
    assert discovered.content_fields == {
        "id": "0xc0f",
        "base_spread_bps": "25",
        "use_laser": False,
        "pyth_price_feed_id": [1, 2],
    }


def test_missing_object_reads_as_none() -> None:
    def rpc(_method: str, params: list[Any]) -> Any:
        return {"error": {"code": "notExists", "object_id": params[0]}}

    assert _run(_rpc_client(rpc), lambda client: client.get_object("0x1")) is None


def test_other_object_errors_are_not_found() -> None:
    def rpc(_method: str, _params: list[Any]) -> Any:
        return {"error": {"code": "displayError"}}

    with pytest.raises(NotFoundError):
        _run(_rpc_client(rpc), lambda client: client.get_object("0x1"))


def test_owned_objects_follow_pagination() -> None:
    cursors: list[str | None] = []

    def rpc(method: str, params: list[Any]) -> Any:
        assert method == "suix_getOwnedObjects"
        assert params[1]["filter"] == {"StructType": "0xa11::manager::AMMAdminCap"}
        cursors.append(params[2])
        if params[2] is None:
            return {
                "data": [{"data": {"objectId": "0xca9", "type": "0xa11::manager::AMMAdminCap"}}],
                "nextCursor": "page-2",
                "hasNextPage": True,
            }
        return {
            "data": [{"data": {"objectId": "0xcaa", "type": "0xa11::manager::AMMAdminCap"}}],
            "nextCursor": None,
            "hasNextPage": False,
        }

    found = _run(
        _rpc_client(rpc),
        lambda client: client.get_owned_objects("0xa11ce", "0xa11::manager::AMMAdminCap"),
    )

    assert [item.object_id for item in found] == [oid(0xCA9), oid(0xCAA)]
    assert cursors == [None, "page-2"]


def test_transaction_effects_are_translated() -> None:
    def rpc(_method: str, _params: list[Any]) -> Any:
        return {
            "digest": "AbC",
            "effects": {"status": {"status": "success"}},
            "objectChanges": [
                {"type": "published", "packageId": "0xa11", "modules": ["manager"]},
                {
                    "type": "created",
                    "objectId": "0x5",
                    "objectType": "0xa11::manager::AdminCapStore",
                    "owner": {"Shared": {"initial_shared_version": 3}},
                },
                {"type": "mutated", "objectId": "0x6", "objectType": "0x2::coin::Coin"},
            ],
        }

    result = _run(_rpc_client(rpc), lambda client: client.get_transaction("AbC"))

    assert result.digest == "AbC"
    assert result.succeeded
    assert result.published_package_id == oid(0xA11)
    (created,) = result.created
    assert created.object_id == oid(0x5)
    assert created.initial_shared_version == 3


def test_unknown_transaction_is_not_found() -> None:
    with pytest.raises(NotFoundError):
        _run(_rpc_client(lambda _m, _p: None), lambda client: client.get_transaction("nope"))


def test_coin_metadata_and_balance() -> None:
    def rpc(method: str, _params: list[Any]) -> Any:
        if method == "suix_getCoinMetadata":
            return {"id": "0x44", "decimals": 6, "symbol": "USD", "iconUrl": None}
        return {"coinType": "0x2::sui::SUI", "coinObjectCount": 2, "totalBalance": "1500"}

    async def both(client: SuiRpcClient) -> tuple[object, int]:
        return await client.get_coin_metadata("0xc0::mock_coin::LocalMockUsd"), (
            await client.get_balance("0xa11ce")
        )

    metadata, balance = _run(_rpc_client(rpc), both)

    assert metadata["id"] == "0x44"
    assert metadata["decimals"] == 6
    assert balance == 1500


def test_http_client_is_reused_between_calls() -> None:
    built: list[ResilienceConfig] = []
    inner = _make_client_factory(
        lambda request: httpx.Response(
            200, json={"jsonrpc": "2.0", "id": 1, "result": {"error": {"code": "deleted"}}}
        )
    )

    def factory(resilience: ResilienceConfig) -> ResilientClient:
        built.append(resilience)
        return inner(resilience)

    client = SuiRpcClient(
        resilience=ResilienceConfig(name="sui-rpc", base_url=RPC_URL),
        client_factory=factory,
    )

    async def twice(rpc: SuiRpcClient) -> None:
        await rpc.get_object("0x1")
        await rpc.get_object("0x2")

    _run(client, twice)

    assert len(built) == 1


def test_rpc_error_envelope_raises() -> None:
    def handler(_request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200,
            json={"jsonrpc": "2.0", "id": 1, "error": {"code": -32602, "message": "bad params"}},
        )

    client = SuiRpcClient(
        resilience=ResilienceConfig(name="sui-rpc", base_url=RPC_URL),
        client_factory=_make_client_factory(handler),
    )

    with pytest.raises(SuiRpcError) as excinfo:
        _run(client, lambda rpc: rpc.get_object("0x1"))

    assert excinfo.value.code == -32602
    assert excinfo.value.method == "sui_getObject"
    assert isinstance(excinfo.value, LedgerUnavailableError)


def test_http_failure_is_unavailable() -> None:
    def handler(_request: httpx.Request) -> httpx.Response:
        return httpx.Response(400, text="bad request")

    client = SuiRpcClient(
        resilience=ResilienceConfig(name="sui-rpc", base_url=RPC_URL),
        client_factory=_make_client_factory(handler),
    )

    with pytest.raises(LedgerUnavailableError):
        _run(client, lambda rpc: rpc.get_balance("0x1"))


def test_non_json_body_is_a_payload_error() -> None:
    client = SuiRpcClient(
        resilience=ResilienceConfig(name="sui-rpc", base_url=RPC_URL),
        client_factory=_make_client_factory(lambda _request: httpx.Response(200, text="<html>")),
    )

    with pytest.raises(SuiPayloadError):
        _run(client, lambda rpc: rpc.get_balance("0x1"))
