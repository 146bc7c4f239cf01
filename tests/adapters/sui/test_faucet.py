from __future__ import annotations

import asyncio
import json
from collections.abc import Callable  # noqa: TC003

import httpx
import pytest

from chainseed.adapters.http_resilience import ResilienceConfig, ResilientClient
from chainseed.adapters.sui import FaucetClient
from chainseed.domain.errors import LedgerUnavailableError
from tests.support.ledger import SIGNER_ADDRESS

FAUCET_URL = "http://127.0.0.1:9123"


def _make_client_factory(
    handler: Callable[[httpx.Request], httpx.Response],
) -> Callable[[ResilienceConfig], ResilientClient]:
    async def async_handler(request: httpx.Request) -> httpx.Response:
        return handler(request)

    def factory(resilience: ResilienceConfig) -> ResilientClient:
        client = ResilientClient(resilience)
        client._client = httpx.AsyncClient(  # noqa: SLF001  # type: ignore[reportPrivateUsage]
            base_url=resilience.base_url or "",
            transport=httpx.MockTransport(async_handler),
        )
        return client

    return factory


def _faucet(handler: Callable[[httpx.Request], httpx.Response]) -> FaucetClient:
    return FaucetClient(
        resilience=ResilienceConfig(name="sui-faucet", base_url=FAUCET_URL),
        client_factory=_make_client_factory(handler),
    )


def test_request_posts_fixed_amount_request() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"status": "Success"})

    asyncio.run(_faucet(handler).request_funds("0xa11ce"))

    (request,) = seen
    assert request.method == "POST"
    assert str(request.url) == f"{FAUCET_URL}/v2/gas"
    assert json.loads(request.content) == {"FixedAmountRequest": {"recipient": SIGNER_ADDRESS}}


def test_refusal_is_unavailable() -> None:
    def handler(_request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"status": "Failure", "error": "rate limited"})

    with pytest.raises(LedgerUnavailableError, match="rate limited") as excinfo:
        asyncio.run(_faucet(handler).request_funds("0xa11ce"))

    assert excinfo.value.stage == "funding"


def test_http_error_is_unavailable() -> None:
    def handler(_request: httpx.Request) -> httpx.Response:
        return httpx.Response(503, text="unavailable")

    with pytest.raises(LedgerUnavailableError):
        asyncio.run(_faucet(handler).request_funds("0xa11ce"))
