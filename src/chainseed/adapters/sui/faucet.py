"""Gas faucet client for development networks."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING, Final

import httpx

from chainseed.adapters.http_resilience import ResilientClient
from chainseed.domain.codec import normalize_object_id
from chainseed.domain.errors import LedgerUnavailableError

from .schema import FaucetResponse
from .translator import validate_payload

if TYPE_CHECKING:
    from collections.abc import Callable

    from chainseed.config.http_resilience import ResilienceConfig

log = getLogger(__name__)

FAUCET_GAS_PATH: Final[str] = "/v2/gas"


class FaucetClient:
    """Request a fixed amount of gas for an address."""

    def __init__(
        self,
        *,
        resilience: ResilienceConfig,
        client_factory: Callable[[ResilienceConfig], ResilientClient] | None = None,
    ) -> None:
        self._resilience = resilience
        self._client_factory = client_factory or ResilientClient

    async def request_funds(self, address: str) -> None:
        recipient = normalize_object_id(address)
        body = {"FixedAmountRequest": {"recipient": recipient}}
        async with self._client_factory(self._resilience) as client:
            try:
                response = await client.post(FAUCET_GAS_PATH, json=body)
                response.raise_for_status()
            except httpx.HTTPError as exc:
                raise LedgerUnavailableError(
                    f"Faucet request for {recipient} failed: {exc}",
                    stage="funding",
                ) from exc

        try:
            payload = response.json()
        except ValueError:
            payload = {}
        result = validate_payload(FaucetResponse, payload, what="faucet")
        if result.error:
            raise LedgerUnavailableError(
                f"Faucet refused {recipient}: {result.error}",
                stage="funding",
            )
        log.info("Faucet funded %s", recipient)
