"""Transaction submission with funding checks and bounded contention retry."""

from __future__ import annotations

import asyncio
import re
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field, replace
from logging import getLogger
from typing import TYPE_CHECKING, Final

from .errors import (
    ContentionError,
    LedgerUnavailableError,
    NotFoundError,
    PollTimeoutError,
    ProvisioningError,
    TransactionFailedError,
)

if TYPE_CHECKING:
    from .model import DiscoveredResource, TransactionEffects
    from .ports import FundingSource, LedgerClient, Signer
    from .transactions import TransactionBlock

log = getLogger(__name__)

DEFAULT_MAX_ATTEMPTS: Final[int] = 3

_CONTENTION_MESSAGE: Final[re.Pattern[str]] = re.compile(
    r"insufficient ?gas"
    r"|insufficient ?coin ?balance"
    r"|no valid gas coins"
    r"|unable to find a coin to cover the gas budget"
    r"|not available for consumption"
    r"|objectversionunavailableforconsumption"
    r"|already locked"
    r"|equivocat"
    r"|stale object"
    r"|stale gas",
    re.IGNORECASE,
)

type ErrorClassifier = Callable[[BaseException], bool]
type BeforeRetry = Callable[[int, BaseException], Awaitable[None]]


def is_funding_contention(exc: BaseException) -> bool:
    """Return whether ``exc`` signals contended or exhausted gas/shared objects."""

    if isinstance(exc, ContentionError):
        return True
    if isinstance(exc, TransactionFailedError):
        return bool(_CONTENTION_MESSAGE.search(exc.message))
    return False


@dataclass(frozen=True, slots=True)
class RetryPolicy:
    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    classify: ErrorClassifier = is_funding_contention

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")


async def run_with_retry[T](
    policy: RetryPolicy,
    operation: Callable[[], Awaitable[T]],
    *,
    before_retry: BeforeRetry | None = None,
) -> tuple[T, int]:
    """Run ``operation`` until it succeeds, retrying classified failures.

    Returns the result and the number of attempts it took. Failures the
    classifier rejects propagate immediately; a classified failure on the last
    attempt is surfaced as :class:`ContentionError`.
    """

    attempt = 1
    while True:
        try:
            return await operation(), attempt
        except Exception as exc:
            if not policy.classify(exc):
                raise
            if attempt >= policy.max_attempts:
                raise ContentionError(
                    f"Still contended after {attempt} attempt(s): {exc}"
                ) from exc
            log.warning("Attempt %s/%s contended: %s", attempt, policy.max_attempts, exc)
            if before_retry is not None:
                await before_retry(attempt, exc)
            attempt += 1


@dataclass(slots=True)
class TransactionExecutor:
    """Submit transactions, funding the signer and retrying on contention.

    Submissions are not serialised: two callers touching the same shared object
    race, and the loser retries with a freshly built transaction so that object
    versions and the gas coin are resolved again.
    """

    ledger: LedgerClient
    funding: FundingSource | None = None
    policy: RetryPolicy = field(default_factory=RetryPolicy)
    minimum_balance: int = 1

    async def ensure_funded(self, address: str) -> None:
        balance = await self.ledger.get_balance(address)
        if balance >= self.minimum_balance:
            return
        if self.funding is None:
            raise ContentionError(
                f"Address {address} holds {balance} and no faucet is configured",
                stage="funding",
            )
        log.info("Funding %s (balance %s below %s)", address, balance, self.minimum_balance)
        await self.funding.request_funds(address)

    async def submit(
        self,
        signer: Signer,
        build: Callable[[], TransactionBlock],
        *,
        label: str,
    ) -> TransactionEffects:
        await self.ensure_funded(signer.address)

        async def attempt() -> TransactionEffects:
            effects = await self.ledger.execute_transaction(build(), signer)
            if not effects.succeeded:
                raise TransactionFailedError(
                    effects.error or f"Transaction {effects.digest} failed",
                    digest=effects.digest,
                )
            return effects

        async def before_retry(_attempt: int, _exc: BaseException) -> None:
            if self.funding is not None:
                await self.funding.request_funds(signer.address)

        try:
            effects, attempts = await run_with_retry(
                self.policy, attempt, before_retry=before_retry
            )
        except ProvisioningError as exc:
            exc.with_context(stage=f"submit {label}")
            raise

        log.info("Executed %s: %s (attempts=%s)", label, effects.digest, attempts)
        return replace(effects, attempts=attempts)

    async def simulate(
        self,
        signer: Signer,
        build: Callable[[], TransactionBlock],
        *,
        label: str,
    ) -> TransactionEffects:
        effects = await self.ledger.dry_run_transaction(build(), signer)
        log.info("Dry run %s: %s", label, effects.status)
        if not effects.succeeded:
            raise TransactionFailedError(
                effects.error or "Dry run failed",
                digest=effects.digest,
                stage=f"dry-run {label}",
            )
        return effects


async def wait_for_object(
    ledger: LedgerClient,
    object_id: str,
    *,
    predicate: Callable[[DiscoveredResource], bool],
    timeout: float,
    interval: float,
    label: str,
    clock: Callable[[], float] = time.monotonic,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> DiscoveredResource:
    """Poll until ``object_id`` is observable and satisfies ``predicate``."""

    deadline = clock() + timeout
    while True:
        try:
            discovered = await ledger.get_object(object_id)
        except (LedgerUnavailableError, NotFoundError) as exc:
            log.debug("Polling %s: %s", label, exc)
            discovered = None
        if discovered is not None and predicate(discovered):
            return discovered
        if clock() >= deadline:
            raise PollTimeoutError(
                f"{object_id} not available after {timeout:.2f}s",
                label=label,
                stage="wait-for-availability",
            )
        await sleep(interval)
