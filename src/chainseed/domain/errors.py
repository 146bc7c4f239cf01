"""Error taxonomy for provisioning and reconciliation.

Every error can carry the resource kind, label and the decision point
(``stage``) it was raised from. ``str()`` renders that context so the CLI can
print one readable line without a lower-layer traceback.
"""

from __future__ import annotations

from typing import Self


class ProvisioningError(RuntimeError):
    """Base class for failures while converging on-chain resources."""

    def __init__(
        self,
        message: str,
        *,
        kind: str | None = None,
        label: str | None = None,
        stage: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.kind = kind
        self.label = label
        self.stage = stage

    def with_context(
        self,
        *,
        kind: str | None = None,
        label: str | None = None,
        stage: str | None = None,
    ) -> Self:
        """Fill in missing context fields and return ``self``."""

        self.kind = self.kind or kind
        self.label = self.label or label
        self.stage = self.stage or stage
        return self

    def __str__(self) -> str:
        context = " ".join(part for part in (self.kind, self.label) if part)
        if self.stage:
            context = f"{context} @ {self.stage}" if context else f"@ {self.stage}"
        return f"[{context}] {self.message}" if context else self.message


class FormatError(ProvisioningError, ValueError):
    """Malformed hex or identifier input. Never retried."""


class RangeError(ProvisioningError, ValueError):
    """Value outside the encodable unsigned range. Never retried."""


class NotFoundError(ProvisioningError):
    """An object that must exist could not be found."""


class MissingCreatedObjectError(NotFoundError):
    """A creation transaction did not produce the expected primary object."""


class PollTimeoutError(NotFoundError):
    """An object did not become observable before the polling deadline."""


class ContentionError(ProvisioningError):
    """Gas or shared-object contention; retryable up to a small bound."""


class MismatchError(ProvisioningError):
    """A discovered resource does not match its descriptor.

    Raised by the matcher and consumed by the reconciler, which recreates the
    resource instead of failing.
    """


class AuthorizationError(ProvisioningError):
    """The capability required for a privileged call could not be resolved."""


class MissingCapabilityError(AuthorizationError):
    """No capability is owned and claiming one is not allowed."""


class ClaimFailedError(AuthorizationError):
    """Claiming a capability from its store did not yield an owned capability."""


class ConflictingOptionsError(ProvisioningError, ValueError):
    """Two caller options express contradictory intent."""


class TransactionFailedError(ProvisioningError):
    """The ledger rejected or aborted a transaction for a non-retryable reason."""

    def __init__(
        self,
        message: str,
        *,
        digest: str | None = None,
        kind: str | None = None,
        label: str | None = None,
        stage: str | None = None,
    ) -> None:
        super().__init__(message, kind=kind, label=label, stage=stage)
        self.digest = digest


class LedgerUnavailableError(ProvisioningError):
    """The ledger RPC endpoint or toolchain could not be reached."""


class ArtifactStoreError(ProvisioningError):
    """The local artifact cache could not be read or written."""
