"""Sequential multi-resource runs with per-resource failure isolation."""

from __future__ import annotations

from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING

from chainseed.domain.errors import ProvisioningError
from chainseed.domain.model import ProvisionedResource

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Iterable

    from chainseed.domain.model import ResourceKind

log = getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ResourceFailure:
    kind: str
    label: str
    stage: str | None
    message: str

    @classmethod
    def from_error(
        cls,
        kind: ResourceKind,
        label: str,
        exc: ProvisioningError,
    ) -> ResourceFailure:
        return cls(
            kind=exc.kind or kind.value,
            label=exc.label or label,
            stage=exc.stage,
            message=exc.message,
        )


@dataclass(slots=True)
class RunReport:
    outcomes: list[ProvisionedResource] = field(default_factory=list[ProvisionedResource])
    failures: list[ResourceFailure] = field(default_factory=list[ResourceFailure])
    skipped: list[str] = field(default_factory=list[str])

    @property
    def ok(self) -> bool:
        return not self.failures and not self.skipped

    def outcome(self, label: str) -> ProvisionedResource | None:
        for outcome in self.outcomes:
            if outcome.label == label:
                return outcome
        return None


@dataclass(slots=True)
class ReconciliationRun:
    """Run steps in order; a failed step only stops the steps that require it.

    Steps are identified by their label. A step whose ``requires`` names a
    failed or skipped label is skipped and reported, and itself counts as
    unavailable to later steps.
    """

    report: RunReport = field(default_factory=RunReport)
    _unavailable: set[str] = field(default_factory=set[str])

    async def step[T](
        self,
        kind: ResourceKind,
        label: str,
        operation: Callable[[], Awaitable[T]],
        *,
        requires: Iterable[str] = (),
    ) -> T | None:
        missing = [name for name in requires if name in self._unavailable]
        if missing:
            log.warning("Skipping %s %s: requires %s", kind.value, label, ", ".join(missing))
            self.report.skipped.append(label)
            self._unavailable.add(label)
            return None

        try:
            result = await operation()
        except ProvisioningError as exc:
            exc.with_context(kind=kind.value, label=label)
            log.error("%s", exc)  # noqa: TRY400
            self.report.failures.append(ResourceFailure.from_error(kind, label, exc))
            self._unavailable.add(label)
            return None

        if isinstance(result, ProvisionedResource):
            self.report.outcomes.append(result)
        return result
