"""Port for the locally persisted artifact cache."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Mapping

    from chainseed.domain.model import ArtifactRecord


@runtime_checkable
class ArtifactStore(Protocol):
    """Network-scoped mapping of artifact keys to records.

    ``write`` merges: keys absent from ``partial`` keep their stored values.
    """

    def read(self, network: str) -> dict[str, ArtifactRecord]: ...

    def write(self, network: str, partial: Mapping[str, ArtifactRecord]) -> None: ...
