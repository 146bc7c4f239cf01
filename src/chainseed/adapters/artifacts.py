"""JSON file backed artifact cache, one file per network."""

from __future__ import annotations

import os
import tempfile
from datetime import UTC, datetime
from logging import getLogger
from pathlib import Path
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from chainseed.domain.errors import ArtifactStoreError, FormatError
from chainseed.domain.model import ArtifactRecord, ResourceKind

if TYPE_CHECKING:
    from collections.abc import Mapping

    from chainseed.config.storage import StorageConfig

log = getLogger(__name__)

ARTIFACT_FILE_VERSION = 1


class ArtifactEntry(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    kind: ResourceKind
    label: str
    object_id: str = Field(alias="objectId")
    auxiliary_ids: dict[str, str] = Field(default_factory=dict, alias="auxiliaryIds")
    attributes: dict[str, str] = Field(default_factory=dict)

    @classmethod
    def from_record(cls, record: ArtifactRecord) -> ArtifactEntry:
        return cls(
            kind=record.kind,
            label=record.label,
            object_id=record.object_id,
            auxiliary_ids=dict(record.auxiliary_ids),
            attributes=dict(record.attributes),
        )

    def to_record(self, network: str) -> ArtifactRecord:
        return ArtifactRecord(
            network=network,
            kind=self.kind,
            label=self.label,
            object_id=self.object_id,
            auxiliary_ids=dict(self.auxiliary_ids),
            attributes=dict(self.attributes),
        )


class ArtifactFile(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    version: int = ARTIFACT_FILE_VERSION
    network: str
    updated_at: datetime | None = Field(default=None, alias="updatedAt")
    artifacts: dict[str, ArtifactEntry] = Field(default_factory=dict)


class JsonArtifactStore:
    """Artifact store writing ``artifacts.<network>.json`` under the data directory.

    Writes merge into the stored mapping and replace the file atomically, so a
    crash mid-write leaves the previous file intact.
    """

    def __init__(self, config: StorageConfig) -> None:
        self._config = config

    def path(self, network: str) -> Path:
        return self._config.artifacts_path(network, ensure=False)

    def read(self, network: str) -> dict[str, ArtifactRecord]:
        document = self._load(network)
        if document is None:
            return {}
        return {key: entry.to_record(network) for key, entry in document.artifacts.items()}

    def write(self, network: str, partial: Mapping[str, ArtifactRecord]) -> None:
        if not partial:
            return
        document = self._load(network) or ArtifactFile(network=network)
        for key, record in partial.items():
            if record.network != network:
                raise FormatError(
                    f"Record {key} belongs to {record.network}, not {network}",
                    stage="artifact-write",
                )
            document.artifacts[key] = ArtifactEntry.from_record(record)
        document.updated_at = datetime.now(UTC)
        try:
            self._replace(self._config.artifacts_path(network), document)
        except OSError as exc:
            raise ArtifactStoreError(
                f"Could not write artifacts for {network}: {exc}",
                stage="artifact-write",
            ) from exc
        log.debug("Wrote %s artifact(s) for %s", len(partial), network)

    def _load(self, network: str) -> ArtifactFile | None:
        path = self.path(network)
        try:
            raw = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as exc:
            raise ArtifactStoreError(
                f"Could not read artifact file {path}: {exc}",
                stage="artifact-read",
            ) from exc
        try:
            return ArtifactFile.model_validate_json(raw)
        except ValidationError as exc:
            raise FormatError(
                f"Artifact file {path} is corrupt: {exc}",
                stage="artifact-read",
            ) from exc

    @staticmethod
    def _replace(path: Path, document: ArtifactFile) -> None:
        payload = document.model_dump_json(by_alias=True, indent=2)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", dir=path.parent)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(payload)
                handle.write("\n")
            Path(tmp_name).replace(path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
