from __future__ import annotations

import pytest

from chainseed.domain.reconciliation import ReconcileContext  # noqa: TC001
from tests.support.ledger import FakeLedger, InMemoryArtifactStore, make_context


@pytest.fixture
def ledger() -> FakeLedger:
    return FakeLedger().with_system_objects()


@pytest.fixture
def artifacts() -> InMemoryArtifactStore:
    return InMemoryArtifactStore()


@pytest.fixture
def ctx(ledger: FakeLedger, artifacts: InMemoryArtifactStore) -> ReconcileContext:
    return make_context(ledger, artifacts)
