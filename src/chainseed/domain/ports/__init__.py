"""Domain port definitions for adapters."""

from __future__ import annotations

from .artifacts import ArtifactStore
from .ledger import FundingSource, LedgerClient, Signer

__all__ = [
    "ArtifactStore",
    "FundingSource",
    "LedgerClient",
    "Signer",
]
