"""Resolve-or-create reconciliation of ledger resources.

Flow per resource:
1) look up the cached artifact record
2) read the live object and validate it with the matcher
3) reuse it, or build and submit a creation transaction
4) merge-write the resulting identifiers into the artifact cache

Kind-specific entry points live in ``packages``, ``currencies``,
``price_feeds`` and ``config_objects``.
"""

from __future__ import annotations

from .context import PollSettings, ReconcileContext, fetch_shared_ref
from .engine import Creation, Reconciler, ResolveState
from .run import ReconciliationRun, ResourceFailure, RunReport

__all__ = [
    "Creation",
    "PollSettings",
    "ReconcileContext",
    "ReconciliationRun",
    "Reconciler",
    "ResolveState",
    "ResourceFailure",
    "RunReport",
    "fetch_shared_ref",
]
