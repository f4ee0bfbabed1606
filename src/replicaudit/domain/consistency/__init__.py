"""Replica consistency reconciliation.

Each phase is a small callable object sharing a ``CheckContext``: the transport, the
result sink, the bounded task runner and the run-scoped set of overwritten entities.
"""

from __future__ import annotations

from .audit import AuditCheckResult, AuditReconciler, audits_agree, overwrite_is_newer
from .chunking import (
    EntityChunk,
    PointerChunk,
    create_entity_chunks,
    create_pointer_chunks,
    split_into_chunks,
)
from .content import (
    ContentExistenceChecker,
    ContentExistenceResult,
    ContentIntegrityChecker,
    choose_sample,
    is_exempt_from_availability,
)
from .engine import ConsistencyEngine, probe_replicas
from .entities import (
    ActiveState,
    EntityCheckResult,
    EntityReconciler,
    derive_active_state,
    mismatched_entity_ids,
)
from .history import HistoryCollection, HistoryCollector, HistoryDivergence, find_history_divergence
from .pointers import PointerCheckResult, PointerReconciler
from .report import ConsistencyReport
from .runner import BoundedTaskRunner
from .state import CancellationToken, CheckContext, OverwrittenEntities

__all__ = [
    "ActiveState",
    "AuditCheckResult",
    "AuditReconciler",
    "BoundedTaskRunner",
    "CancellationToken",
    "CheckContext",
    "ConsistencyEngine",
    "ConsistencyReport",
    "ContentExistenceChecker",
    "ContentExistenceResult",
    "ContentIntegrityChecker",
    "EntityCheckResult",
    "EntityChunk",
    "EntityReconciler",
    "HistoryCollection",
    "HistoryCollector",
    "HistoryDivergence",
    "OverwrittenEntities",
    "PointerCheckResult",
    "PointerChunk",
    "PointerReconciler",
    "audits_agree",
    "choose_sample",
    "create_entity_chunks",
    "create_pointer_chunks",
    "derive_active_state",
    "find_history_divergence",
    "is_exempt_from_availability",
    "mismatched_entity_ids",
    "overwrite_is_newer",
    "probe_replicas",
    "split_into_chunks",
]
