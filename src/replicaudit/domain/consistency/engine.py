"""Orchestrator for a full consistency audit.

Phases run in a fixed order: liveness, history, entities, pointers, audit info,
content existence, content bytes. Audit info runs before content existence so that
overwrites observed on any replica can exempt content from the availability check.

Every comparison is made against the first synchronized replica. A majority that
disagrees with it is still reported as the majority being wrong.
"""

from __future__ import annotations

import random
from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING

from replicaudit.domain.errors import EntityMismatchAbort, InsufficientReplicasError

from .audit import AuditReconciler
from .content import ContentExistenceChecker, ContentIntegrityChecker
from .entities import EntityReconciler
from .history import MIN_SYNCHRONIZED_REPLICAS, HistoryCollector
from .pointers import PointerReconciler
from .report import ConsistencyReport
from .runner import BoundedTaskRunner
from .state import CancellationToken, CheckContext, OverwrittenEntities

if TYPE_CHECKING:
    from collections.abc import Sequence

    from replicaudit.domain.ports import ReplicaTransport, ResultSink
    from replicaudit.domain.types import EntityId, ServerAddress, Timestamp

log = getLogger(__name__)


async def probe_replicas(
    context: CheckContext,
    servers: Sequence[ServerAddress],
) -> tuple[list[ServerAddress], list[ServerAddress]]:
    """Split ``servers`` into those answering the status endpoint and those that don't."""

    status: dict[ServerAddress, bool] = {}

    async def probe(server: ServerAddress) -> None:
        status[server] = await context.transport.is_up(server)

    await context.runner.run("Checking server status", servers, probe)
    up = [server for server in servers if status.get(server)]
    down = [server for server in servers if not status.get(server)]
    if down:
        log.warning("The following servers are down: %s", down)
        context.sink.log(f"The following servers are down: {down}")
    else:
        log.info("All servers are up")
    return up, down


@dataclass(slots=True, kw_only=True)
class ConsistencyEngine:
    """Run every reconciliation phase over one set of replicas."""

    transport: ReplicaTransport
    sink: ResultSink
    chunk_size: int = 40
    concurrency: int = 15
    content_sample_percentage: int = 0
    ignored_entity_ids: frozenset[EntityId] = frozenset()
    fail_fast: bool = False
    show_progress: bool = True
    rng: random.Random = field(default_factory=random.Random)

    def new_context(self) -> CheckContext:
        """Fresh shared state for one run."""

        cancellation = CancellationToken()
        return CheckContext(
            transport=self.transport,
            sink=self.sink,
            runner=BoundedTaskRunner(
                concurrency=self.concurrency,
                show_progress=self.show_progress,
                cancellation=cancellation,
            ),
            chunk_size=self.chunk_size,
            overwritten=OverwrittenEntities(),
            cancellation=cancellation,
        )

    async def run(self, servers: Sequence[ServerAddress], *, to: Timestamp) -> ConsistencyReport:
        if len(servers) < MIN_SYNCHRONIZED_REPLICAS:
            raise InsufficientReplicasError(
                "You must set 2 or more server addresses", servers=tuple(servers)
            )
        context = self.new_context()

        up, down = await probe_replicas(context, servers)
        if len(up) < MIN_SYNCHRONIZED_REPLICAS:
            raise InsufficientReplicasError(
                f"Only {len(up)} of {len(servers)} servers are up", servers=tuple(up)
            )

        history = await HistoryCollector(context, self.ignored_entity_ids)(up, to=to)
        synchronized = history.synchronized
        report = ConsistencyReport(
            synchronized=synchronized,
            down=tuple(down),
            history_divergences=history.divergences,
        )

        try:
            entities = await EntityReconciler(context, fail_fast=self.fail_fast)(
                history.events, synchronized
            )
        except EntityMismatchAbort as exc:
            report.failed_entities = exc.failed_entities
            report.aborted = str(exc)
            exc.report = report
            raise
        report.failed_entities = entities.failed_entities

        pointers = await PointerReconciler(context)(entities.active_pointers, synchronized)
        report.failed_pointers = pointers.failed_pointers
        report.overwritten_pointers = pointers.overwritten_pointers

        audit = await AuditReconciler(context)(history.events, synchronized)
        report.failed_audit = audit.failed_audit
        report.pending_overwrites = audit.pending_overwrites

        existence = await ContentExistenceChecker(context)(
            entities.referenced_content, synchronized
        )
        report.failed_content = existence.failed_content

        integrity = ContentIntegrityChecker(
            context, sample_percentage=self.content_sample_percentage, rng=self.rng
        )
        report.failed_content_files = await integrity(existence.available_everywhere, synchronized)

        return report
