"""Compare per-entity audit metadata across replicas."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING

from replicaudit.domain.errors import TransportError

if TYPE_CHECKING:
    from collections.abc import Sequence

    from replicaudit.domain.ports import ReplicaTransport
    from replicaudit.domain.types import (
        AuditInfo,
        DeploymentEvent,
        EntityType,
        FailedEntities,
        ServerAddress,
    )

    from .state import CheckContext

log = getLogger(__name__)


@dataclass(slots=True)
class AuditCheckResult:
    failed_audit: FailedEntities = field(default_factory=dict)
    pending_overwrites: int = 0


def overwrite_is_newer(overwritten: AuditInfo, overwriting: AuditInfo) -> bool:
    """An overwrite is legitimate when the overwriting entity was deployed strictly later."""

    return overwriting.deployed_timestamp > overwritten.deployed_timestamp


def audits_agree(
    reference: AuditInfo,
    other: AuditInfo,
    *,
    overwriting: AuditInfo | None = None,
) -> bool:
    """Compare two audit records of the same entity from different replicas.

    When exactly one side reports ``overwritten_by``, ``overwriting`` must be the audit
    record of that overwriting entity as seen by the same side. The records still agree
    if the overwrite is genuine and has simply not reached the other replica yet.
    """

    if not reference.immutable_properties_match(other):
        return False
    if reference.overwritten_by == other.overwritten_by:
        return True
    if reference.is_overwritten and other.is_overwritten:
        return False
    if overwriting is None:
        return False
    overwritten = reference if reference.is_overwritten else other
    return overwrite_is_newer(overwritten, overwriting)


async def compare_audits(
    transport: ReplicaTransport,
    entity_type: EntityType,
    reference_server: ServerAddress,
    reference: AuditInfo,
    server: ServerAddress,
    other: AuditInfo,
) -> bool:
    """``audits_agree`` that fetches the overwriting record when only one side has it."""

    if not reference.immutable_properties_match(other):
        return False
    overwriting: AuditInfo | None = None
    overwriting_id = reference.overwritten_by or other.overwritten_by
    if reference.is_overwritten != other.is_overwritten and overwriting_id:
        side_server = reference_server if reference.is_overwritten else server
        overwriting = await transport.fetch_audit_info(side_server, entity_type, overwriting_id)
    return audits_agree(reference, other, overwriting=overwriting)


@dataclass(slots=True)
class AuditReconciler:
    """Fetch audit info for every canonical event on all replicas and compare."""

    context: CheckContext

    async def __call__(
        self,
        events: Sequence[DeploymentEvent],
        servers: Sequence[ServerAddress],
    ) -> AuditCheckResult:
        result = AuditCheckResult()

        async def check_event(event: DeploymentEvent) -> None:
            await self._check_event(event, servers, result)

        await self.context.runner.run("Checking audit info", events, check_event)
        log.info(
            "Checked audit info of %s entities: %s failed, %s overwrites still propagating",
            len(events),
            len(result.failed_audit),
            result.pending_overwrites,
        )
        return result

    async def _check_event(
        self,
        event: DeploymentEvent,
        servers: Sequence[ServerAddress],
        result: AuditCheckResult,
    ) -> None:
        transport = self.context.transport
        sink = self.context.sink
        entity_type, entity_id = event.entity_type, event.entity_id

        outcomes = await asyncio.gather(
            *(transport.fetch_audit_info(server, entity_type, entity_id) for server in servers),
            return_exceptions=True,
        )
        audits: dict[ServerAddress, AuditInfo] = {}
        for server, outcome in zip(servers, outcomes, strict=True):
            if isinstance(outcome, TransportError):
                result.failed_audit[entity_id] = entity_type
                sink.failed(
                    f"Failed to fetch audit info ({entity_type}, {entity_id}) on server {server}"
                )
            elif isinstance(outcome, BaseException):
                raise outcome
            else:
                audits[server] = outcome
                if outcome.is_overwritten:
                    self.context.overwritten.add(entity_id)

        reference_server = servers[0]
        reference = audits.get(reference_server)
        if reference is None:
            return

        for server in servers[1:]:
            other = audits.get(server)
            if other is None:
                continue
            try:
                same = await compare_audits(
                    transport, entity_type, reference_server, reference, server, other
                )
            except TransportError as exc:
                result.failed_audit[entity_id] = entity_type
                sink.failed(
                    f"Failed to fetch the overwriting audit info for ({entity_type}, {entity_id}) "
                    f"while comparing {reference_server} and {server}: {exc}"
                )
                continue
            if not same:
                result.failed_audit[entity_id] = entity_type
                sink.failed(
                    f"Found a mismatch. Audit info for ({entity_type}, {entity_id}) is different "
                    f"in {reference_server} and {server}"
                )
            elif reference.overwritten_by != other.overwritten_by:
                result.pending_overwrites += 1
