"""Fatal conditions that end an audit run."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Mapping

    from .consistency.report import ConsistencyReport
    from .types import EntityId, EntityType, ServerAddress


class ReplicaAuditError(RuntimeError):
    """Base class for errors that abort an audit run."""


class InsufficientReplicasError(ReplicaAuditError):
    """Raised when fewer than two replicas are left to compare."""

    def __init__(self, message: str, *, servers: tuple[ServerAddress, ...] = ()) -> None:
        super().__init__(message)
        self.servers = servers


class EntityMismatchAbort(ReplicaAuditError):
    """Raised in fail-fast mode once an entity body differs between replicas."""

    def __init__(
        self,
        message: str,
        *,
        failed_entities: Mapping[EntityId, EntityType],
    ) -> None:
        super().__init__(message)
        self.failed_entities = dict(failed_entities)
        self.report: ConsistencyReport | None = None


class TransportError(RuntimeError):
    """Raised by a transport once a request to a replica has exhausted its retries.

    Phases treat it as a per-item failure; it never aborts a run on its own.
    """

    def __init__(self, message: str, *, server: ServerAddress | None = None) -> None:
        super().__init__(message)
        self.server = server
