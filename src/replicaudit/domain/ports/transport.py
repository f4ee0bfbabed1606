"""Port for reading replica state over the network."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Sequence

    from replicaudit.domain.types import (
        AuditInfo,
        DeploymentEvent,
        Entity,
        EntityId,
        EntityType,
        FileHash,
        Pointer,
        ServerAddress,
        Timestamp,
    )


@runtime_checkable
class ReplicaTransport(Protocol):
    """Read-only access to every replica taking part in a run.

    Implementations retry transient failures themselves; an exception escaping one of
    these coroutines means the retry budget is exhausted.
    """

    async def is_up(self, server: ServerAddress) -> bool: ...

    async def fetch_history(
        self,
        server: ServerAddress,
        *,
        to: Timestamp,
    ) -> list[DeploymentEvent]: ...

    async def fetch_entities(
        self,
        server: ServerAddress,
        entity_type: EntityType,
        entity_ids: Sequence[EntityId],
    ) -> list[Entity]:
        """Return the entities found for ``entity_ids`` sorted by id."""
        ...

    async def fetch_entities_by_pointers(
        self,
        server: ServerAddress,
        entity_type: EntityType,
        pointers: Sequence[Pointer],
    ) -> list[Entity]: ...

    async def fetch_audit_info(
        self,
        server: ServerAddress,
        entity_type: EntityType,
        entity_id: EntityId,
    ) -> AuditInfo: ...

    async def fetch_content_availability(
        self,
        server: ServerAddress,
        hashes: Sequence[FileHash],
    ) -> dict[FileHash, bool]: ...

    async def fetch_content(self, server: ServerAddress, file_hash: FileHash) -> bytes: ...
