"""Domain value types describing replica state.

Everything here is immutable once observed: history events and entities are
append-only on the replicas, and audit records are snapshots taken at fetch time.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum

type ServerAddress = str
type ServerName = str
type EntityType = str
type FileHash = str
type EntityId = FileHash
type Pointer = str
type Timestamp = int
"""Milliseconds since the epoch, as reported by the replicas."""


class FailureCategory(StrEnum):
    ENTITIES = "entities"
    AUDIT = "audit"
    POINTERS = "pointers"
    CONTENT_AVAILABILITY = "content_availability"
    CONTENT_FILES = "content_files"


@dataclass(frozen=True, slots=True)
class EntityRef:
    """Typed reference to one deployed entity."""

    entity_type: EntityType
    entity_id: EntityId


@dataclass(frozen=True, slots=True)
class DeploymentEvent:
    """One record of a replica's deployment history."""

    entity_type: EntityType
    entity_id: EntityId
    server_name: ServerName
    timestamp: Timestamp

    @property
    def ref(self) -> EntityRef:
        return EntityRef(entity_type=self.entity_type, entity_id=self.entity_id)

    def same_deployment(self, other: DeploymentEvent) -> bool:
        """Compare the fields that identify a deployment in a replica's history."""

        return (
            self.entity_type == other.entity_type
            and self.entity_id == other.entity_id
            and self.timestamp == other.timestamp
        )


@dataclass(frozen=True, slots=True)
class EntityContent:
    file: str
    hash: FileHash


@dataclass(frozen=True, slots=True)
class Entity:
    """A deployed, content-addressed entity document.

    ``metadata`` is opaque and compared structurally; dict equality is independent of
    key order while list order is significant.
    """

    id: EntityId
    type: EntityType
    pointers: tuple[Pointer, ...]
    timestamp: Timestamp
    content: tuple[EntityContent, ...] = ()
    metadata: object = None

    @property
    def ref(self) -> EntityRef:
        return EntityRef(entity_type=self.type, entity_id=self.id)

    @property
    def content_hashes(self) -> tuple[FileHash, ...]:
        return tuple(item.hash for item in self.content)


@dataclass(frozen=True, slots=True)
class AuditInfo:
    """Per-entity, per-replica deployment metadata."""

    version: str
    deployed_timestamp: Timestamp
    auth_chain: object = None
    overwritten_by: EntityId | None = None
    is_blacklisted: bool = False
    blacklisted_content: tuple[FileHash, ...] = field(default_factory=tuple)
    original_metadata: object = None

    @property
    def is_overwritten(self) -> bool:
        return bool(self.overwritten_by)

    def immutable_properties_match(self, other: AuditInfo) -> bool:
        return (
            self.version == other.version
            and self.deployed_timestamp == other.deployed_timestamp
            and self.auth_chain == other.auth_chain
            and self.original_metadata == other.original_metadata
        )


type ActivePointers = dict[EntityType, dict[Pointer, EntityId]]
type ReferencedContent = dict[FileHash, list[EntityRef]]
type FailedEntities = dict[EntityId, EntityType]
type FailedPointers = dict[Pointer, EntityType]


__all__ = [
    "ActivePointers",
    "AuditInfo",
    "DeploymentEvent",
    "Entity",
    "EntityContent",
    "EntityId",
    "EntityRef",
    "EntityType",
    "FailedEntities",
    "FailedPointers",
    "FailureCategory",
    "FileHash",
    "Pointer",
    "ReferencedContent",
    "ServerAddress",
    "ServerName",
    "Timestamp",
]
