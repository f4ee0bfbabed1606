"""Split work into type-scoped batches that respect query-length limits."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping, Sequence

    from replicaudit.domain.types import (
        DeploymentEvent,
        EntityId,
        EntityType,
        Pointer,
    )


def split_into_chunks[T](items: Sequence[T], chunk_size: int) -> list[list[T]]:
    """Split ``items`` into consecutive chunks of at most ``chunk_size`` elements."""

    if chunk_size < 1:
        raise ValueError("Chunk size must be at least 1")
    return [list(items[start : start + chunk_size]) for start in range(0, len(items), chunk_size)]


@dataclass(frozen=True, slots=True)
class EntityChunk:
    """Ids of a single entity type, in canonical (newest first) history order."""

    entity_type: EntityType
    entity_ids: tuple[EntityId, ...]

    def __len__(self) -> int:
        return len(self.entity_ids)


@dataclass(frozen=True, slots=True)
class ExpectedPointer:
    pointer: Pointer
    entity_id: EntityId


@dataclass(frozen=True, slots=True)
class PointerChunk:
    entity_type: EntityType
    expected: tuple[ExpectedPointer, ...]

    @property
    def pointers(self) -> tuple[Pointer, ...]:
        return tuple(item.pointer for item in self.expected)


def create_entity_chunks(events: Iterable[DeploymentEvent], chunk_size: int) -> list[EntityChunk]:
    """Group event entity ids by type and chunk each group.

    Types appear in order of first occurrence; ids keep their history order and are
    deduplicated within a type.
    """

    ids_by_type: dict[EntityType, dict[EntityId, None]] = {}
    for event in events:
        ids_by_type.setdefault(event.entity_type, {})[event.entity_id] = None

    chunks: list[EntityChunk] = []
    for entity_type, ids in ids_by_type.items():
        for chunk in split_into_chunks(list(ids), chunk_size):
            chunks.append(EntityChunk(entity_type=entity_type, entity_ids=tuple(chunk)))
    return chunks


def create_pointer_chunks(
    active_pointers: Mapping[EntityType, Mapping[Pointer, EntityId]],
    chunk_size: int,
) -> list[PointerChunk]:
    chunks: list[PointerChunk] = []
    for entity_type, pointers in active_pointers.items():
        expected = [
            ExpectedPointer(pointer=pointer, entity_id=entity_id)
            for pointer, entity_id in pointers.items()
        ]
        for chunk in split_into_chunks(expected, chunk_size):
            chunks.append(PointerChunk(entity_type=entity_type, expected=tuple(chunk)))
    return chunks
