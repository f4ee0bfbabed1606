"""Compare entity bodies across replicas and derive the active pointer state."""

from __future__ import annotations

from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING

from replicaudit.domain.errors import EntityMismatchAbort, TransportError

from .chunking import EntityChunk, create_entity_chunks

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from replicaudit.domain.types import (
        ActivePointers,
        DeploymentEvent,
        Entity,
        EntityId,
        EntityRef,
        FailedEntities,
        FileHash,
        ReferencedContent,
        ServerAddress,
    )

    from .state import CheckContext, OverwrittenEntities

log = getLogger(__name__)


@dataclass(slots=True)
class ActiveState:
    """Which entity each pointer resolves to, and which content must be reachable."""

    active_pointers: ActivePointers = field(default_factory=dict)
    referenced_content: ReferencedContent = field(default_factory=dict)


@dataclass(slots=True)
class EntityCheckResult:
    active_pointers: ActivePointers
    referenced_content: ReferencedContent
    failed_entities: FailedEntities


def _reference(content: ReferencedContent, file_hash: FileHash, ref: EntityRef) -> None:
    refs = content.setdefault(file_hash, [])
    if ref not in refs:
        refs.append(ref)


def derive_active_state(
    entities: Iterable[Entity],
    overwritten: OverwrittenEntities,
) -> ActiveState:
    """Walk ``entities`` newest first and resolve pointer ownership by recency.

    An entity is active when none of its pointers were claimed by a newer entity of
    the same type; otherwise it is recorded as overwritten. Every entity document is
    referenced regardless, since replicas keep entity files of overwritten entities.
    """

    state = ActiveState()
    for entity in entities:
        pointers = state.active_pointers.setdefault(entity.type, {})
        _reference(state.referenced_content, entity.id, entity.ref)

        if any(pointer in pointers for pointer in entity.pointers):
            overwritten.add(entity.id)
            continue

        for pointer in entity.pointers:
            pointers[pointer] = entity.id
        for file_hash in entity.content_hashes:
            _reference(state.referenced_content, file_hash, entity.ref)
    return state


def mismatched_entity_ids(
    reference: Sequence[Entity],
    other: Sequence[Entity],
) -> list[EntityId]:
    """Ids whose bodies differ, or that only one side returned."""

    reference_by_id = {entity.id: entity for entity in reference}
    other_by_id = {entity.id: entity for entity in other}
    return sorted(
        entity_id
        for entity_id in reference_by_id.keys() | other_by_id.keys()
        if reference_by_id.get(entity_id) != other_by_id.get(entity_id)
    )


def _in_history_order(chunk: EntityChunk, entities: Sequence[Entity]) -> list[Entity]:
    by_id = {entity.id: entity for entity in entities}
    return [by_id[entity_id] for entity_id in chunk.entity_ids if entity_id in by_id]


@dataclass(slots=True)
class EntityReconciler:
    """Deep-compare entity bodies of every synchronized replica against the reference.

    With ``fail_fast`` the first body mismatch cancels the remaining chunks and the
    phase raises ``EntityMismatchAbort`` once in-flight chunks have drained.
    """

    context: CheckContext
    fail_fast: bool = False

    async def __call__(
        self,
        events: Sequence[DeploymentEvent],
        servers: Sequence[ServerAddress],
    ) -> EntityCheckResult:
        chunks = create_entity_chunks(events, self.context.chunk_size)
        reference_server = servers[0]
        reference_by_chunk: dict[int, list[Entity]] = {}
        failed: FailedEntities = {}

        async def check_chunk(indexed: tuple[int, EntityChunk]) -> None:
            index, chunk = indexed
            reference_entities = await self._fetch_reference(chunk, reference_server, failed)
            if reference_entities is None:
                return
            for server in servers[1:]:
                await self._compare_with(
                    chunk, reference_entities, reference_server, server, failed
                )
            reference_by_chunk[index] = _in_history_order(chunk, reference_entities)

        await self.context.runner.run("Checking entities", list(enumerate(chunks)), check_chunk)

        if self.fail_fast and self.context.cancellation.cancelled:
            raise EntityMismatchAbort(
                self.context.cancellation.reason or "Entity mismatch",
                failed_entities=failed,
            )

        ordered = [
            entity for index in sorted(reference_by_chunk) for entity in reference_by_chunk[index]
        ]
        state = derive_active_state(ordered, self.context.overwritten)
        log.info(
            "Checked %s entities: %s failed, %s overwritten",
            len(ordered),
            len(failed),
            len(self.context.overwritten),
        )
        return EntityCheckResult(
            active_pointers=state.active_pointers,
            referenced_content=state.referenced_content,
            failed_entities=failed,
        )

    async def _fetch_reference(
        self,
        chunk: EntityChunk,
        server: ServerAddress,
        failed: FailedEntities,
    ) -> list[Entity] | None:
        sink = self.context.sink
        try:
            entities = await self.context.transport.fetch_entities(
                server, chunk.entity_type, chunk.entity_ids
            )
        except TransportError as exc:
            for entity_id in chunk.entity_ids:
                failed[entity_id] = chunk.entity_type
            sink.failed(f"Failed to fetch entities {list(chunk.entity_ids)} from {server}: {exc}")
            return None

        if len(entities) != len(chunk):
            sink.failed(
                f"Expected to find {len(chunk)} entities when searching for ids "
                f"{list(chunk.entity_ids)} on server {server}. Instead found {len(entities)}"
            )
            return None
        return entities

    async def _compare_with(
        self,
        chunk: EntityChunk,
        reference_entities: list[Entity],
        reference_server: ServerAddress,
        server: ServerAddress,
        failed: FailedEntities,
    ) -> None:
        sink = self.context.sink
        try:
            entities = await self.context.transport.fetch_entities(
                server, chunk.entity_type, chunk.entity_ids
            )
        except TransportError as exc:
            for entity_id in chunk.entity_ids:
                failed[entity_id] = chunk.entity_type
            sink.failed(f"Failed to fetch entities {list(chunk.entity_ids)} from {server}: {exc}")
            return

        mismatched = mismatched_entity_ids(reference_entities, entities)
        if not mismatched:
            return
        for entity_id in mismatched:
            failed[entity_id] = chunk.entity_type
        message = (
            f"Found a mismatch. Entities with ids {mismatched} are different in "
            f"{reference_server} and {server}"
        )
        sink.failed(message)
        if self.fail_fast:
            self.context.cancellation.cancel(message)
