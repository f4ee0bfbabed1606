"""Check that every active pointer resolves to the same entity on every replica."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from replicaudit.domain.errors import TransportError

from .chunking import PointerChunk, create_pointer_chunks

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from replicaudit.domain.types import (
        ActivePointers,
        Entity,
        EntityId,
        FailedPointers,
        Pointer,
        ServerAddress,
    )

    from .state import CheckContext


@dataclass(slots=True)
class PointerCheckResult:
    failed_pointers: FailedPointers
    overwritten_pointers: int = 0


def resolve_pointers(entities: Iterable[Entity]) -> dict[Pointer, EntityId]:
    resolved: dict[Pointer, EntityId] = {}
    for entity in entities:
        for pointer in entity.pointers:
            resolved[pointer] = entity.id
    return resolved


@dataclass(slots=True)
class PointerReconciler:
    """Compare pointer resolution on every replica against the reference's active map.

    A pointer resolving elsewhere is tolerated when the expected entity is already
    marked overwritten on that replica: a newer deployment is still propagating.
    """

    context: CheckContext

    async def __call__(
        self,
        active_pointers: ActivePointers,
        servers: Sequence[ServerAddress],
    ) -> PointerCheckResult:
        result = PointerCheckResult(failed_pointers={})
        chunks = create_pointer_chunks(active_pointers, self.context.chunk_size)

        async def check_chunk(chunk: PointerChunk) -> None:
            for server in servers:
                await self._check_on_server(chunk, server, result)

        await self.context.runner.run("Checking pointers", chunks, check_chunk)

        self.context.sink.log(f"Checked pointers. {result.overwritten_pointers} were overwritten")
        return result

    async def _check_on_server(
        self,
        chunk: PointerChunk,
        server: ServerAddress,
        result: PointerCheckResult,
    ) -> None:
        transport = self.context.transport
        sink = self.context.sink
        try:
            entities = await transport.fetch_entities_by_pointers(
                server, chunk.entity_type, chunk.pointers
            )
            resolved = resolve_pointers(entities)
            for expected in chunk.expected:
                actual = resolved.get(expected.pointer)
                if actual == expected.entity_id:
                    continue
                audit = await transport.fetch_audit_info(
                    server, chunk.entity_type, expected.entity_id
                )
                if audit.is_overwritten:
                    result.overwritten_pointers += 1
                    continue
                result.failed_pointers[expected.pointer] = chunk.entity_type
                sink.failed(
                    f"Found a mismatch. Entity in pointer {expected.pointer} was expected to be "
                    f"{expected.entity_id}, but it is {actual} on {server}"
                )
        except TransportError as exc:
            for pointer in chunk.pointers:
                result.failed_pointers[pointer] = chunk.entity_type
            sink.failed(
                f"Failed to check pointers {list(chunk.pointers)} of type {chunk.entity_type} "
                f"on {server}: {exc}"
            )
