"""Run-scoped state shared between reconciliation phases."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator

    from replicaudit.domain.ports import ReplicaTransport, ResultSink
    from replicaudit.domain.types import EntityId

    from .runner import BoundedTaskRunner


class OverwrittenEntities:
    """Append-only set of entity ids seen overwritten on at least one replica.

    One instance lives for exactly one run. Every phase may add to it at any time;
    there is no way to remove an id.
    """

    __slots__ = ("_ids",)

    def __init__(self, entity_ids: Iterable[EntityId] = ()) -> None:
        self._ids: set[EntityId] = set(entity_ids)

    def add(self, entity_id: EntityId) -> None:
        self._ids.add(entity_id)

    def __contains__(self, entity_id: object) -> bool:
        return entity_id in self._ids

    def __iter__(self) -> Iterator[EntityId]:
        return iter(sorted(self._ids))

    def __len__(self) -> int:
        return len(self._ids)

    def __repr__(self) -> str:
        return f"OverwrittenEntities({len(self._ids)} ids)"


@dataclass(slots=True)
class CancellationToken:
    """Cooperative stop signal checked by the task runner between submissions."""

    reason: str | None = None

    def cancel(self, reason: str) -> None:
        if self.reason is None:
            self.reason = reason

    @property
    def cancelled(self) -> bool:
        return self.reason is not None


@dataclass(slots=True, kw_only=True)
class CheckContext:
    """Collaborators and shared state handed to every phase of one run."""

    transport: ReplicaTransport
    sink: ResultSink
    runner: BoundedTaskRunner
    chunk_size: int
    overwritten: OverwrittenEntities = field(default_factory=OverwrittenEntities)
    cancellation: CancellationToken = field(default_factory=CancellationToken)
