"""Offline comparison of stored replica histories."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping, Sequence

    from replicaudit.domain.types import DeploymentEvent, EntityId, ServerName


def union_by_entity(histories: Iterable[Sequence[DeploymentEvent]]) -> list[DeploymentEvent]:
    """Merge histories keyed by entity id; a later history wins for a repeated id."""

    union: dict[EntityId, DeploymentEvent] = {}
    for history in histories:
        for event in history:
            union[event.entity_id] = event
    return list(union.values())


def missing_events(
    union: Sequence[DeploymentEvent],
    history: Sequence[DeploymentEvent],
    *,
    excluded_server_names: frozenset[ServerName] = frozenset(),
) -> list[DeploymentEvent]:
    """Events of ``union`` that ``history`` lacks or records differently.

    Events originating from ``excluded_server_names`` are never reported.
    """

    by_id = {event.entity_id: event for event in history}
    return [
        event
        for event in union
        if by_id.get(event.entity_id) != event and event.server_name not in excluded_server_names
    ]


def compare_histories(
    histories: Mapping[str, Sequence[DeploymentEvent]],
    *,
    excluded_server_names: frozenset[ServerName] = frozenset(),
) -> dict[str, list[DeploymentEvent]]:
    """Missing events for every named history, relative to the union of all of them."""

    union = union_by_entity(histories.values())
    return {
        name: missing_events(union, history, excluded_server_names=excluded_server_names)
        for name, history in histories.items()
    }
