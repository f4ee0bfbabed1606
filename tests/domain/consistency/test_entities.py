from __future__ import annotations

import asyncio
from dataclasses import replace

import pytest

from replicaudit.domain.consistency import (
    EntityReconciler,
    OverwrittenEntities,
    derive_active_state,
    mismatched_entity_ids,
)
from replicaudit.domain.errors import EntityMismatchAbort
from replicaudit.domain.types import DeploymentEvent, EntityRef
from tests.support.replicas import FakeReplica, FakeTransport, MemorySink, make_context, make_entity

NEWER = make_entity("QmNew", ["10,20", "10,21"], 20, content=["QmHashNew"])
OLDER = make_entity("QmOld", ["10,20"], 10, content=["QmHashOld"])
OTHER = make_entity("QmOther", ["0,0"], 5, content=["QmHashNew"])


def test_newest_entity_owns_shared_pointer() -> None:
    overwritten = OverwrittenEntities()

    state = derive_active_state([NEWER, OLDER, OTHER], overwritten)

    assert state.active_pointers == {
        "scene": {"10,20": "QmNew", "10,21": "QmNew", "0,0": "QmOther"}
    }
    assert "QmOld" in overwritten
    assert "QmNew" not in overwritten


def test_overwritten_entity_document_stays_referenced() -> None:
    state = derive_active_state([NEWER, OLDER], OverwrittenEntities())

    assert state.referenced_content["QmOld"] == [EntityRef("scene", "QmOld")]
    assert "QmHashOld" not in state.referenced_content
    assert state.referenced_content["QmHashNew"] == [EntityRef("scene", "QmNew")]


def test_shared_content_lists_every_active_reference() -> None:
    state = derive_active_state([NEWER, OTHER], OverwrittenEntities())

    assert state.referenced_content["QmHashNew"] == [
        EntityRef("scene", "QmNew"),
        EntityRef("scene", "QmOther"),
    ]


def test_pointer_spaces_are_per_type() -> None:
    profile = make_entity("QmProfile", ["10,20"], 1, entity_type="profile")

    state = derive_active_state([NEWER, profile], OverwrittenEntities())

    assert state.active_pointers["profile"] == {"10,20": "QmProfile"}
    assert state.active_pointers["scene"]["10,20"] == "QmNew"


def test_derivation_is_idempotent() -> None:
    entities = [NEWER, OLDER, OTHER]
    first_overwritten = OverwrittenEntities()
    second_overwritten = OverwrittenEntities()

    first = derive_active_state(entities, first_overwritten)
    second = derive_active_state(entities, second_overwritten)

    assert first == second
    assert list(first_overwritten) == list(second_overwritten)


def test_mismatched_ids_ignore_metadata_key_order() -> None:
    left = [replace(NEWER, metadata={"a": 1, "b": [1, 2]})]
    right = [replace(NEWER, metadata={"b": [1, 2], "a": 1})]
    reordered_list = [replace(NEWER, metadata={"a": 1, "b": [2, 1]})]

    assert mismatched_entity_ids(left, right) == []
    assert mismatched_entity_ids(left, reordered_list) == ["QmNew"]
    assert mismatched_entity_ids(left, []) == ["QmNew"]


def _replicas() -> dict[str, FakeReplica]:
    entities = [NEWER, OLDER, OTHER]
    return {
        "https://a/content": FakeReplica.from_entities(entities),
        "https://b/content": FakeReplica.from_entities(entities),
        "https://c/content": FakeReplica.from_entities(entities),
    }


def _events(replicas: dict[str, FakeReplica]) -> list[DeploymentEvent]:
    return list(replicas["https://a/content"].history)


def test_reconciler_derives_state_from_reference() -> None:
    replicas = _replicas()
    context = make_context(FakeTransport(replicas), chunk_size=1)

    result = asyncio.run(EntityReconciler(context)(_events(replicas), list(replicas)))

    assert result.failed_entities == {}
    assert result.active_pointers["scene"]["10,20"] == "QmNew"
    assert "QmOld" in context.overwritten


def test_reconciler_reports_body_mismatch_and_keeps_scanning() -> None:
    replicas = _replicas()
    replicas["https://c/content"].entities["QmOther"] = replace(OTHER, pointers=("9,9",))
    sink = MemorySink()
    context = make_context(FakeTransport(replicas), sink, chunk_size=1)

    result = asyncio.run(EntityReconciler(context)(_events(replicas), list(replicas)))

    assert result.failed_entities == {"QmOther": "scene"}
    assert result.active_pointers["scene"]["0,0"] == "QmOther"
    assert any("QmOther" in line and "https://c/content" in line for line in sink.failures)


def test_reconciler_records_missing_reference_entity_as_structural_failure() -> None:
    replicas = _replicas()
    del replicas["https://a/content"].entities["QmOld"]
    sink = MemorySink()
    context = make_context(FakeTransport(replicas), sink)

    asyncio.run(EntityReconciler(context)(_events(replicas), list(replicas)))

    assert any(
        "Expected to find 3 entities" in line and "Instead found 2" in line
        for line in sink.failures
    )


def test_transport_error_marks_chunk_failed() -> None:
    replicas = _replicas()
    replicas["https://b/content"].failing.add("fetch_entities")
    context = make_context(FakeTransport(replicas))

    result = asyncio.run(EntityReconciler(context)(_events(replicas), list(replicas)))

    assert result.failed_entities == {"QmNew": "scene", "QmOld": "scene", "QmOther": "scene"}


def test_fail_fast_aborts_with_partial_failures() -> None:
    replicas = _replicas()
    replicas["https://b/content"].entities["QmNew"] = replace(NEWER, timestamp=21)
    context = make_context(FakeTransport(replicas))

    with pytest.raises(EntityMismatchAbort) as excinfo:
        asyncio.run(EntityReconciler(context, fail_fast=True)(_events(replicas), list(replicas)))

    assert excinfo.value.failed_entities == {"QmNew": "scene"}
    assert context.cancellation.cancelled
