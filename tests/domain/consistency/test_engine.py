from __future__ import annotations

import asyncio
import random
from dataclasses import replace

import pytest

from replicaudit.domain.consistency import ConsistencyEngine, ConsistencyReport
from replicaudit.domain.errors import EntityMismatchAbort, InsufficientReplicasError
from tests.support.replicas import FakeReplica, FakeTransport, MemorySink, make_entity

NOW = 1_000_000
SERVERS = ["https://a/content", "https://b/content", "https://c/content"]

E0 = make_entity("QmE0", ["10,20"], 10, content=["QmOnlyOld", "QmShared"])
E1 = make_entity("QmE1", ["10,20"], 20, content=["QmOnlyNew", "QmShared"])
PROFILE = make_entity("QmProfile", ["0xabc"], 15, entity_type="profile", content=["QmFace"])


def _replicas() -> dict[str, FakeReplica]:
    replicas: dict[str, FakeReplica] = {}
    for server in SERVERS:
        replica = FakeReplica.from_entities([E0, E1, PROFILE], overwritten_by={"QmE0": "QmE1"})
        # Content only referenced by the overwritten entity was garbage collected.
        del replica.contents["QmOnlyOld"]
        replicas[server] = replica
    return replicas


def _run(
    replicas: dict[str, FakeReplica],
    sink: MemorySink | None = None,
    **options: object,
) -> ConsistencyReport:
    engine = ConsistencyEngine(
        transport=FakeTransport(replicas),
        sink=sink or MemorySink(),
        show_progress=False,
        rng=random.Random(3),
        **options,  # type: ignore[arg-type]
    )
    return asyncio.run(engine.run(list(replicas), to=NOW))


def test_consistent_replicas_report_no_failures() -> None:
    sink = MemorySink()

    report = _run(_replicas(), sink, content_sample_percentage=100)

    assert not report.has_failures
    assert report.synchronized == tuple(SERVERS)
    assert sink.failures == []


def test_content_of_entity_overwritten_in_history_is_not_checked() -> None:
    sink = MemorySink()

    report = _run(_replicas(), sink)

    assert report.failed_content == set()
    assert report.failed_pointers == {}
    assert not any("QmOnlyOld" in line for line in sink.failures)


def test_overwrite_seen_only_in_audit_exempts_content() -> None:
    active = make_entity("QmE1", ["10,20"], 10, content=["QmOnlyE1"])
    newer = make_entity("QmE2", ["10,20"], 2_000_000)
    replicas = {
        "https://a/content": FakeReplica.from_entities([active]),
        "https://b/content": FakeReplica.from_entities(
            [active, newer], overwritten_by={"QmE1": "QmE2"}
        ),
        "https://c/content": FakeReplica.from_entities([active]),
    }
    # b already garbage collected the content of the entity it saw overwritten.
    del replicas["https://b/content"].contents["QmOnlyE1"]
    sink = MemorySink()

    report = _run(replicas, sink)

    assert not report.has_failures
    assert sink.failures == []
    assert report.synchronized == tuple(SERVERS)
    assert report.overwritten_pointers == 1
    assert report.pending_overwrites == 1


def test_entity_document_of_audit_overwritten_entity_stays_required() -> None:
    active = make_entity("QmE1", ["10,20"], 10, content=["QmOnlyE1"])
    newer = make_entity("QmE2", ["10,20"], 2_000_000)
    replicas = {
        "https://a/content": FakeReplica.from_entities([active]),
        "https://b/content": FakeReplica.from_entities(
            [active, newer], overwritten_by={"QmE1": "QmE2"}
        ),
        "https://c/content": FakeReplica.from_entities([active]),
    }
    replicas["https://b/content"].unavailable.add("QmE1")

    report = _run(replicas)

    assert report.failed_content == {"QmE1"}


def test_missing_active_hash_is_a_single_content_failure() -> None:
    replicas = _replicas()
    replicas["https://c/content"].unavailable.add("QmOnlyNew")
    sink = MemorySink()

    report = _run(replicas, sink)

    assert report.failed_content == {"QmOnlyNew"}
    assert report.failed_entities == {}
    assert report.failed_pointers == {}
    assert len([line for line in sink.failures if "QmOnlyNew" in line]) == 1


def test_down_replica_is_skipped() -> None:
    replicas = _replicas()
    replicas["https://b/content"].up = False
    sink = MemorySink()

    report = _run(replicas, sink)

    assert report.down == ("https://b/content",)
    assert report.synchronized == ("https://a/content", "https://c/content")
    assert any("servers are down" in line for line in sink.logs)


def test_fail_fast_attaches_partial_report() -> None:
    replicas = _replicas()
    replicas["https://b/content"].entities["QmProfile"] = replace(PROFILE, pointers=("0xdef",))

    with pytest.raises(EntityMismatchAbort) as excinfo:
        _run(replicas, fail_fast=True)

    report = excinfo.value.report
    assert report is not None
    assert report.failed_entities == {"QmProfile": "profile"}
    assert report.aborted is not None


def test_full_scan_reports_mismatch_and_continues() -> None:
    replicas = _replicas()
    replicas["https://b/content"].entities["QmProfile"] = replace(PROFILE, pointers=("0xdef",))

    report = _run(replicas)

    assert report.failed_entities == {"QmProfile": "profile"}
    assert report.aborted is None


def test_single_address_is_rejected() -> None:
    with pytest.raises(InsufficientReplicasError):
        _run({"https://a/content": _replicas()["https://a/content"]})


def test_single_live_replica_is_fatal() -> None:
    replicas = _replicas()
    replicas["https://b/content"].up = False
    replicas["https://c/content"].up = False

    with pytest.raises(InsufficientReplicasError):
        _run(replicas)
