from __future__ import annotations

from replicaudit.domain.consistency import ConsistencyReport
from replicaudit.domain.types import FailureCategory


def test_summary_lists_every_category() -> None:
    report = ConsistencyReport(
        failed_entities={"QmA": "scene"},
        failed_pointers={"0,0": "scene", "0,1": "scene"},
    )

    assert report.summary_lines() == [
        "Failed entities: 1",
        "Failed audit infos: 0",
        "Failed pointers: 2",
        "Failed content availability: 0",
        "Failed content files: 0",
        "\nFor more information, check the 'results' file",
    ]
    assert report.counts()[FailureCategory.POINTERS] == 2
    assert report.has_failures


def test_results_group_failures_by_category() -> None:
    report = ConsistencyReport(
        failed_entities={"QmB": "profile", "QmA": "scene"},
        failed_audit={"QmC": "scene"},
        failed_pointers={"0,0": "scene"},
        failed_content={"QmH2", "QmH1"},
        failed_content_files={"QmH3"},
    )

    assert report.format_results() == (
        "Failed Entities\n(scene, QmA)\n(profile, QmB)\n\n"
        "Failed Audit\n(scene, QmC)\n\n"
        "Failed Pointers\n(scene, 0,0)\n\n"
        "Failed Available Content\nQmH1\nQmH2\n\n"
        "Failed Content Files\nQmH3"
    )


def test_empty_report_has_headers_only() -> None:
    report = ConsistencyReport()

    assert not report.has_failures
    assert report.format_results().split("\n\n") == [
        "Failed Entities",
        "Failed Audit",
        "Failed Pointers",
        "Failed Available Content",
        "Failed Content Files",
    ]


def test_aborted_run_is_mentioned_in_summary() -> None:
    report = ConsistencyReport(aborted="Found a mismatch")

    assert "Run aborted early: Found a mismatch" in report.summary_lines()
