"""Merged outcome of one audit run."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from replicaudit.domain.types import FailureCategory

if TYPE_CHECKING:
    from collections.abc import Mapping

    from replicaudit.domain.types import (
        FailedEntities,
        FailedPointers,
        FileHash,
        ServerAddress,
    )

    from .history import HistoryDivergence

SECTION_TITLES: dict[FailureCategory, str] = {
    FailureCategory.ENTITIES: "Failed Entities",
    FailureCategory.AUDIT: "Failed Audit",
    FailureCategory.POINTERS: "Failed Pointers",
    FailureCategory.CONTENT_AVAILABILITY: "Failed Available Content",
    FailureCategory.CONTENT_FILES: "Failed Content Files",
}

SUMMARY_LABELS: dict[FailureCategory, str] = {
    FailureCategory.ENTITIES: "Failed entities",
    FailureCategory.AUDIT: "Failed audit infos",
    FailureCategory.POINTERS: "Failed pointers",
    FailureCategory.CONTENT_AVAILABILITY: "Failed content availability",
    FailureCategory.CONTENT_FILES: "Failed content files",
}


@dataclass(slots=True, kw_only=True)
class ConsistencyReport:
    synchronized: tuple[ServerAddress, ...] = ()
    down: tuple[ServerAddress, ...] = ()
    history_divergences: tuple[HistoryDivergence, ...] = ()
    failed_entities: FailedEntities = field(default_factory=dict)
    failed_audit: FailedEntities = field(default_factory=dict)
    failed_pointers: FailedPointers = field(default_factory=dict)
    failed_content: set[FileHash] = field(default_factory=set)
    failed_content_files: set[FileHash] = field(default_factory=set)
    overwritten_pointers: int = 0
    pending_overwrites: int = 0
    aborted: str | None = None

    def counts(self) -> dict[FailureCategory, int]:
        return {
            FailureCategory.ENTITIES: len(self.failed_entities),
            FailureCategory.AUDIT: len(self.failed_audit),
            FailureCategory.POINTERS: len(self.failed_pointers),
            FailureCategory.CONTENT_AVAILABILITY: len(self.failed_content),
            FailureCategory.CONTENT_FILES: len(self.failed_content_files),
        }

    @property
    def has_failures(self) -> bool:
        return any(self.counts().values())

    def summary_lines(self) -> list[str]:
        lines = [
            f"{SUMMARY_LABELS[category]}: {count}" for category, count in self.counts().items()
        ]
        if self.aborted:
            lines.append(f"Run aborted early: {self.aborted}")
        lines.append("\nFor more information, check the 'results' file")
        return lines

    def format_results(self) -> str:
        sections = {
            FailureCategory.ENTITIES: _typed_lines(self.failed_entities),
            FailureCategory.AUDIT: _typed_lines(self.failed_audit),
            FailureCategory.POINTERS: _typed_lines(self.failed_pointers),
            FailureCategory.CONTENT_AVAILABILITY: sorted(self.failed_content),
            FailureCategory.CONTENT_FILES: sorted(self.failed_content_files),
        }
        return "\n\n".join(
            "\n".join([SECTION_TITLES[category], *lines]) for category, lines in sections.items()
        )


def _typed_lines(failures: Mapping[str, str]) -> list[str]:
    return [f"({entity_type}, {key})" for key, entity_type in sorted(failures.items())]
