"""Plain-text artifacts written to the output directory."""

from __future__ import annotations

import json
from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING
from urllib.parse import urlsplit

from pydantic import ValidationError

from replicaudit.adapters.replica.schema import DeploymentEventPayload
from replicaudit.adapters.replica.translator import (
    parse_deployment_event,
    serialize_deployment_event,
)

if TYPE_CHECKING:
    from collections.abc import Iterable
    from pathlib import Path

    from replicaudit.config.storage import OutputConfig
    from replicaudit.domain.types import DeploymentEvent, ServerAddress

log = getLogger(__name__)


class HistoryFileError(ValueError):
    """Raised when a stored history file cannot be parsed."""


@dataclass(slots=True)
class FileResultSink:
    """Append each message as one line to ``log.txt``, ``failed.txt`` or ``results.txt``.

    Lines sent to ``log`` and ``failed`` are mirrored to the application logger.
    """

    config: OutputConfig

    def clear(self) -> None:
        for path in (
            self.config.log_path(),
            self.config.failed_path(),
            self.config.results_path(),
        ):
            path.write_text("", encoding="utf-8")

    def log(self, message: str) -> None:
        log.info(message)
        _append(self.config.log_path(), message)

    def failed(self, message: str) -> None:
        log.warning(message)
        _append(self.config.failed_path(), message)

    def results(self, message: str) -> None:
        _append(self.config.results_path(), message)


def _append(path: Path, message: str) -> None:
    with path.open("a", encoding="utf-8") as handle:
        handle.write(message + "\n")


def server_file_name(address: ServerAddress) -> str:
    """Hostname of ``address``, used as the name of its history file."""

    parts = urlsplit(address if "://" in address else f"//{address}")
    hostname = parts.hostname
    if not hostname:
        raise ValueError(f"Cannot derive a host name from {address!r}")
    return hostname


def write_history(path: Path, events: Iterable[DeploymentEvent]) -> int:
    """Write ``events`` as JSON lines, returning how many were written."""

    lines = [json.dumps(serialize_deployment_event(event)) for event in events]
    path.write_text("\n".join(lines), encoding="utf-8")
    return len(lines)


def read_history(path: Path) -> list[DeploymentEvent]:
    events: list[DeploymentEvent] = []
    for number, line in enumerate(path.read_text(encoding="utf-8").splitlines(), start=1):
        if not line.strip():
            continue
        try:
            payload = DeploymentEventPayload.model_validate_json(line)
        except ValidationError as exc:
            raise HistoryFileError(f"Invalid event on line {number} of {path}") from exc
        events.append(parse_deployment_event(payload))
    return events
