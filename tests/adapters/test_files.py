from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from replicaudit.adapters.files import (
    FileResultSink,
    HistoryFileError,
    read_history,
    server_file_name,
    write_history,
)
from replicaudit.config import get_output_config
from replicaudit.domain.ports import ResultSink
from replicaudit.domain.types import DeploymentEvent

if TYPE_CHECKING:
    from pathlib import Path


def test_sink_appends_lines_and_clears(tmp_path: Path) -> None:
    config = get_output_config(tmp_path / "out")
    sink = FileResultSink(config)

    sink.log("first")
    sink.log("second")
    sink.failed("broken")
    sink.results("Failed Entities")

    assert isinstance(sink, ResultSink)
    assert config.log_path().read_text() == "first\nsecond\n"
    assert config.failed_path().read_text() == "broken\n"
    assert config.results_path().read_text() == "Failed Entities\n"

    sink.clear()

    assert config.log_path().read_text() == ""
    assert config.failed_path().read_text() == ""
    assert config.results_path().read_text() == ""


@pytest.mark.parametrize(
    ("address", "expected"),
    [
        ("https://peer.example/content", "peer.example"),
        ("http://localhost:6969", "localhost"),
        ("https://peer.example:443/content?x=1", "peer.example"),
        ("peer.example/content", "peer.example"),
    ],
)
def test_server_file_name_is_hostname(address: str, expected: str) -> None:
    assert server_file_name(address) == expected


def test_history_round_trip(tmp_path: Path) -> None:
    events = [
        DeploymentEvent(entity_type="scene", entity_id="QmB", server_name="s1", timestamp=20),
        DeploymentEvent(entity_type="profile", entity_id="QmA", server_name="s2", timestamp=10),
    ]
    path = tmp_path / "peer.example"

    assert write_history(path, events) == 2
    assert path.read_text().splitlines()[0] == (
        '{"entityId": "QmB", "entityType": "scene", "serverName": "s1", "timestamp": 20}'
    )
    assert read_history(path) == events


def test_invalid_history_line_is_reported(tmp_path: Path) -> None:
    path = tmp_path / "broken"
    path.write_text('{"entityId": "QmA"}\n')

    with pytest.raises(HistoryFileError, match="line 1"):
        read_history(path)
