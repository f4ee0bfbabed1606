from __future__ import annotations

from datetime import timedelta

import pytest

from replicaudit.config import DEFAULT_EXCLUDED_SERVER_NAMES
from replicaudit.domain.consistency import ConsistencyReport
from replicaudit.domain.errors import InsufficientReplicasError
from replicaudit.ui import cli as cli_module


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(cli_module, "load_dotenv", lambda: False)
    for name in ("REPLICAUDIT_RETRIES", "REPLICAUDIT_CONCURRENCY", "REPLICAUDIT_CHUNK_SIZE"):
        monkeypatch.delenv(name, raising=False)


def test_check_passes_flags_through(monkeypatch: pytest.MonkeyPatch) -> None:
    captured: dict[str, object] = {}

    def fake_check(servers: object, **kwargs: object) -> ConsistencyReport:
        captured["servers"] = servers
        captured.update(kwargs)
        return ConsistencyReport()

    monkeypatch.setattr(cli_module, "run_consistency_check", fake_check)

    cli_module.main(
        [
            "check",
            "--server-addresses",
            "https://a.example/content",
            "https://b.example/content",
            "-o",
            "out",
            "--pc",
            "10",
            "--fail-fast",
            "--ignore",
            "QmSkip",
            "--skew-seconds",
            "30",
            "--retries",
            "3",
            "--no-progress",
        ]
    )

    audit = captured["audit"]
    assert captured["servers"] == ["https://a.example/content", "https://b.example/content"]
    assert captured["output_dir"] == "out"
    assert audit.content_sample_percentage == 10  # type: ignore[attr-defined]
    assert audit.fail_fast  # type: ignore[attr-defined]
    assert "QmSkip" in audit.ignored_entity_ids  # type: ignore[attr-defined]
    assert audit.history_skew == timedelta(seconds=30)  # type: ignore[attr-defined]
    assert audit.retries == 3  # type: ignore[attr-defined]
    assert not audit.show_progress  # type: ignore[attr-defined]


def test_check_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    captured: dict[str, object] = {}

    def fake_check(servers: object, **kwargs: object) -> ConsistencyReport:
        captured["servers"] = servers
        captured.update(kwargs)
        return ConsistencyReport()

    monkeypatch.setattr(cli_module, "run_consistency_check", fake_check)

    cli_module.main(["check"])

    audit = captured["audit"]
    assert captured["servers"] is None
    assert captured["output_dir"] is None
    assert audit.retries == 5  # type: ignore[attr-defined]
    assert audit.concurrency == 15  # type: ignore[attr-defined]
    assert audit.content_sample_percentage == 0  # type: ignore[attr-defined]
    assert not audit.fail_fast  # type: ignore[attr-defined]


def test_invalid_percentage_exits_with_validation_code() -> None:
    with pytest.raises(SystemExit) as excinfo:
        cli_module.main(["check", "--pc", "150"])

    assert excinfo.value.code == 2


def test_negative_skew_exits_with_validation_code() -> None:
    with pytest.raises(SystemExit) as excinfo:
        cli_module.main(["check", "--skew-seconds", "-1"])

    assert excinfo.value.code == 2


def test_fatal_error_exits_with_one(monkeypatch: pytest.MonkeyPatch) -> None:
    def failing_check(servers: object, **kwargs: object) -> ConsistencyReport:
        raise InsufficientReplicasError("Need 2 or more servers with the same history")

    monkeypatch.setattr(cli_module, "run_consistency_check", failing_check)

    with pytest.raises(SystemExit) as excinfo:
        cli_module.main(["check", "--server-addresses", "https://a.example/content"])

    assert excinfo.value.code == 1


def test_download_history_command(monkeypatch: pytest.MonkeyPatch) -> None:
    captured: dict[str, object] = {}

    def fake_download(servers: object, **kwargs: object) -> dict[str, object]:
        captured["servers"] = servers
        captured.update(kwargs)
        return {}

    monkeypatch.setattr(cli_module, "download_histories", fake_download)

    cli_module.main(["download-history", "histories", "--concurrency", "4"])

    assert captured["output_dir"] == "histories"
    assert captured["audit"].concurrency == 4  # type: ignore[attr-defined]


def test_compare_history_command(monkeypatch: pytest.MonkeyPatch) -> None:
    captured: dict[str, object] = {}

    def fake_compare(input_dir: str, output_dir: str, **kwargs: object) -> dict[str, int]:
        captured.update(input_dir=input_dir, output_dir=output_dir, **kwargs)
        return {}

    monkeypatch.setattr(cli_module, "compare_history_files", fake_compare)

    cli_module.main(["compare-history", "in", "out"])

    assert captured == {
        "input_dir": "in",
        "output_dir": "out",
        "excluded_server_names": DEFAULT_EXCLUDED_SERVER_NAMES,
    }


def test_compare_history_can_include_all_servers(monkeypatch: pytest.MonkeyPatch) -> None:
    captured: dict[str, object] = {}

    def fake_compare(input_dir: str, output_dir: str, **kwargs: object) -> dict[str, int]:
        captured.update(kwargs)
        return {}

    monkeypatch.setattr(cli_module, "compare_history_files", fake_compare)

    cli_module.main(["compare-history", "in", "out", "--include-all-servers"])

    assert captured == {"excluded_server_names": frozenset()}
