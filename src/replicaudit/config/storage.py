"""Output location configuration for audit artifacts."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Final

from .env import optional_env_var

LOG_FILENAME: Final[str] = "log.txt"
FAILED_FILENAME: Final[str] = "failed.txt"
RESULTS_FILENAME: Final[str] = "results.txt"
MISSING_HISTORY_PREFIX: Final[str] = "missing-"


@dataclass(frozen=True, slots=True)
class OutputConfig:
    output_dir: Path

    def resolve_output_dir(self) -> Path:
        return self.output_dir.expanduser().resolve()

    def ensure_output_dir(self) -> Path:
        output_dir = self.resolve_output_dir()
        output_dir.mkdir(parents=True, exist_ok=True)
        return output_dir

    def log_path(self, *, ensure: bool = True) -> Path:
        base = self.ensure_output_dir() if ensure else self.resolve_output_dir()
        return base / LOG_FILENAME

    def failed_path(self, *, ensure: bool = True) -> Path:
        base = self.ensure_output_dir() if ensure else self.resolve_output_dir()
        return base / FAILED_FILENAME

    def results_path(self, *, ensure: bool = True) -> Path:
        base = self.ensure_output_dir() if ensure else self.resolve_output_dir()
        return base / RESULTS_FILENAME


def get_output_config(output_dir: str | Path | None = None) -> OutputConfig:
    """Resolve the output directory from the argument, the environment, or the cwd."""

    if output_dir is not None and str(output_dir).strip():
        return OutputConfig(output_dir=Path(output_dir))
    env_dir = optional_env_var("REPLICAUDIT_OUTPUT_DIR")
    return OutputConfig(output_dir=Path(env_dir) if env_dir else Path.cwd())
