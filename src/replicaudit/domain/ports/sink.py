"""Port for persisting human-readable audit output."""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class ResultSink(Protocol):
    """Append-only destination for the three artifacts of a run."""

    def clear(self) -> None:
        """Truncate all artifacts at the start of a run."""
        ...

    def log(self, message: str) -> None: ...

    def failed(self, message: str) -> None:
        """Record one detected problem."""
        ...

    def results(self, message: str) -> None: ...
