"""Domain port definitions for adapters."""

from __future__ import annotations

from .sink import ResultSink
from .transport import ReplicaTransport

__all__ = ["ReplicaTransport", "ResultSink"]
