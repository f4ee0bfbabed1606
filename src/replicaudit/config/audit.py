"""Run-wide settings for a consistency audit."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from typing import TYPE_CHECKING, Final

from .env import env_int, env_list
from .errors import ConfigurationError
from .http_resilience import DEFAULT_RETRY_ATTEMPTS

if TYPE_CHECKING:
    from collections.abc import Iterable

DEFAULT_CONCURRENCY: Final[int] = 15
DEFAULT_CHUNK_SIZE: Final[int] = 40
DEFAULT_HISTORY_SKEW: Final[timedelta] = timedelta(minutes=2)
DEFAULT_EXPORT_SKEW: Final[timedelta] = timedelta(minutes=5)
DEFAULT_REQUEST_TIMEOUT_SECONDS: Final[float] = 30.0

# Deployments known to be broken on the reference network; excluded from every history.
DEFAULT_IGNORED_ENTITY_IDS: Final[frozenset[str]] = frozenset(
    {
        "QmNn2oVpyXxNzhM8nZa4jsUu76e8EXbYDs7NaPjb8aFuxj",
        "QmbTsE4NJ1Mg82YF2xVbfkFRWkxzSJfVFgQw5eiaGNk3TH",
        "QmPJ4Ct9A3a2tVB1Cse56xxUa4MmfvLQntLeNbcvLmZgMc",
        "Qmd7fJe4qWMfzXjgqX65GPa6tDfhMuGP2npyf1brtrUPv5",
        "QmeCfwXhvXyuXcWx9eM3FCkdd5PxQ3shZtmnhWaWsAeeft",
        "QmRUp4RoTa32PLj4VC5bwfmwDc3SMBVUdsk6rzKpPLzgzf",
        "QmcvfmuW3n29pXzYNobH4FiXKBycjA79wV49JtAr8At619",
        "QmYE3oq6J59J3hEnNWYds5dn1BXa3uMFFroMTN7ZaRFVKt",
        "QmRmN36qtANL8M7x7s69ndyMe3oWKk9bViePJJNp3SKS8f",
    }
)

# Server names whose deployments are skipped when comparing stored histories offline.
DEFAULT_EXCLUDED_SERVER_NAMES: Final[frozenset[str]] = frozenset(
    {
        "0b447141-540a-42dd-a579-3d95e6e83259",
        "47827f19-dfe7-4662-a6f8-48cdd9c078d7",
        "7173c4be-ac32-4662-b5f2-eff6ce28f84e",
        "84c62f6c-1af5-41cc-a26c-5bcf742d814b",
    }
)


@dataclass(frozen=True, slots=True)
class AuditConfig:
    """Holds the knobs of one audit run."""

    retries: int = DEFAULT_RETRY_ATTEMPTS
    concurrency: int = DEFAULT_CONCURRENCY
    content_sample_percentage: int = 0
    chunk_size: int = DEFAULT_CHUNK_SIZE
    history_skew: timedelta = DEFAULT_HISTORY_SKEW
    ignored_entity_ids: frozenset[str] = DEFAULT_IGNORED_ENTITY_IDS
    fail_fast: bool = False
    show_progress: bool = True
    request_timeout_seconds: float = DEFAULT_REQUEST_TIMEOUT_SECONDS
    max_requests_per_second: int | None = None

    def __post_init__(self) -> None:
        if self.retries < 1:
            raise ConfigurationError("Retries must be at least 1")
        if self.concurrency < 1:
            raise ConfigurationError("Concurrency must be at least 1")
        if self.chunk_size < 1:
            raise ConfigurationError("Chunk size must be at least 1")
        if not 0 <= self.content_sample_percentage <= 100:
            raise ConfigurationError("Content sample percentage must be between 0 and 100")
        if self.history_skew < timedelta(0):
            raise ConfigurationError("History skew must be non-negative")
        if self.max_requests_per_second is not None and self.max_requests_per_second < 1:
            raise ConfigurationError("Request rate limit must be at least 1 per second")


def get_audit_config(
    *,
    retries: int | None = None,
    concurrency: int | None = None,
    content_sample_percentage: int | None = None,
    fail_fast: bool = False,
    extra_ignored_entity_ids: Iterable[str] = (),
    history_skew: timedelta | None = None,
    max_requests_per_second: int | None = None,
    show_progress: bool = True,
) -> AuditConfig:
    """Combine explicit overrides with ``REPLICAUDIT_*`` environment defaults."""

    ignored = set(DEFAULT_IGNORED_ENTITY_IDS)
    ignored.update(env_list("REPLICAUDIT_IGNORED_ENTITY_IDS"))
    ignored.update(extra_ignored_entity_ids)

    return AuditConfig(
        retries=retries
        if retries is not None
        else env_int("REPLICAUDIT_RETRIES", DEFAULT_RETRY_ATTEMPTS),
        concurrency=concurrency
        if concurrency is not None
        else env_int("REPLICAUDIT_CONCURRENCY", DEFAULT_CONCURRENCY),
        content_sample_percentage=content_sample_percentage or 0,
        chunk_size=env_int("REPLICAUDIT_CHUNK_SIZE", DEFAULT_CHUNK_SIZE),
        history_skew=history_skew if history_skew is not None else DEFAULT_HISTORY_SKEW,
        ignored_entity_ids=frozenset(ignored),
        fail_fast=fail_fast,
        show_progress=show_progress,
        max_requests_per_second=max_requests_per_second,
    )
