"""Configuration types for resilient HTTP clients."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import httpx

if TYPE_CHECKING:
    from collections.abc import Mapping

DEFAULT_RETRY_ATTEMPTS = 5


@dataclass(slots=True, frozen=True)
class RetryPolicy:
    """Retry budget for one logical request.

    ``total`` counts retries, not attempts: a request is tried ``total + 1`` times.
    The default backoff waits between one and ten seconds with full jitter.
    """

    total: int = DEFAULT_RETRY_ATTEMPTS - 1
    backoff_factor: float = 1.0
    max_backoff_wait: float = 10.0
    respect_retry_after_header: bool = True
    allowed_methods: frozenset[str] = field(default_factory=lambda: frozenset({"GET", "HEAD"}))
    status_forcelist: frozenset[int] = field(
        default_factory=lambda: frozenset({408, 425, 429, 500, 502, 503, 504})
    )
    retry_on_exceptions: tuple[type[httpx.HTTPError], ...] = (
        httpx.TimeoutException,
        httpx.NetworkError,
        httpx.RemoteProtocolError,
    )
    backoff_jitter: float = 1.0

    @classmethod
    def from_attempts(cls, attempts: int) -> RetryPolicy:
        """Build a policy allowing ``attempts`` tries in total (at least one)."""

        return cls(total=max(attempts - 1, 0))


@dataclass(slots=True, frozen=True)
class RateLimit:
    max_calls: int
    per_seconds: float


@dataclass(slots=True, frozen=True)
class ResilienceConfig:
    name: str
    base_url: str | None = None
    timeout_seconds: float = 30.0
    retry: RetryPolicy = field(default_factory=RetryPolicy)
    ratelimit: RateLimit | None = None
    default_headers: Mapping[str, str] | None = None
