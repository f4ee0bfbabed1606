"""Replica and registry HTTP configuration values."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING
from urllib.parse import urlsplit

from .env import require_env_vars
from .errors import InvalidServerAddressError
from .http_resilience import RateLimit, ResilienceConfig, RetryPolicy

if TYPE_CHECKING:
    from .audit import AuditConfig

USER_AGENT = "replicaudit (+consistency audit)"
REGISTRY_TIMEOUT_SECONDS = 15.0


def normalize_server_address(address: str) -> str:
    """Strip whitespace and trailing slashes, rejecting non-HTTP addresses."""

    normalized = address.strip().rstrip("/")
    parts = urlsplit(normalized)
    if parts.scheme not in {"http", "https"} or not parts.netloc:
        raise InvalidServerAddressError(f"Invalid replica address: {address!r}")
    return normalized


def replica_resilience_config(server: str, *, audit: AuditConfig) -> ResilienceConfig:
    # base_url keeps the path: replicas are usually mounted below ``/content``.
    ratelimit = (
        RateLimit(max_calls=audit.max_requests_per_second, per_seconds=1.0)
        if audit.max_requests_per_second
        else None
    )
    return ResilienceConfig(
        name=f"replica:{server}",
        base_url=normalize_server_address(server) + "/",
        timeout_seconds=audit.request_timeout_seconds,
        retry=RetryPolicy.from_attempts(audit.retries),
        ratelimit=ratelimit,
        default_headers={"User-Agent": USER_AGENT},
    )


@dataclass(frozen=True, slots=True)
class RegistryConfig:
    """Where to discover replica addresses when none are given explicitly."""

    url: str
    resilience: ResilienceConfig


def get_registry_config(*, retries: int = 3) -> RegistryConfig:
    values = require_env_vars(("REPLICAUDIT_REGISTRY_URL",))
    url = values["REPLICAUDIT_REGISTRY_URL"]
    return RegistryConfig(
        url=url,
        resilience=ResilienceConfig(
            name="registry",
            timeout_seconds=REGISTRY_TIMEOUT_SECONDS,
            retry=RetryPolicy.from_attempts(retries),
            default_headers={"User-Agent": USER_AGENT},
        ),
    )
