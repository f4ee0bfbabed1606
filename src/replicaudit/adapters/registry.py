"""Discover replica addresses from a registry endpoint."""

from __future__ import annotations

from collections.abc import Mapping
from logging import getLogger
from typing import TYPE_CHECKING, cast

import httpx
from pydantic import BaseModel, ConfigDict, TypeAdapter, model_validator

from replicaudit.adapters.http_resilience import ResilientClient
from replicaudit.domain.errors import TransportError

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

    from replicaudit.config.http_resilience import ResilienceConfig
    from replicaudit.config.replica import RegistryConfig
    from replicaudit.domain.types import ServerAddress

log = getLogger(__name__)

CONTENT_PATH = "/content"


class RegistryEntry(BaseModel):
    """One registered node, either a bare domain string or an object naming it."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    domain: str

    @model_validator(mode="before")
    @classmethod
    def _accept_compact_forms(cls, value: object) -> object:
        if isinstance(value, str):
            return {"domain": value}
        if isinstance(value, Mapping):
            data = dict(cast(Mapping[str, object], value))
            if "domain" not in data and "address" in data:
                data["domain"] = data["address"]
            return data
        return value


REGISTRY_LIST = TypeAdapter(list[RegistryEntry])


def content_server_addresses(domains: Iterable[str]) -> list[ServerAddress]:
    """Turn registered node domains into replica addresses.

    Plain ``http`` nodes are skipped, bare domains get ``https://``, and every node
    serves its replica below ``/content``. Order is kept and duplicates dropped.
    """

    addresses: dict[ServerAddress, None] = {}
    for raw in domains:
        domain = raw.strip().rstrip("/")
        if not domain:
            continue
        if domain.startswith("http://"):
            log.warning("Node domain using http protocol, skipping %s", domain)
            continue
        if not domain.startswith("https://"):
            domain = "https://" + domain
        addresses[domain + CONTENT_PATH] = None
    return list(addresses)


def _default_client_factory(config: ResilienceConfig) -> ResilientClient:
    return ResilientClient(config)


async def discover_replicas_async(
    config: RegistryConfig,
    *,
    client_factory: Callable[[ResilienceConfig], ResilientClient] = _default_client_factory,
) -> list[ServerAddress]:
    async with client_factory(config.resilience) as client:
        try:
            response = await client.get(config.url)
            response.raise_for_status()
            entries = REGISTRY_LIST.validate_python(response.json())
        except httpx.HTTPError as exc:
            raise TransportError(f"Could not reach the replica registry: {exc}") from exc
        except ValueError as exc:
            raise TransportError(f"Unexpected replica registry payload: {exc}") from exc

    addresses = content_server_addresses(entry.domain for entry in entries)
    log.info("Discovered %s replicas from %s", len(addresses), config.url)
    return addresses
