from __future__ import annotations

import asyncio
from collections.abc import Callable  # noqa: TC003

import httpx
import pytest

from replicaudit.adapters.http_resilience import ResilienceConfig, ResilientClient
from replicaudit.adapters.registry import content_server_addresses, discover_replicas_async
from replicaudit.config import MissingConfigurationError, get_registry_config
from replicaudit.domain.errors import TransportError

REGISTRY_URL = "https://registry.example/nodes"


def _factory(
    handler: Callable[[httpx.Request], httpx.Response],
) -> Callable[[ResilienceConfig], ResilientClient]:
    def factory(resilience: ResilienceConfig) -> ResilientClient:
        return ResilientClient(resilience, transport=httpx.MockTransport(handler))

    return factory


def test_content_server_addresses_normalize_domains() -> None:
    addresses = content_server_addresses(
        [
            "peer.example",
            "https://other.example/",
            "http://insecure.example",
            "peer.example",
            " ",
        ]
    )

    assert addresses == ["https://peer.example/content", "https://other.example/content"]


def test_discover_reads_strings_and_objects(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("REPLICAUDIT_REGISTRY_URL", REGISTRY_URL)

    def handler(request: httpx.Request) -> httpx.Response:
        assert str(request.url) == REGISTRY_URL
        return httpx.Response(
            200,
            json=["peer.example", {"domain": "second.example"}, {"address": "third.example"}],
        )

    addresses = asyncio.run(
        discover_replicas_async(get_registry_config(), client_factory=_factory(handler))
    )

    assert addresses == [
        "https://peer.example/content",
        "https://second.example/content",
        "https://third.example/content",
    ]


def test_discover_wraps_invalid_payload(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("REPLICAUDIT_REGISTRY_URL", REGISTRY_URL)

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"nodes": "nope"})

    with pytest.raises(TransportError, match="Unexpected replica registry payload"):
        asyncio.run(
            discover_replicas_async(get_registry_config(), client_factory=_factory(handler))
        )


def test_registry_url_is_required(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("REPLICAUDIT_REGISTRY_URL", raising=False)

    with pytest.raises(MissingConfigurationError, match="REPLICAUDIT_REGISTRY_URL"):
        get_registry_config()
