from __future__ import annotations

import asyncio

import httpx

from replicaudit.adapters.http_resilience import (
    RateLimit,
    ResilienceConfig,
    ResilientClient,
    RetryPolicy,
    build_retry,
)


def test_build_retry_reflects_policy() -> None:
    policy = RetryPolicy.from_attempts(3)

    retry = build_retry(policy)

    assert policy.total == 2
    assert retry.total == 2
    assert retry.backoff_factor == policy.backoff_factor
    assert retry.max_backoff_wait == policy.max_backoff_wait
    assert 503 in retry.status_forcelist


def test_from_attempts_never_goes_below_one_try() -> None:
    assert RetryPolicy.from_attempts(0).total == 0


def test_retries_server_errors_then_succeeds() -> None:
    calls: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        if len(calls) < 3:
            return httpx.Response(503)
        return httpx.Response(200, json={"ok": True})

    config = ResilienceConfig(
        name="replica",
        base_url="https://replica.example/content/",
        retry=RetryPolicy(total=3, backoff_factor=0.0, backoff_jitter=0.0),
        default_headers={"User-Agent": "replicaudit-tests"},
    )

    async def run() -> httpx.Response:
        async with ResilientClient(config, transport=httpx.MockTransport(handler)) as client:
            return await client.get("status")

    response = asyncio.run(run())

    assert response.status_code == 200
    assert len(calls) == 3
    assert calls[0].url == httpx.URL("https://replica.example/content/status")
    assert calls[0].headers["User-Agent"] == "replicaudit-tests"


def test_rate_limit_still_lets_requests_through() -> None:
    config = ResilienceConfig(
        name="limited",
        retry=RetryPolicy(total=0),
        ratelimit=RateLimit(max_calls=10, per_seconds=1.0),
    )
    transport = httpx.MockTransport(lambda _request: httpx.Response(204))

    async def run() -> list[int]:
        async with ResilientClient(config, transport=transport) as client:
            responses = [await client.get("https://replica.example/status") for _ in range(3)]
        return [response.status_code for response in responses]

    assert asyncio.run(run()) == [204, 204, 204]
