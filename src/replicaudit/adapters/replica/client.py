"""HTTP transport for replica servers."""

from __future__ import annotations

from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING

import httpx
from pydantic import ValidationError

from replicaudit.adapters.http_resilience import ResilienceConfig, ResilientClient
from replicaudit.config.audit import AuditConfig
from replicaudit.config.replica import replica_resilience_config
from replicaudit.domain.errors import TransportError
from replicaudit.domain.ports import ReplicaTransport

from .schema import AVAILABILITY_LIST, ENTITY_LIST, AuditInfoPayload, HistoryPage
from .translator import parse_audit_info, parse_deployment_event, parse_entity

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence
    from types import TracebackType

    from replicaudit.domain.types import (
        AuditInfo,
        DeploymentEvent,
        Entity,
        EntityId,
        EntityType,
        FileHash,
        Pointer,
        ServerAddress,
        Timestamp,
    )

log = getLogger(__name__)

type QueryParams = list[tuple[str, str | int]]


def _default_client_factory(config: ResilienceConfig) -> ResilientClient:
    return ResilientClient(config)


@dataclass(slots=True)
class HttpReplicaTransport:
    """``ReplicaTransport`` over each replica's public HTTP API.

    One ``ResilientClient`` is opened lazily per replica and kept for the lifetime of the
    transport; use it as an async context manager to close them. Failures that survive the
    retry layer are raised as ``TransportError``.
    """

    audit: AuditConfig = field(default_factory=AuditConfig)
    client_factory: Callable[[ResilienceConfig], ResilientClient] = field(
        default=_default_client_factory
    )
    _clients: dict[ServerAddress, ResilientClient] = field(default_factory=dict, init=False)

    async def __aenter__(self) -> HttpReplicaTransport:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        clients, self._clients = self._clients, {}
        for client in clients.values():
            await client.aclose()

    def _client(self, server: ServerAddress) -> ResilientClient:
        client = self._clients.get(server)
        if client is None:
            client = self.client_factory(replica_resilience_config(server, audit=self.audit))
            self._clients[server] = client
        return client

    async def _get(
        self,
        server: ServerAddress,
        path: str,
        params: QueryParams | None = None,
    ) -> httpx.Response:
        try:
            response = await self._client(server).get(path, params=params)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise TransportError(
                f"Got an error fetching {path} from {server}: {exc}", server=server
            ) from exc
        return response

    async def _get_json(
        self,
        server: ServerAddress,
        path: str,
        params: QueryParams | None = None,
    ) -> object:
        response = await self._get(server, path, params)
        try:
            return response.json()
        except ValueError as exc:
            raise TransportError(
                f"Invalid JSON in response to {path} from {server}", server=server
            ) from exc

    async def is_up(self, server: ServerAddress) -> bool:
        try:
            await self._get(server, "status")
        except TransportError as exc:
            log.debug("Status check failed for %s: %s", server, exc)
            return False
        return True

    async def fetch_history(
        self,
        server: ServerAddress,
        *,
        to: Timestamp,
    ) -> list[DeploymentEvent]:
        events: list[DeploymentEvent] = []
        offset = 0
        while True:
            log.debug("Getting history of %s. Offset %s", server, offset)
            payload = await self._get_json(server, "history", [("offset", offset), ("to", to)])
            page = _validate(HistoryPage.model_validate, payload, server, "history")
            events.extend(parse_deployment_event(event) for event in page.events)
            if not page.pagination.more_data:
                return events
            next_offset = page.pagination.offset + page.pagination.limit
            if next_offset <= offset:
                raise TransportError(
                    f"History pagination of {server} does not advance past offset {offset}",
                    server=server,
                )
            offset = next_offset

    async def fetch_entities(
        self,
        server: ServerAddress,
        entity_type: EntityType,
        entity_ids: Sequence[EntityId],
    ) -> list[Entity]:
        entities = await self._fetch_entity_list(
            server, entity_type, [("id", entity_id) for entity_id in entity_ids]
        )
        return sorted(entities, key=lambda entity: entity.id)

    async def fetch_entities_by_pointers(
        self,
        server: ServerAddress,
        entity_type: EntityType,
        pointers: Sequence[Pointer],
    ) -> list[Entity]:
        return await self._fetch_entity_list(
            server, entity_type, [("pointer", pointer) for pointer in pointers]
        )

    async def _fetch_entity_list(
        self,
        server: ServerAddress,
        entity_type: EntityType,
        params: QueryParams,
    ) -> list[Entity]:
        path = f"entities/{entity_type}"
        payload = await self._get_json(server, path, params)
        entities = _validate(ENTITY_LIST.validate_python, payload, server, path)
        return [parse_entity(entity) for entity in entities]

    async def fetch_audit_info(
        self,
        server: ServerAddress,
        entity_type: EntityType,
        entity_id: EntityId,
    ) -> AuditInfo:
        path = f"audit/{entity_type}/{entity_id}"
        payload = await self._get_json(server, path)
        return parse_audit_info(_validate(AuditInfoPayload.model_validate, payload, server, path))

    async def fetch_content_availability(
        self,
        server: ServerAddress,
        hashes: Sequence[FileHash],
    ) -> dict[FileHash, bool]:
        path = "available-content"
        payload = await self._get_json(server, path, [("cid", file_hash) for file_hash in hashes])
        items = _validate(AVAILABILITY_LIST.validate_python, payload, server, path)
        return {item.cid: item.available for item in items}

    async def fetch_content(self, server: ServerAddress, file_hash: FileHash) -> bytes:
        response = await self._get(server, f"contents/{file_hash}")
        return response.content


def _validate[T](
    validator: Callable[[object], T],
    payload: object,
    server: ServerAddress,
    path: str,
) -> T:
    try:
        return validator(payload)
    except ValidationError as exc:
        log.error(
            "Unexpected payload from %s for %s: %s errors", server, path, exc.error_count()
        )
        raise TransportError(f"Unexpected payload for {path} from {server}", server=server) from exc


if TYPE_CHECKING:
    _transport_check: ReplicaTransport = HttpReplicaTransport()
