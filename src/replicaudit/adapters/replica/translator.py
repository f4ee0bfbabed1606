"""Translate replica payloads into domain values."""

from __future__ import annotations

from typing import TYPE_CHECKING

from replicaudit.domain.types import AuditInfo, DeploymentEvent, Entity, EntityContent

if TYPE_CHECKING:
    from .schema import AuditInfoPayload, DeploymentEventPayload, EntityPayload


def parse_deployment_event(payload: DeploymentEventPayload) -> DeploymentEvent:
    return DeploymentEvent(
        entity_type=payload.entity_type,
        entity_id=payload.entity_id,
        server_name=payload.server_name,
        timestamp=payload.timestamp,
    )


def parse_entity(payload: EntityPayload) -> Entity:
    return Entity(
        id=payload.id,
        type=payload.type,
        pointers=tuple(payload.pointers),
        timestamp=payload.timestamp,
        content=tuple(EntityContent(file=item.file, hash=item.hash) for item in payload.content),
        metadata=payload.metadata,
    )


def parse_audit_info(payload: AuditInfoPayload) -> AuditInfo:
    return AuditInfo(
        version=payload.version,
        deployed_timestamp=payload.deployed_timestamp,
        auth_chain=payload.auth_chain,
        overwritten_by=payload.overwritten_by,
        is_blacklisted=payload.is_blacklisted,
        blacklisted_content=tuple(payload.blacklisted_content),
        original_metadata=payload.original_metadata,
    )


def serialize_deployment_event(event: DeploymentEvent) -> dict[str, object]:
    """Wire representation of an event, as written to history export files."""

    return {
        "entityId": event.entity_id,
        "entityType": event.entity_type,
        "serverName": event.server_name,
        "timestamp": event.timestamp,
    }
