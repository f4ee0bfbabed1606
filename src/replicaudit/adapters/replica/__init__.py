"""Public interface for the replica HTTP adapter."""

from __future__ import annotations

from .client import HttpReplicaTransport
from .schema import AuditInfoPayload, DeploymentEventPayload, EntityPayload, HistoryPage
from .translator import (
    parse_audit_info,
    parse_deployment_event,
    parse_entity,
    serialize_deployment_event,
)

__all__ = [
    "AuditInfoPayload",
    "DeploymentEventPayload",
    "EntityPayload",
    "HistoryPage",
    "HttpReplicaTransport",
    "parse_audit_info",
    "parse_deployment_event",
    "parse_entity",
    "serialize_deployment_event",
]
