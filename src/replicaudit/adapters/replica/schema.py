"""Pydantic models describing the replica HTTP payloads."""

from __future__ import annotations

from collections.abc import Mapping
from typing import cast

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    TypeAdapter,
    field_validator,
    model_validator,
)


def _blank_to_none(value: object) -> object:
    if isinstance(value, str):
        stripped = value.strip()
        return stripped or None
    return value


class ReplicaBaseModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class DeploymentEventPayload(ReplicaBaseModel):
    entity_id: str = Field(alias="entityId")
    entity_type: str = Field(alias="entityType")
    server_name: str = Field(alias="serverName")
    timestamp: int


class PaginationPayload(ReplicaBaseModel):
    offset: int
    limit: int
    more_data: bool = Field(alias="moreData")


class HistoryPage(ReplicaBaseModel):
    events: list[DeploymentEventPayload]
    filters: dict[str, object] = Field(default_factory=dict)
    pagination: PaginationPayload


class ContentPayload(ReplicaBaseModel):
    file: str
    hash: str


class EntityPayload(ReplicaBaseModel):
    id: str
    type: str
    pointers: list[str] = Field(default_factory=list)
    timestamp: int
    content: list[ContentPayload] = Field(default_factory=list)
    metadata: object = None

    @model_validator(mode="before")
    @classmethod
    def _normalize_missing_content(cls, value: object) -> object:
        # Replicas send ``"content": null`` for entities without files.
        if isinstance(value, Mapping):
            data = dict(cast(Mapping[str, object], value))
            if data.get("content") is None:
                data["content"] = []
            return data
        return value


class AuditInfoPayload(ReplicaBaseModel):
    version: str
    deployed_timestamp: int = Field(alias="deployedTimestamp")
    auth_chain: object = Field(default=None, alias="authChain")
    overwritten_by: str | None = Field(default=None, alias="overwrittenBy")
    is_blacklisted: bool = Field(default=False, alias="isBlacklisted")
    blacklisted_content: list[str] = Field(default_factory=list, alias="blacklistedContent")
    original_metadata: object = Field(default=None, alias="originalMetadata")

    _normalize_overwritten_by = field_validator("overwritten_by", mode="before")(_blank_to_none)

    @field_validator("blacklisted_content", mode="before")
    @classmethod
    def _null_to_empty(cls, value: object) -> object:
        return [] if value is None else value


class AvailabilityPayload(ReplicaBaseModel):
    cid: str
    available: bool


# Both list endpoints return a bare JSON array.
ENTITY_LIST = TypeAdapter(list[EntityPayload])
AVAILABILITY_LIST = TypeAdapter(list[AvailabilityPayload])
