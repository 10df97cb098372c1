from __future__ import annotations

import json
import re
from datetime import datetime
from typing import Any

from pydantic import ConfigDict, field_validator
from pydantic.alias_generators import to_camel

from src.models.base import ConsoleModel


def _parse_scopes(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return [str(scope) for scope in value if scope is not None]
    if isinstance(value, str):
        raw = value.strip()
        if not raw:
            return []
        if raw.startswith("["):
            try:
                parsed = json.loads(raw)
            except ValueError:
                return []
            return [str(scope) for scope in parsed] if isinstance(parsed, list) else []
        return [scope for scope in re.split(r"[\s,]+", raw) if scope]
    return []


def _only_records(value: Any) -> list[Any]:
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, (dict, ConsoleModel))]


class OAuthConnection(ConsoleModel):
    provider: str | None = None
    location_id: str | None = None
    location_name: str | None = None
    scopes: list[str] = []
    installed_at: datetime | str | None = None

    @field_validator("scopes", mode="before")
    @classmethod
    def _coerce_scopes(cls, value: Any) -> list[str]:
        return _parse_scopes(value)


class ApiKeyConnection(ConsoleModel):
    provider: str | None = None
    account_id: str | None = None
    account_name: str | None = None
    installed_at: datetime | str | None = None


class ActiveConnection(ConsoleModel):
    provider: str | None = None
    connected: bool | None = None
    connection_type: str | None = None
    location_id: str | None = None
    account_id: str | None = None
    account_name: str | None = None
    scopes: list[str] = []

    @field_validator("scopes", mode="before")
    @classmethod
    def _coerce_scopes(cls, value: Any) -> list[str]:
        return _parse_scopes(value)


class CustomValue(ConsoleModel):
    name: str = ""
    value: str | None = None


class AccountData(ConsoleModel):
    """Sub-account record as served by the accounts API; unknown fields are kept."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    key: str
    dealer: str | None = None
    category: str | None = None
    oems: list[str] = []
    email: str | None = None
    phone: str | None = None
    website: str | None = None
    timezone: str | None = None
    custom_values: dict[str, CustomValue] = {}
    esp_provider: str | None = None
    active_esp_provider: str | None = None
    connected_providers: list[str | None] = []
    oauth_connections: list[OAuthConnection] = []
    esp_connections: list[ApiKeyConnection] = []
    active_connection: ActiveConnection | None = None
    active_location_id: str | None = None

    @field_validator("oauth_connections", "esp_connections", mode="before")
    @classmethod
    def _drop_malformed_connections(cls, value: Any) -> list[Any]:
        return _only_records(value)

    @field_validator("connected_providers", "oems", mode="before")
    @classmethod
    def _coerce_string_list(cls, value: Any) -> list[Any]:
        if not isinstance(value, list):
            return []
        return [item for item in value if item is None or isinstance(item, str)]

    @field_validator("active_connection", mode="before")
    @classmethod
    def _drop_malformed_active_connection(cls, value: Any) -> Any:
        return value if isinstance(value, (dict, ActiveConnection)) else None

    @field_validator("custom_values", mode="before")
    @classmethod
    def _drop_malformed_custom_values(cls, value: Any) -> dict[str, Any]:
        if not isinstance(value, dict):
            return {}
        return {str(key): item for key, item in value.items() if isinstance(item, (dict, CustomValue))}
