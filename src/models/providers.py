from __future__ import annotations

from typing import Literal

from pydantic import ConfigDict, Field
from pydantic.alias_generators import to_camel

from src.models.base import ConsoleModel


ProviderAuthMode = Literal["api-key", "oauth", "both"]
ProviderOAuthMode = Literal["legacy", "hybrid", "agency"]
ProviderConnectionType = Literal["oauth", "api-key", "none"]
CustomValuesSyncAction = Literal["push", "reauthorize", "unsupported", "not_connected"]


class ProviderCapabilities(ConsoleModel):
    # Capability names the catalog adds later are kept as extra booleans.
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    auth: ProviderAuthMode = "api-key"
    contacts: bool = False
    campaigns: bool = False
    workflows: bool = False
    messages: bool = False
    users: bool = False
    webhooks: bool = False
    custom_values: bool = False


class ProviderCatalogEntry(ConsoleModel):
    provider: str
    capabilities: ProviderCapabilities = Field(default_factory=ProviderCapabilities)
    oauth_supported: bool = False
    credential_connect_supported: bool = False
    validation_supported: bool = False
    business_details_refresh_supported: bool = False
    business_details_sync_supported: bool = False
    oauth_mode: ProviderOAuthMode | None = None
    active_for_account: bool | None = None
    webhook_endpoints: dict[str, str] | None = None
    # Status hints carried by per-account catalogs.
    connected: bool | None = None
    connection_type: ProviderConnectionType | None = None
    oauth_connected: bool | None = None
    scopes: list[str] | None = None
    location_id: str | None = None
    location_name: str | None = None
    account_id: str | None = None
    account_name: str | None = None
    installed_at: str | None = None
    token_expires_at: str | None = None


class ProviderConnectionStatus(ConsoleModel):
    provider: str
    connected: bool = False
    connection_type: ProviderConnectionType = "none"
    oauth_connected: bool = False
    account_id: str | None = None
    account_name: str | None = None
    location_id: str | None = None
    location_name: str | None = None
    scopes: list[str] = []
    installed_at: str | None = None


class SyncReadiness(ConsoleModel):
    required_scopes: list[str] = []
    has_required_scopes: bool
    supports_custom_values: bool
    needs_reauthorization: bool
    ready_for_sync: bool


class ProviderIntegrationView(ConsoleModel):
    provider: str
    catalog: ProviderCatalogEntry
    status: ProviderConnectionStatus
    readiness: SyncReadiness
    action: CustomValuesSyncAction
    authorize_href: str | None = None


class AccountIntegrationsResponse(ConsoleModel):
    account_key: str
    account_provider: str | None = None
    has_any_provider_connection: bool
    providers: list[ProviderIntegrationView]
