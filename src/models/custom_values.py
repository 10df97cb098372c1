from __future__ import annotations

from typing import Literal

from src.models.base import ConsoleModel
from src.models.providers import CustomValuesSyncAction, ProviderConnectionType, ProviderOAuthMode


class SyncResultCounts(ConsoleModel):
    created: int = 0
    updated: int = 0
    deleted: int = 0
    skipped: int = 0
    errors: int = 0


class AccountSyncStatus(ConsoleModel):
    key: str
    dealer: str
    provider: str
    connection_type: ProviderConnectionType
    oauth_connected: bool
    oauth_mode: ProviderOAuthMode | None = None
    location_id: str | None = None
    scopes: list[str] = []
    required_scopes: list[str] = []
    has_required_scopes: bool
    needs_reauthorization: bool
    supports_custom_values: bool
    ready_for_sync: bool
    override_count: int = 0
    action: CustomValuesSyncAction
    authorize_href: str | None = None
    last_result: SyncResultCounts | None = None
    error: str | None = None


class GhlAgencyStatus(ConsoleModel):
    connected: bool = False
    source: Literal["oauth", "env", "none"] = "none"
    mode: ProviderOAuthMode = "legacy"
    scopes: list[str] = []
    connect_url: str | None = None
    warning: str | None = None


class AgencyLinkOverview(ConsoleModel):
    status: GhlAgencyStatus | None = None
    error: str | None = None
    linked_account_keys: list[str] = []
    unlinked_account_keys: list[str] = []


class CustomValuesBoardResponse(ConsoleModel):
    accounts: list[AccountSyncStatus]
    total: int
    limit: int
    offset: int
    ready_count: int
    agency: AgencyLinkOverview | None = None


class AccountSyncResponse(ConsoleModel):
    key: str
    synced: bool
    provider: str | None = None
    message: str | None = None
    last_result: SyncResultCounts


class BulkSyncRequest(ConsoleModel):
    account_keys: list[str]


class BulkSyncItem(ConsoleModel):
    key: str
    last_result: SyncResultCounts | None = None
    error: str | None = None


class BulkSyncResponse(ConsoleModel):
    requested: int
    eligible: int
    succeeded: int
    items: list[BulkSyncItem]
    message: str
