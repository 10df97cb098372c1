from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from src.domain.coercion import first_defined, to_optional_text, to_optional_timestamp
from src.domain.provider_catalog import normalize_provider_id
from src.models.accounts import AccountData, ActiveConnection, ApiKeyConnection, OAuthConnection
from src.models.providers import (
    CustomValuesSyncAction,
    ProviderCatalogEntry,
    ProviderConnectionStatus,
    SyncReadiness,
)


def _index_by_provider(connections: Iterable[OAuthConnection | ApiKeyConnection]) -> dict:
    indexed: dict = {}
    for connection in connections:
        provider = normalize_provider_id(connection.provider)
        if provider and provider not in indexed:
            indexed[provider] = connection
    return indexed


def _active_connection_type(connection: ActiveConnection | None) -> str | None:
    if connection is None or connection.connected is False:
        return None
    if connection.connection_type in {"oauth", "api-key"}:
        return connection.connection_type
    return None


def _catalog_connection_type(entry: ProviderCatalogEntry | None) -> str | None:
    if entry is None or entry.connected is False:
        return None
    if entry.connection_type in {"oauth", "api-key"}:
        return entry.connection_type
    if entry.oauth_connected:
        return "oauth"
    return None


@dataclass
class ProviderStatusResolver:
    """Resolves per-provider connection status for one account against a catalog."""

    provider_by_id: dict[str, ProviderCatalogEntry]
    account: AccountData

    def __post_init__(self) -> None:
        self._oauth_by_provider: dict[str, OAuthConnection] = _index_by_provider(self.account.oauth_connections)
        self._api_by_provider: dict[str, ApiKeyConnection] = _index_by_provider(self.account.esp_connections)
        active = self.account.active_connection
        self._active_provider = normalize_provider_id(active.provider) if active else ""

    def _active_for(self, provider: str) -> ActiveConnection | None:
        if provider and provider == self._active_provider:
            return self.account.active_connection
        return None

    def get_provider_status(self, provider_id: str) -> ProviderConnectionStatus:
        provider = normalize_provider_id(provider_id)
        catalog_entry = self.provider_by_id.get(provider)
        active = self._active_for(provider)
        active_type = _active_connection_type(active)
        catalog_type = _catalog_connection_type(catalog_entry)

        oauth_connection = self._oauth_by_provider.get(provider)
        if oauth_connection is not None:
            return ProviderConnectionStatus(
                provider=provider,
                connected=True,
                connection_type="oauth",
                oauth_connected=True,
                scopes=list(oauth_connection.scopes),
                location_id=first_defined(
                    to_optional_text(oauth_connection.location_id),
                    to_optional_text(active.location_id) if active else None,
                    to_optional_text(self.account.active_location_id),
                ),
                location_name=to_optional_text(oauth_connection.location_name),
                account_id=to_optional_text(active.account_id) if active else None,
                account_name=to_optional_text(active.account_name) if active else None,
                installed_at=to_optional_timestamp(oauth_connection.installed_at),
            )
        if active_type == "oauth" or catalog_type == "oauth":
            source_scopes = active.scopes if active_type == "oauth" and active else []
            if not source_scopes and catalog_entry is not None and catalog_entry.scopes:
                source_scopes = catalog_entry.scopes
            return ProviderConnectionStatus(
                provider=provider,
                connected=True,
                connection_type="oauth",
                oauth_connected=True,
                scopes=list(source_scopes),
                location_id=first_defined(
                    to_optional_text(catalog_entry.location_id) if catalog_entry else None,
                    to_optional_text(active.location_id) if active else None,
                    to_optional_text(self.account.active_location_id),
                ),
                location_name=to_optional_text(catalog_entry.location_name) if catalog_entry else None,
                account_id=first_defined(
                    to_optional_text(catalog_entry.account_id) if catalog_entry else None,
                    to_optional_text(active.account_id) if active else None,
                ),
                account_name=first_defined(
                    to_optional_text(catalog_entry.account_name) if catalog_entry else None,
                    to_optional_text(active.account_name) if active else None,
                ),
                installed_at=to_optional_text(catalog_entry.installed_at) if catalog_entry else None,
            )

        api_connection = self._api_by_provider.get(provider)
        if api_connection is not None or active_type == "api-key" or catalog_type == "api-key":
            return ProviderConnectionStatus(
                provider=provider,
                connected=True,
                connection_type="api-key",
                oauth_connected=False,
                scopes=[],
                account_id=first_defined(
                    to_optional_text(api_connection.account_id) if api_connection else None,
                    to_optional_text(active.account_id) if active else None,
                    to_optional_text(catalog_entry.account_id) if catalog_entry else None,
                ),
                account_name=first_defined(
                    to_optional_text(api_connection.account_name) if api_connection else None,
                    to_optional_text(active.account_name) if active else None,
                    to_optional_text(catalog_entry.account_name) if catalog_entry else None,
                ),
                installed_at=first_defined(
                    to_optional_timestamp(api_connection.installed_at) if api_connection else None,
                    to_optional_text(catalog_entry.installed_at) if catalog_entry else None,
                ),
            )

        return ProviderConnectionStatus(provider=provider, connected=False, connection_type="none")

    @property
    def has_any_provider_connection(self) -> bool:
        return any(self.get_provider_status(provider).connected for provider in self.provider_by_id)


def create_provider_status_resolver(
    provider_catalog: list[ProviderCatalogEntry],
    account: AccountData,
) -> ProviderStatusResolver:
    provider_by_id: dict[str, ProviderCatalogEntry] = {}
    for entry in provider_catalog:
        provider = normalize_provider_id(entry.provider)
        if provider and provider not in provider_by_id:
            provider_by_id[provider] = entry
    return ProviderStatusResolver(provider_by_id=provider_by_id, account=account)


def resolve_custom_values_sync_readiness(
    supports_custom_values: bool,
    provider_status: ProviderConnectionStatus,
    required_scopes: list[str] | None = None,
) -> SyncReadiness:
    required = list(required_scopes or [])
    granted = set(provider_status.scopes)
    has_required_scopes = all(scope in granted for scope in required)
    return SyncReadiness(
        required_scopes=required,
        has_required_scopes=has_required_scopes,
        supports_custom_values=supports_custom_values,
        needs_reauthorization=(
            provider_status.oauth_connected and supports_custom_values and not has_required_scopes
        ),
        ready_for_sync=supports_custom_values and provider_status.connected and has_required_scopes,
    )


def resolve_custom_values_sync_action(
    readiness: SyncReadiness,
    provider_status: ProviderConnectionStatus,
) -> CustomValuesSyncAction:
    if readiness.ready_for_sync:
        return "push"
    if not readiness.supports_custom_values:
        return "unsupported"
    if not provider_status.connected:
        return "not_connected"
    # Connected but short on scopes: only an OAuth authorization can grant them,
    # whether the current connection is OAuth or an API key.
    return "reauthorize"
