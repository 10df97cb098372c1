from __future__ import annotations

from typing import Any, Iterable
from urllib.parse import urlencode

from src.domain.coercion import to_optional_text, to_string_list
from src.models.accounts import AccountData
from src.models.providers import ProviderCapabilities, ProviderCatalogEntry


_AUTH_MODES = {"api-key", "oauth", "both"}
_OAUTH_MODES = {"legacy", "hybrid", "agency"}
_CONNECTION_TYPES = {"oauth", "api-key", "none"}
_SUPPORT_FLAGS = (
    "oauthSupported",
    "credentialConnectSupported",
    "validationSupported",
    "businessDetailsRefreshSupported",
    "businessDetailsSyncSupported",
)
_STATUS_TEXT_FIELDS = (
    "locationId",
    "locationName",
    "accountId",
    "accountName",
    "installedAt",
    "tokenExpiresAt",
)


def normalize_provider_id(provider: Any) -> str:
    return provider.strip().lower() if isinstance(provider, str) else ""


def create_fallback_provider_entry(provider: str) -> ProviderCatalogEntry:
    """Minimal entry for a provider we know about but have no catalog metadata for."""
    return ProviderCatalogEntry(provider=normalize_provider_id(provider))


def normalize_webhook_endpoints(value: Any) -> dict[str, str] | None:
    if not isinstance(value, dict):
        return None
    normalized: dict[str, str] = {}
    for family, endpoint in value.items():
        key = family.strip().lower() if isinstance(family, str) else ""
        url = endpoint.strip() if isinstance(endpoint, str) else ""
        if key and url:
            normalized[key] = url
    return normalized or None


def _coerce_capabilities(value: Any) -> ProviderCapabilities:
    if not isinstance(value, dict):
        return ProviderCapabilities()
    data: dict[str, Any] = {
        str(name): flag for name, flag in value.items() if isinstance(flag, bool)
    }
    auth = value.get("auth")
    if auth in _AUTH_MODES:
        data["auth"] = auth
    return ProviderCapabilities.model_validate(data)


def _coerce_catalog_entry(raw: Any) -> ProviderCatalogEntry | None:
    if not isinstance(raw, dict):
        return None
    provider = normalize_provider_id(raw.get("provider"))
    if not provider:
        return None

    data: dict[str, Any] = {
        "provider": provider,
        "capabilities": _coerce_capabilities(raw.get("capabilities")),
    }
    for flag in _SUPPORT_FLAGS:
        data[flag] = raw.get(flag) is True

    # Optional fields are only set when the payload defines them, so a merge
    # can still fill them from a lower-priority catalog.
    if raw.get("oauthMode") in _OAUTH_MODES:
        data["oauthMode"] = raw["oauthMode"]
    if isinstance(raw.get("activeForAccount"), bool):
        data["activeForAccount"] = raw["activeForAccount"]
    webhook_endpoints = normalize_webhook_endpoints(raw.get("webhookEndpoints"))
    if webhook_endpoints:
        data["webhookEndpoints"] = webhook_endpoints

    if isinstance(raw.get("connected"), bool):
        data["connected"] = raw["connected"]
    if raw.get("connectionType") in _CONNECTION_TYPES:
        data["connectionType"] = raw["connectionType"]
    if isinstance(raw.get("oauthConnected"), bool):
        data["oauthConnected"] = raw["oauthConnected"]
    if "scopes" in raw:
        data["scopes"] = to_string_list(raw.get("scopes"))
    for field in _STATUS_TEXT_FIELDS:
        text = to_optional_text(raw.get(field))
        if text:
            data[field] = text

    return ProviderCatalogEntry.model_validate(data)


def extract_provider_catalog(payload: Any) -> list[ProviderCatalogEntry]:
    """Normalize a `GET /api/esp/providers` payload, dropping malformed entries."""
    if not isinstance(payload, dict):
        return []
    raw_entries = payload.get("providers")
    if not isinstance(raw_entries, list):
        return []
    entries: list[ProviderCatalogEntry] = []
    for raw in raw_entries:
        entry = _coerce_catalog_entry(raw)
        if entry is not None:
            entries.append(entry)
    return entries


def _defined_fields(entry: ProviderCatalogEntry) -> dict[str, Any]:
    return entry.model_dump(include=set(entry.model_fields_set))


def _fold_by_provider(entries: Iterable[ProviderCatalogEntry]) -> dict[str, dict[str, Any]]:
    folded: dict[str, dict[str, Any]] = {}
    for entry in entries:
        provider = normalize_provider_id(entry.provider)
        if not provider:
            continue
        folded[provider] = {**folded.get(provider, {}), **_defined_fields(entry), "provider": provider}
    return folded


def merge_provider_catalog(
    primary: list[ProviderCatalogEntry],
    secondary: list[ProviderCatalogEntry],
) -> list[ProviderCatalogEntry]:
    """
    Merge two catalogs keyed by provider id.

    Fields defined by a primary entry always win; the secondary entry only fills
    fields the primary one leaves undefined. Primary providers come first in
    their own order, followed by secondary-only providers in theirs.
    """
    primary_by_provider = _fold_by_provider(primary)
    secondary_by_provider = _fold_by_provider(secondary)

    merged: list[ProviderCatalogEntry] = []
    for provider, fields in primary_by_provider.items():
        combined = {**secondary_by_provider.get(provider, {}), **fields}
        merged.append(ProviderCatalogEntry.model_validate(combined))
    for provider, fields in secondary_by_provider.items():
        if provider in primary_by_provider:
            continue
        merged.append(ProviderCatalogEntry.model_validate(fields))
    return merged


def derive_provider_catalog_from_account(account: AccountData | None) -> list[ProviderCatalogEntry]:
    if account is None:
        return []
    providers: set[str] = set()

    def _add(value: Any) -> None:
        provider = normalize_provider_id(value)
        if provider:
            providers.add(provider)

    _add(account.esp_provider)
    _add(account.active_esp_provider)
    if account.active_connection is not None:
        _add(account.active_connection.provider)
    for provider in account.connected_providers:
        _add(provider)
    for oauth_connection in account.oauth_connections:
        _add(oauth_connection.provider)
    for api_connection in account.esp_connections:
        _add(api_connection.provider)

    return [create_fallback_provider_entry(provider) for provider in sorted(providers)]


def mark_active_provider(
    entries: list[ProviderCatalogEntry],
    account_provider: str | None,
) -> list[ProviderCatalogEntry]:
    provider_key = normalize_provider_id(account_provider)
    if not provider_key:
        return entries
    return [
        entry.model_copy(update={"active_for_account": entry.provider == provider_key})
        for entry in entries
    ]


def collect_oauth_provider_ids(entries: Iterable[ProviderCatalogEntry]) -> list[str]:
    provider_ids: list[str] = []
    for entry in entries:
        provider = normalize_provider_id(entry.provider)
        if entry.oauth_supported and provider and provider not in provider_ids:
            provider_ids.append(provider)
    return provider_ids


def uses_agency_authorize(provider: str, oauth_mode: str | None) -> bool:
    return normalize_provider_id(provider) == "ghl" and oauth_mode == "agency"


def build_authorize_href(provider: str, account_key: str, oauth_mode: str | None) -> str:
    provider_key = normalize_provider_id(provider)
    params = {"provider": provider_key}
    if uses_agency_authorize(provider_key, oauth_mode):
        params["mode"] = "agency"
    else:
        params["accountKey"] = account_key
    return f"/api/esp/connections/authorize?{urlencode(params)}"
