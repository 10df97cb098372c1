from __future__ import annotations

import logging
import re
from concurrent.futures import ThreadPoolExecutor
from typing import Any

from src.config import settings
from src.domain.coercion import to_optional_text, to_string_list
from src.domain.provider_catalog import (
    build_authorize_href,
    extract_provider_catalog,
    normalize_provider_id,
)
from src.domain.provider_status import (
    create_provider_status_resolver,
    resolve_custom_values_sync_action,
    resolve_custom_values_sync_readiness,
)
from src.models.accounts import AccountData
from src.models.custom_values import (
    AccountSyncResponse,
    AccountSyncStatus,
    AgencyLinkOverview,
    BulkSyncItem,
    BulkSyncResponse,
    GhlAgencyStatus,
    SyncResultCounts,
)
from src.observability import incr_metric, log_event
from src.providers.console import client as console_client
from src.providers.console.client import ConsoleApiError
from src.services.account_integrations import fetch_provider_catalog_payload
from src.services.required_scopes import RequiredScopeCache


class NoEligibleAccountsError(ValueError):
    """None of the requested accounts is ready for a custom-values push."""


def normalize_custom_value_key(raw: str) -> str:
    return re.sub(r"\s+", "_", (raw or "").strip()).lower()


def _count(value: Any) -> int:
    return len(value) if isinstance(value, list) else 0


def summarize_sync_result(result: dict[str, Any]) -> SyncResultCounts:
    return SyncResultCounts(
        created=_count(result.get("created")),
        updated=_count(result.get("updated")),
        deleted=_count(result.get("deleted")),
        skipped=_count(result.get("skipped")),
        errors=_count(result.get("errors")),
    )


def build_account_sync_status(
    account: AccountData,
    catalog_payload: dict[str, Any] | None,
    override_count: int,
    required_scopes_by_provider: dict[str, list[str]],
) -> AccountSyncStatus:
    entries = extract_provider_catalog(catalog_payload)
    raw_provider = (catalog_payload or {}).get("accountProvider") or account.esp_provider
    provider = normalize_provider_id(raw_provider) or "unknown"

    resolver = create_provider_status_resolver(entries, account)
    entry = resolver.provider_by_id.get(provider)
    status = resolver.get_provider_status(provider)
    readiness = resolve_custom_values_sync_readiness(
        supports_custom_values=bool(entry and entry.capabilities.custom_values),
        provider_status=status,
        required_scopes=required_scopes_by_provider.get(provider, []),
    )
    oauth_mode = entry.oauth_mode if entry else None
    return AccountSyncStatus(
        key=account.key,
        dealer=account.dealer or account.key,
        provider=provider,
        connection_type=status.connection_type,
        oauth_connected=status.oauth_connected,
        oauth_mode=oauth_mode,
        location_id=status.location_id or status.account_id or to_optional_text(account.active_location_id),
        scopes=status.scopes,
        required_scopes=readiness.required_scopes,
        has_required_scopes=readiness.has_required_scopes,
        needs_reauthorization=readiness.needs_reauthorization,
        supports_custom_values=readiness.supports_custom_values,
        ready_for_sync=readiness.ready_for_sync,
        override_count=override_count,
        action=resolve_custom_values_sync_action(readiness, status),
        authorize_href=(
            build_authorize_href(provider, account.key, oauth_mode)
            if entry is not None and entry.oauth_supported
            else None
        ),
    )


def _fetch_override_count(account_key: str, request_id: str | None) -> int:
    try:
        data = console_client.get_custom_values(account_key, request_id=request_id)
    except ConsoleApiError as exc:
        log_event(
            "custom_values_overrides_fetch_failed",
            level=logging.WARNING,
            request_id=request_id,
            account_key=account_key,
            error=str(exc),
        )
        return 0
    overrides = data.get("overrides")
    return len(overrides) if isinstance(overrides, dict) else 0


def _load_status_for_account(
    account: AccountData,
    scopes: dict[str, list[str]],
    request_id: str | None,
) -> AccountSyncStatus:
    payload = fetch_provider_catalog_payload(account.key, request_id=request_id)
    if payload is None:
        payload = {"accountProvider": account.esp_provider, "providers": []}
    override_count = _fetch_override_count(account.key, request_id)
    return build_account_sync_status(account, payload, override_count, scopes)


def load_accounts(request_id: str | None = None) -> list[AccountData]:
    accounts: list[AccountData] = []
    for raw in console_client.list_accounts(request_id=request_id):
        if not to_optional_text(raw.get("key")):
            continue
        accounts.append(AccountData.model_validate(raw))
    return accounts


def load_account_sync_statuses(
    accounts: list[AccountData],
    scope_cache: RequiredScopeCache,
    request_id: str | None = None,
) -> list[AccountSyncStatus]:
    if not accounts:
        return []
    scopes = scope_cache.load_catalog(request_id=request_id)
    workers = max(1, min(settings.account_fetch_workers, len(accounts)))
    with ThreadPoolExecutor(max_workers=workers) as executor:
        return list(
            executor.map(lambda account: _load_status_for_account(account, scopes, request_id), accounts)
        )


def normalize_agency_status(data: dict[str, Any]) -> GhlAgencyStatus:
    source = data.get("source")
    mode = data.get("mode")
    return GhlAgencyStatus(
        connected=data.get("connected") is True,
        source=source if source in {"oauth", "env"} else "none",
        mode=mode if mode in {"legacy", "hybrid", "agency"} else "legacy",
        scopes=to_string_list(data.get("scopes")),
        connect_url=to_optional_text(data.get("connectUrl")),
        warning=to_optional_text(data.get("warning")),
    )


def partition_agency_accounts(
    statuses: list[AccountSyncStatus],
) -> tuple[list[AccountSyncStatus], list[AccountSyncStatus]]:
    """Split GHL agency-mode accounts into (linked, unlinked) by location id."""
    agency = [status for status in statuses if status.provider == "ghl" and status.oauth_mode == "agency"]
    linked = [status for status in agency if status.location_id]
    unlinked = [status for status in agency if not status.location_id]
    return linked, unlinked


def build_agency_overview(
    statuses: list[AccountSyncStatus],
    request_id: str | None = None,
) -> AgencyLinkOverview | None:
    linked, unlinked = partition_agency_accounts(statuses)
    if not linked and not unlinked:
        return None
    overview = AgencyLinkOverview(
        linked_account_keys=[status.key for status in linked],
        unlinked_account_keys=[status.key for status in unlinked],
    )
    try:
        overview.status = normalize_agency_status(console_client.get_ghl_agency_status(request_id=request_id))
    except ConsoleApiError as exc:
        overview.error = str(exc)
    return overview


def sync_account(account_key: str, request_id: str | None = None) -> AccountSyncResponse:
    data = console_client.sync_custom_values(account_key, request_id=request_id)
    result = data.get("result")
    if not isinstance(result, dict):
        raise ConsoleApiError(to_optional_text(data.get("error")) or "Sync failed", category="terminal")
    counts = summarize_sync_result(result)
    incr_metric("custom_values.sync", outcome="ok")
    log_event(
        "custom_values_synced",
        request_id=request_id,
        account_key=account_key,
        created=counts.created,
        updated=counts.updated,
        deleted=counts.deleted,
        errors=counts.errors,
    )
    return AccountSyncResponse(
        key=account_key,
        synced=data.get("synced") is not False and counts.errors == 0,
        provider=to_optional_text(data.get("provider")),
        message=to_optional_text(data.get("message")) or f"Synced custom values for {account_key}",
        last_result=counts,
    )


def bulk_sync_accounts(
    account_keys: list[str],
    statuses: list[AccountSyncStatus],
    request_id: str | None = None,
) -> BulkSyncResponse:
    ready_keys = {status.key for status in statuses if status.ready_for_sync}
    eligible = [key for key in dict.fromkeys(account_keys) if key in ready_keys]
    if not eligible:
        raise NoEligibleAccountsError("No eligible accounts to sync")

    data = console_client.sync_all_custom_values(eligible, request_id=request_id)
    results = data.get("results") if isinstance(data.get("results"), dict) else {}

    items: list[BulkSyncItem] = []
    for key in eligible:
        result = results.get(key)
        if not isinstance(result, dict):
            items.append(BulkSyncItem(key=key, error="No result returned"))
        elif result.get("skipped") is True:
            items.append(BulkSyncItem(key=key, error=to_optional_text(result.get("error")) or "Skipped"))
        else:
            items.append(BulkSyncItem(key=key, last_result=summarize_sync_result(result)))

    succeeded = sum(1 for item in items if item.error is None)
    incr_metric("custom_values.bulk_sync", outcome="ok")
    log_event(
        "custom_values_bulk_synced",
        request_id=request_id,
        eligible=len(eligible),
        succeeded=succeeded,
    )
    return BulkSyncResponse(
        requested=len(account_keys),
        eligible=len(eligible),
        succeeded=succeeded,
        items=items,
        message=f"Synced {succeeded} of {len(eligible)} accounts",
    )
