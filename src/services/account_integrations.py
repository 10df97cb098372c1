from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any

from src.domain.provider_catalog import (
    build_authorize_href,
    collect_oauth_provider_ids,
    derive_provider_catalog_from_account,
    extract_provider_catalog,
    mark_active_provider,
    merge_provider_catalog,
    normalize_provider_id,
)
from src.domain.provider_status import (
    create_provider_status_resolver,
    resolve_custom_values_sync_action,
    resolve_custom_values_sync_readiness,
)
from src.models.accounts import AccountData
from src.models.providers import (
    AccountIntegrationsResponse,
    ProviderCatalogEntry,
    ProviderIntegrationView,
)
from src.observability import log_event
from src.providers.console import client as console_client
from src.providers.console.client import ConsoleApiError
from src.services.required_scopes import RequiredScopeCache


def fetch_provider_catalog_payload(
    account_key: str | None = None,
    request_id: str | None = None,
) -> dict[str, Any] | None:
    """Best-effort catalog fetch; `None` when the catalog endpoint is unreachable."""
    try:
        return console_client.get_provider_catalog(account_key=account_key, request_id=request_id)
    except ConsoleApiError as exc:
        log_event(
            "provider_catalog_fetch_failed",
            level=logging.WARNING,
            request_id=request_id,
            account_key=account_key,
            error=str(exc),
        )
        return None


def load_account_provider_catalog(
    account_key: str,
    account: AccountData | None,
    request_id: str | None = None,
) -> tuple[list[ProviderCatalogEntry], str | None]:
    """
    Build the provider catalog an account screen renders from.

    The account catalog wins over the global one, which wins over providers
    derived from the account record itself; the derived entries keep the screen
    usable when both catalog requests fail.
    """
    with ThreadPoolExecutor(max_workers=2) as executor:
        account_future = executor.submit(fetch_provider_catalog_payload, account_key, request_id)
        global_future = executor.submit(fetch_provider_catalog_payload, None, request_id)
        account_payload = account_future.result()
        global_payload = global_future.result()

    account_entries = extract_provider_catalog(account_payload)
    raw_account_provider = account_payload.get("accountProvider") if account_payload else None
    account_provider = normalize_provider_id(
        raw_account_provider or (account.esp_provider if account else None)
    ) or None
    global_entries = mark_active_provider(extract_provider_catalog(global_payload), account_provider)
    derived_entries = derive_provider_catalog_from_account(account)

    catalog = merge_provider_catalog(
        account_entries,
        merge_provider_catalog(global_entries, derived_entries),
    )
    return catalog, account_provider


def build_account_integrations(
    account: AccountData,
    provider_catalog: list[ProviderCatalogEntry],
    required_scopes_by_provider: dict[str, list[str]],
    account_provider: str | None = None,
) -> AccountIntegrationsResponse:
    resolver = create_provider_status_resolver(provider_catalog, account)
    views: list[ProviderIntegrationView] = []
    for provider, entry in resolver.provider_by_id.items():
        status = resolver.get_provider_status(provider)
        readiness = resolve_custom_values_sync_readiness(
            supports_custom_values=entry.capabilities.custom_values,
            provider_status=status,
            required_scopes=required_scopes_by_provider.get(provider, []),
        )
        views.append(
            ProviderIntegrationView(
                provider=provider,
                catalog=entry,
                status=status,
                readiness=readiness,
                action=resolve_custom_values_sync_action(readiness, status),
                authorize_href=(
                    build_authorize_href(provider, account.key, entry.oauth_mode)
                    if entry.oauth_supported
                    else None
                ),
            )
        )
    return AccountIntegrationsResponse(
        account_key=account.key,
        account_provider=account_provider,
        has_any_provider_connection=resolver.has_any_provider_connection,
        providers=views,
    )


def load_account_integrations(
    account_key: str,
    scope_cache: RequiredScopeCache,
    request_id: str | None = None,
) -> AccountIntegrationsResponse:
    payload = console_client.get_account(account_key, request_id=request_id)
    account = AccountData.model_validate({**payload, "key": payload.get("key") or account_key})
    catalog, account_provider = load_account_provider_catalog(account_key, account, request_id=request_id)
    scopes = scope_cache.ensure(collect_oauth_provider_ids(catalog), request_id=request_id)
    return build_account_integrations(account, catalog, scopes, account_provider=account_provider)
