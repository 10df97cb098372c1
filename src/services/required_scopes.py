from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from threading import Lock
from typing import Iterable

from src.config import settings
from src.domain.provider_catalog import (
    collect_oauth_provider_ids,
    extract_provider_catalog,
    normalize_provider_id,
)
from src.observability import incr_metric, log_event
from src.providers.console import client as console_client
from src.providers.console.client import ConsoleApiError


ProviderScopesMap = dict[str, list[str]]


def missing_provider_scopes(provider_ids: Iterable[str], scopes_by_provider: ProviderScopesMap) -> list[str]:
    return [provider for provider in provider_ids if provider not in scopes_by_provider]


def _normalize_provider_ids(provider_ids: Iterable[str]) -> list[str]:
    normalized: list[str] = []
    for provider_id in provider_ids:
        provider = normalize_provider_id(provider_id)
        if provider and provider not in normalized:
            normalized.append(provider)
    return normalized


def _fetch_required_scopes_for_provider(provider: str, request_id: str | None = None) -> list[str] | None:
    """Required scopes for one provider, or `None` when the lookup failed."""
    try:
        return console_client.get_required_scopes(provider, request_id=request_id)
    except ConsoleApiError as exc:
        log_event(
            "required_scopes_fetch_failed",
            level=logging.WARNING,
            request_id=request_id,
            provider=provider,
            error=str(exc),
        )
        return None


def fetch_required_scopes(
    provider_ids: Iterable[str],
    request_id: str | None = None,
) -> tuple[ProviderScopesMap, list[str]]:
    """Fetch concurrently; returns `(scopes for providers that answered, providers that failed)`."""
    normalized = _normalize_provider_ids(provider_ids)
    if not normalized:
        return {}, []

    workers = max(1, min(settings.required_scope_fetch_workers, len(normalized)))
    with ThreadPoolExecutor(max_workers=workers) as executor:
        results = list(
            executor.map(lambda provider: _fetch_required_scopes_for_provider(provider, request_id), normalized)
        )

    fetched: ProviderScopesMap = {}
    failed: list[str] = []
    for provider, scopes in zip(normalized, results):
        if scopes is None:
            failed.append(provider)
        else:
            fetched[provider] = scopes
    return fetched, failed


def fetch_required_scopes_map(provider_ids: Iterable[str], request_id: str | None = None) -> ProviderScopesMap:
    fetched, failed = fetch_required_scopes(provider_ids, request_id=request_id)
    return {**fetched, **{provider: [] for provider in failed}}


def fetch_oauth_provider_ids_by_catalog_url(
    catalog_url: str | None = None,
    request_id: str | None = None,
) -> list[str]:
    try:
        payload = console_client.get_provider_catalog(catalog_path=catalog_url, request_id=request_id)
    except ConsoleApiError as exc:
        log_event(
            "required_scopes_catalog_failed",
            level=logging.WARNING,
            request_id=request_id,
            catalog_url=catalog_url,
            error=str(exc),
        )
        return []
    return collect_oauth_provider_ids(extract_provider_catalog(payload))


def fetch_required_scopes_by_catalog_url(
    catalog_url: str | None = None,
    request_id: str | None = None,
) -> ProviderScopesMap:
    oauth_providers = fetch_oauth_provider_ids_by_catalog_url(catalog_url, request_id=request_id)
    return fetch_required_scopes_map(oauth_providers, request_id=request_id)


class RequiredScopeCache:
    """
    Memoized `provider -> required OAuth scopes`, merged additively as providers appear.

    Only successful lookups are cached. A provider whose lookup failed reads as
    `[]` for the current call and is asked for again on the next one.
    """

    def __init__(self, initial: ProviderScopesMap | None = None):
        self._lock = Lock()
        self._scopes_by_provider: ProviderScopesMap = dict(initial or {})

    def snapshot(self) -> ProviderScopesMap:
        with self._lock:
            return {provider: list(scopes) for provider, scopes in self._scopes_by_provider.items()}

    def get(self, provider: str) -> list[str]:
        with self._lock:
            return list(self._scopes_by_provider.get(normalize_provider_id(provider), []))

    def merge(self, fetched: ProviderScopesMap) -> None:
        with self._lock:
            self._scopes_by_provider = {**self._scopes_by_provider, **fetched}

    def missing(self, provider_ids: Iterable[str]) -> list[str]:
        with self._lock:
            return missing_provider_scopes(_normalize_provider_ids(provider_ids), self._scopes_by_provider)

    def ensure(self, provider_ids: Iterable[str], request_id: str | None = None) -> ProviderScopesMap:
        """Fetch scopes only for providers not cached yet, then return the whole map."""
        missing = self.missing(provider_ids)
        failed: list[str] = []
        if missing:
            incr_metric("required_scopes.cache_miss", value=len(missing))
            fetched, failed = fetch_required_scopes(missing, request_id=request_id)
            self.merge(fetched)
        return {**self.snapshot(), **{provider: [] for provider in failed}}

    def load_catalog(self, catalog_url: str | None = None, request_id: str | None = None) -> ProviderScopesMap:
        oauth_providers = fetch_oauth_provider_ids_by_catalog_url(catalog_url, request_id=request_id)
        return self.ensure(oauth_providers, request_id=request_id)

    def clear(self) -> None:
        with self._lock:
            self._scopes_by_provider = {}


required_scope_cache = RequiredScopeCache()


def get_required_scope_cache() -> RequiredScopeCache:
    return required_scope_cache
