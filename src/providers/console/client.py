from __future__ import annotations

import logging
from typing import Any
from urllib.parse import quote

import httpx

from src.config import settings
from src.observability import log_event, observe_upstream_call


_TRANSIENT_STATUS_CODES = {429, 500, 502, 503, 504}


class ConsoleApiError(Exception):
    """Failure reported by (or while reaching) the internal console `/api/*` layer."""

    def __init__(self, message: str, *, status_code: int | None = None, category: str | None = None):
        super().__init__(message)
        self.status_code = status_code
        self._category = category

    @property
    def category(self) -> str:
        if self._category:
            return self._category
        if self.status_code is None or self.status_code in _TRANSIENT_STATUS_CODES:
            return "transient"
        if 400 <= self.status_code < 500:
            return "terminal"
        return "unknown"

    @property
    def retryable(self) -> bool:
        return self.category == "transient"


def _build_base_url(base_url: str | None) -> str:
    return (base_url or settings.console_api_base_url).rstrip("/")


def _headers(api_token: str | None) -> dict[str, str]:
    headers = {
        "Accept": "application/json",
        "Content-Type": "application/json",
    }
    token = api_token or settings.console_api_token
    if token:
        headers["Authorization"] = f"Bearer {token}"
    return headers


def _send_request(
    *,
    method: str,
    url: str,
    headers: dict[str, str],
    timeout_seconds: float,
    params: dict[str, Any] | None = None,
    json_payload: dict[str, Any] | None = None,
) -> httpx.Response:
    # Single attempt: console mutations are at-most-once.
    with httpx.Client(timeout=timeout_seconds) as client:
        return client.request(
            method=method,
            url=url,
            headers=headers,
            params=params,
            json=json_payload,
        )


def _parse_json(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return None


def _request_json(
    *,
    operation: str,
    method: str,
    path: str,
    fallback_error: str,
    params: dict[str, Any] | None = None,
    json_payload: dict[str, Any] | None = None,
    base_url: str | None = None,
    api_token: str | None = None,
    timeout_seconds: float | None = None,
    request_id: str | None = None,
) -> Any:
    url = f"{_build_base_url(base_url)}{path}"
    with observe_upstream_call(operation, request_id=request_id):
        try:
            response = _send_request(
                method=method,
                url=url,
                headers=_headers(api_token),
                timeout_seconds=timeout_seconds or settings.console_api_timeout_seconds,
                params=params,
                json_payload=json_payload,
            )
        except httpx.HTTPError as exc:
            log_event(
                "console_api_transport_error",
                level=logging.WARNING,
                request_id=request_id,
                operation=operation,
                error=str(exc),
            )
            raise ConsoleApiError("Console API is unreachable") from exc

        payload = _parse_json(response)
        if response.status_code >= 400:
            message = payload.get("error") if isinstance(payload, dict) else None
            if not isinstance(message, str) or not message.strip():
                message = fallback_error
            raise ConsoleApiError(message, status_code=response.status_code)
        if payload is None:
            raise ConsoleApiError(f"{fallback_error}: non-JSON response", status_code=response.status_code)
        return payload


def get_provider_catalog(
    catalog_path: str | None = None,
    account_key: str | None = None,
    request_id: str | None = None,
) -> dict[str, Any]:
    params = {"accountKey": account_key} if account_key else None
    data = _request_json(
        operation="provider_catalog_get",
        method="GET",
        path=catalog_path or settings.provider_catalog_path,
        fallback_error="Failed to load provider catalog",
        params=params,
        request_id=request_id,
    )
    if isinstance(data, dict):
        return data
    raise ConsoleApiError("Unexpected provider catalog response shape", category="terminal")


def get_required_scopes(provider: str, request_id: str | None = None) -> list[str]:
    data = _request_json(
        operation="required_scopes_get",
        method="GET",
        path="/api/esp/connections/required-scopes",
        fallback_error="Failed to fetch required scopes",
        params={"provider": provider},
        request_id=request_id,
    )
    scopes = data.get("scopes") if isinstance(data, dict) else None
    if isinstance(scopes, list):
        return [str(scope) for scope in scopes]
    return []


def list_accounts(request_id: str | None = None) -> list[dict[str, Any]]:
    data = _request_json(
        operation="accounts_list",
        method="GET",
        path="/api/accounts",
        fallback_error="Failed to load accounts",
        request_id=request_id,
    )
    if isinstance(data, list):
        return [item for item in data if isinstance(item, dict)]
    if isinstance(data, dict):
        items = data.get("accounts", data)
        if isinstance(items, list):
            return [item for item in items if isinstance(item, dict)]
        if isinstance(items, dict):
            return [
                {"key": key, **item}
                for key, item in items.items()
                if isinstance(item, dict)
            ]
    raise ConsoleApiError("Unexpected accounts response shape", category="terminal")


def get_account(account_key: str, request_id: str | None = None) -> dict[str, Any]:
    data = _request_json(
        operation="account_get",
        method="GET",
        path=f"/api/accounts/{quote(account_key, safe='')}",
        fallback_error="Failed to load account",
        request_id=request_id,
    )
    if isinstance(data, dict):
        return data
    raise ConsoleApiError("Unexpected account response type", category="terminal")


def get_custom_values(account_key: str, request_id: str | None = None) -> dict[str, Any]:
    data = _request_json(
        operation="custom_values_get",
        method="GET",
        path=f"/api/custom-values/{quote(account_key, safe='')}",
        fallback_error="Failed to load custom values",
        request_id=request_id,
    )
    if isinstance(data, dict):
        return data
    raise ConsoleApiError("Unexpected custom values response type", category="terminal")


def sync_custom_values(account_key: str, request_id: str | None = None) -> dict[str, Any]:
    data = _request_json(
        operation="custom_values_sync",
        method="POST",
        path=f"/api/custom-values/{quote(account_key, safe='')}/sync",
        fallback_error="Sync failed",
        request_id=request_id,
    )
    if isinstance(data, dict):
        return data
    raise ConsoleApiError("Unexpected custom values sync response type", category="terminal")


def sync_all_custom_values(account_keys: list[str], request_id: str | None = None) -> dict[str, Any]:
    data = _request_json(
        operation="custom_values_sync_all",
        method="POST",
        path="/api/custom-values/sync-all",
        fallback_error="Bulk sync failed",
        json_payload={"accountKeys": account_keys},
        request_id=request_id,
    )
    if isinstance(data, dict):
        return data
    raise ConsoleApiError("Unexpected bulk sync response type", category="terminal")


def bulk_link_locations(mappings: list[dict[str, Any]], request_id: str | None = None) -> dict[str, Any]:
    data = _request_json(
        operation="ghl_location_link_bulk",
        method="POST",
        path="/api/esp/connections/ghl/location-link/bulk",
        fallback_error="Failed to apply bulk location links",
        json_payload={"mappings": mappings},
        request_id=request_id,
    )
    if isinstance(data, dict):
        return data
    raise ConsoleApiError("Unexpected bulk location link response type", category="terminal")


def get_ghl_agency_status(request_id: str | None = None) -> dict[str, Any]:
    data = _request_json(
        operation="ghl_agency_status_get",
        method="GET",
        path="/api/esp/connections/ghl/agency",
        fallback_error="Failed to load GHL agency status",
        request_id=request_id,
    )
    if isinstance(data, dict):
        return data
    raise ConsoleApiError("Unexpected GHL agency status response type", category="terminal")
