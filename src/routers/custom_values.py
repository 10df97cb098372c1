from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status

from src.auth import AuthContext, require_account_access, require_permission
from src.auth.permissions import CUSTOM_VALUES_READ, CUSTOM_VALUES_SYNC
from src.domain.provider_errors import console_error_detail, console_error_http_status
from src.models.accounts import AccountData
from src.models.custom_values import (
    AccountSyncResponse,
    BulkSyncRequest,
    BulkSyncResponse,
    CustomValuesBoardResponse,
)
from src.providers.console.client import ConsoleApiError
from src.services.custom_values_sync import (
    NoEligibleAccountsError,
    build_agency_overview,
    bulk_sync_accounts,
    load_account_sync_statuses,
    load_accounts,
    sync_account,
)
from src.services.required_scopes import RequiredScopeCache, get_required_scope_cache


router = APIRouter(prefix="/api/console/custom-values", tags=["custom-values"])


def _request_id(request: Request | None) -> str | None:
    if not request:
        return None
    return getattr(getattr(request, "state", None), "request_id", None)


def _raise_console_http_error(operation: str, exc: ConsoleApiError) -> None:
    raise HTTPException(
        status_code=console_error_http_status(exc),
        detail=console_error_detail(operation=operation, exc=exc),
    ) from exc


def _accessible_accounts(auth: AuthContext, request_id: str | None) -> list[AccountData]:
    return [account for account in load_accounts(request_id=request_id) if auth.can_access_account(account.key)]


@router.get("/statuses", response_model=CustomValuesBoardResponse)
def list_custom_values_statuses(
    request: Request,
    limit: int = Query(25),
    offset: int = Query(0),
    auth: AuthContext = Depends(require_permission(CUSTOM_VALUES_READ)),
    scope_cache: RequiredScopeCache = Depends(get_required_scope_cache),
):
    bounded_limit = max(1, min(limit, 200))
    bounded_offset = max(0, offset)
    request_id = _request_id(request)
    try:
        accounts = _accessible_accounts(auth, request_id)
    except ConsoleApiError as exc:
        _raise_console_http_error("accounts_list", exc)
    accounts.sort(key=lambda account: (account.dealer or account.key).lower())
    # Ready count and agency overview cover every account, not just this page.
    statuses = load_account_sync_statuses(accounts, scope_cache, request_id=request_id)
    return CustomValuesBoardResponse(
        accounts=statuses[bounded_offset:bounded_offset + bounded_limit],
        total=len(statuses),
        limit=bounded_limit,
        offset=bounded_offset,
        ready_count=sum(1 for item in statuses if item.ready_for_sync),
        agency=build_agency_overview(statuses, request_id=request_id),
    )


@router.post("/{account_key}/sync", response_model=AccountSyncResponse)
def sync_account_custom_values(
    account_key: str,
    request: Request,
    auth: AuthContext = Depends(require_permission(CUSTOM_VALUES_SYNC)),
):
    require_account_access(auth, account_key)
    try:
        return sync_account(account_key, request_id=_request_id(request))
    except ConsoleApiError as exc:
        _raise_console_http_error("custom_values_sync", exc)


@router.post("/sync-bulk", response_model=BulkSyncResponse)
def bulk_sync_custom_values(
    data: BulkSyncRequest,
    request: Request,
    auth: AuthContext = Depends(require_permission(CUSTOM_VALUES_SYNC)),
    scope_cache: RequiredScopeCache = Depends(get_required_scope_cache),
):
    if not data.account_keys:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="accountKeys is required")
    request_id = _request_id(request)
    requested = set(data.account_keys)
    try:
        accounts = [account for account in _accessible_accounts(auth, request_id) if account.key in requested]
    except ConsoleApiError as exc:
        _raise_console_http_error("accounts_list", exc)

    # Readiness is re-resolved from upstream state, never taken from the caller.
    statuses = load_account_sync_statuses(accounts, scope_cache, request_id=request_id)
    try:
        return bulk_sync_accounts(data.account_keys, statuses, request_id=request_id)
    except NoEligibleAccountsError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except ConsoleApiError as exc:
        _raise_console_http_error("custom_values_sync_all", exc)
