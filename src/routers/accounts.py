from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request

from src.auth import AuthContext, require_account_access, require_permission
from src.auth.permissions import ACCOUNTS_READ
from src.domain.provider_errors import console_error_detail, console_error_http_status
from src.models.providers import AccountIntegrationsResponse
from src.providers.console.client import ConsoleApiError
from src.services.account_integrations import load_account_integrations
from src.services.required_scopes import RequiredScopeCache, get_required_scope_cache


router = APIRouter(prefix="/api/console/accounts", tags=["accounts"])


def _request_id(request: Request | None) -> str | None:
    if not request:
        return None
    return getattr(getattr(request, "state", None), "request_id", None)


def _raise_console_http_error(operation: str, exc: ConsoleApiError) -> None:
    raise HTTPException(
        status_code=console_error_http_status(exc),
        detail=console_error_detail(operation=operation, exc=exc),
    ) from exc


@router.get("/{account_key}/integrations", response_model=AccountIntegrationsResponse)
def get_account_integrations(
    account_key: str,
    request: Request,
    auth: AuthContext = Depends(require_permission(ACCOUNTS_READ)),
    scope_cache: RequiredScopeCache = Depends(get_required_scope_cache),
):
    require_account_access(auth, account_key)
    try:
        return load_account_integrations(account_key, scope_cache, request_id=_request_id(request))
    except ConsoleApiError as exc:
        _raise_console_http_error("account_integrations_get", exc)
