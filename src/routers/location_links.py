from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request, status

from src.auth import AuthContext, require_permission
from src.auth.permissions import LOCATION_LINKS_WRITE
from src.domain.provider_errors import console_error_detail, console_error_http_status
from src.models.location_links import (
    BulkLinkApplyRequest,
    BulkLinkApplyResponse,
    BulkLinkInputRequest,
    BulkLinkPreviewResponse,
)
from src.providers.console import client as console_client
from src.providers.console.client import ConsoleApiError
from src.services.bulk_links import BulkLinkSession, BulkLinkValidationError


router = APIRouter(prefix="/api/console/location-links", tags=["location-links"])


def _request_id(request: Request | None) -> str | None:
    if not request:
        return None
    return getattr(getattr(request, "state", None), "request_id", None)


def _raise_console_http_error(operation: str, exc: ConsoleApiError) -> None:
    raise HTTPException(
        status_code=console_error_http_status(exc),
        detail=console_error_detail(operation=operation, exc=exc),
    ) from exc


def _known_account_keys(auth: AuthContext, request_id: str | None) -> set[str]:
    try:
        accounts = console_client.list_accounts(request_id=request_id)
    except ConsoleApiError as exc:
        _raise_console_http_error("accounts_list", exc)
    keys = {str(account["key"]) for account in accounts if account.get("key")}
    return {key for key in keys if auth.can_access_account(key)}


@router.post("/bulk/preview", response_model=BulkLinkPreviewResponse)
def preview_bulk_location_links(
    data: BulkLinkInputRequest,
    request: Request,
    auth: AuthContext = Depends(require_permission(LOCATION_LINKS_WRITE)),
):
    session = BulkLinkSession.for_accounts(_known_account_keys(auth, _request_id(request)), input=data.input)
    return session.preview()


@router.post("/bulk/apply", response_model=BulkLinkApplyResponse)
def apply_bulk_location_links(
    data: BulkLinkApplyRequest,
    request: Request,
    auth: AuthContext = Depends(require_permission(LOCATION_LINKS_WRITE)),
):
    request_id = _request_id(request)
    known_keys = _known_account_keys(auth, request_id)
    session = BulkLinkSession.for_accounts(known_keys, input=data.input)
    session.adopt_preview(data.preview)
    try:
        return session.apply(request_id=request_id)
    except BulkLinkValidationError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except ConsoleApiError as exc:
        _raise_console_http_error("ghl_location_link_bulk", exc)
