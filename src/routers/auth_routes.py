from fastapi import APIRouter, Depends, Query
from src.auth import AuthContext, get_current_auth, require_permission
from src.auth.permissions import METRICS_READ, role_display_name
from src.models.auth import MeResponse, MetricsSnapshotResponse
from src.observability import metrics_snapshot

router = APIRouter(prefix="/api", tags=["auth"])


@router.get("/auth/me", response_model=MeResponse)
def get_me(auth: AuthContext = Depends(get_current_auth)):
    """Who the current session belongs to and what it may do."""
    return MeResponse(
        user_id=auth.user_id,
        role=auth.role,
        role_display_name=role_display_name(auth.role),
        email=auth.email,
        account_keys=list(auth.account_keys),
        all_accounts=auth.is_elevated,
        auth_method=auth.auth_method,
        permissions=list(auth.permissions),
    )


@router.get("/console/metrics", response_model=MetricsSnapshotResponse)
def get_metrics(
    prefix: str | None = Query(None),
    auth: AuthContext = Depends(require_permission(METRICS_READ)),
):
    return MetricsSnapshotResponse(counters=metrics_snapshot(prefix))
