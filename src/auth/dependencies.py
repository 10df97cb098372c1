from fastapi import Depends, Header, HTTPException, status
from src.auth.context import AuthContext
from src.auth.jwt import decode_access_token
from src.auth.permissions import role_has_permission


def _extract_bearer_token(authorization: str | None) -> str | None:
    """Extract token from 'Bearer <token>' header."""
    if not authorization:
        return None
    parts = authorization.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        return None
    return parts[1]


def _context_from_payload(payload: dict) -> AuthContext | None:
    account_keys = payload.get("accountKeys") or []
    if not isinstance(account_keys, list):
        return None
    try:
        return AuthContext(
            user_id=str(payload["sub"]),
            role=str(payload["role"]),
            account_keys=tuple(str(key) for key in account_keys),
            email=payload.get("email"),
            auth_method="session",
        )
    except ValueError:
        # Unknown role in an otherwise valid token.
        return None


async def get_current_auth(authorization: str | None = Header(None)) -> AuthContext:
    """Resolve the console session from the bearer JWT."""
    token = _extract_bearer_token(authorization)
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing authorization header",
        )

    payload = decode_access_token(token)
    auth = _context_from_payload(payload) if payload else None
    if not auth:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired session",
        )
    return auth


def has_permission(auth: AuthContext, permission_key: str) -> bool:
    if permission_key in auth.permissions:
        return True
    return role_has_permission(auth.role, permission_key)


def require_permission(permission_key: str):
    async def _require(auth: AuthContext = Depends(get_current_auth)) -> AuthContext:
        if not has_permission(auth, permission_key):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Permission required: {permission_key}",
            )
        return auth

    return _require


def require_account_access(auth: AuthContext, account_key: str) -> None:
    if not auth.can_access_account(account_key):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Account not found")
