from datetime import datetime, timedelta, timezone
from jose import jwt, JWTError
from src.config import settings


def create_access_token(
    user_id: str,
    role: str,
    account_keys: list[str] | None = None,
    email: str | None = None,
) -> str:
    """Create a signed console session JWT."""
    if not settings.jwt_secret:
        raise RuntimeError("JWT_SECRET is not configured")
    now = datetime.now(timezone.utc)
    payload = {
        "sub": user_id,
        "role": role,
        "accountKeys": list(account_keys or []),
        "email": email,
        "type": "session",
        "exp": now + timedelta(minutes=settings.jwt_expiration_minutes),
        "iat": now,
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> dict | None:
    """Decode and validate a session JWT. Returns payload or None if invalid."""
    if not settings.jwt_secret:
        return None
    try:
        payload = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except JWTError:
        return None
    if payload.get("type") != "session" or not payload.get("sub") or not payload.get("role"):
        return None
    return payload
