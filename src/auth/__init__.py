from src.auth.context import AuthContext
from src.auth.dependencies import (
    get_current_auth,
    has_permission,
    require_account_access,
    require_permission,
)
from src.auth.jwt import create_access_token

__all__ = [
    "AuthContext",
    "get_current_auth",
    "has_permission",
    "require_account_access",
    "require_permission",
    "create_access_token",
]
