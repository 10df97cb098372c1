from dataclasses import dataclass
from src.auth.permissions import is_elevated_role, normalize_role, permissions_for_role


@dataclass
class AuthContext:
    """Identity context for an authenticated console user."""
    user_id: str
    role: str
    account_keys: tuple[str, ...] = ()
    email: str | None = None
    auth_method: str = "session"
    permissions: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        self.role = normalize_role(self.role)
        self.account_keys = tuple(dict.fromkeys(key for key in self.account_keys if key))
        if self.permissions:
            self.permissions = tuple(sorted(set(self.permissions)))
            return
        self.permissions = tuple(sorted(permissions_for_role(self.role)))

    @property
    def is_elevated(self) -> bool:
        return is_elevated_role(self.role)

    def can_access_account(self, account_key: str) -> bool:
        """Elevated roles see every sub-account; everyone else only their assigned ones."""
        return self.is_elevated or account_key in self.account_keys
