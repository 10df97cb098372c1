from src.models.base import ConsoleModel


class MeResponse(ConsoleModel):
    user_id: str
    role: str
    role_display_name: str
    email: str | None = None
    account_keys: list[str]
    all_accounts: bool
    auth_method: str
    permissions: list[str]


class MetricsSnapshotResponse(ConsoleModel):
    counters: dict[str, int]
