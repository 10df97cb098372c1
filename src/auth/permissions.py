from __future__ import annotations

from typing import Final

LEGACY_ROLE_ALIASES: Final[dict[str, str]] = {
    "superadmin": "super_admin",
    "super-admin": "super_admin",
}

CANONICAL_ROLES: Final[set[str]] = {"developer", "super_admin", "admin", "client"}
ELEVATED_ROLES: Final[set[str]] = {"developer", "super_admin"}

ACCOUNTS_READ: Final[str] = "accounts.read"
CUSTOM_VALUES_READ: Final[str] = "custom_values.read"
CUSTOM_VALUES_SYNC: Final[str] = "custom_values.sync"
LOCATION_LINKS_WRITE: Final[str] = "location_links.write"
METRICS_READ: Final[str] = "metrics.read"

ROLE_PERMISSION_BUNDLES: Final[dict[str, set[str]]] = {
    "developer": {
        ACCOUNTS_READ,
        CUSTOM_VALUES_READ,
        CUSTOM_VALUES_SYNC,
        LOCATION_LINKS_WRITE,
        METRICS_READ,
    },
    "super_admin": {
        ACCOUNTS_READ,
        CUSTOM_VALUES_READ,
        CUSTOM_VALUES_SYNC,
        LOCATION_LINKS_WRITE,
        METRICS_READ,
    },
    "admin": {
        ACCOUNTS_READ,
        CUSTOM_VALUES_READ,
        CUSTOM_VALUES_SYNC,
        LOCATION_LINKS_WRITE,
    },
    "client": {
        ACCOUNTS_READ,
    },
}


def normalize_role(role: str) -> str:
    raw = (role or "").strip().lower()
    normalized = LEGACY_ROLE_ALIASES.get(raw, raw)
    if normalized not in CANONICAL_ROLES:
        raise ValueError(f"Unsupported role: {role}")
    return normalized


def permissions_for_role(role: str) -> set[str]:
    normalized = normalize_role(role)
    return set(ROLE_PERMISSION_BUNDLES[normalized])


def role_has_permission(role: str, permission_key: str) -> bool:
    return permission_key in permissions_for_role(role)


def is_elevated_role(role: str) -> bool:
    return normalize_role(role) in ELEVATED_ROLES


def role_display_name(role: str) -> str:
    normalized = normalize_role(role)
    if normalized == "super_admin":
        return "Super Admin"
    return normalized.capitalize()
