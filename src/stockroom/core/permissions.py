"""Role based access control helpers."""

from __future__ import annotations

from typing import Iterable

WILDCARD = "*"

DASHBOARD_VIEW = "dashboard:view"

ITEMS_VIEW = "items:read"
ITEMS_CREATE = "items:create"
ITEMS_UPDATE = "items:update"
ITEMS_DELETE = "items:delete"

TRANSACTIONS_VIEW = "transactions:read"
TRANSACTIONS_CREATE = "transactions:create"
TRANSACTIONS_UPDATE = "transactions:update"
TRANSACTIONS_DELETE = "transactions:delete"

REPORTS_VIEW = "reports:read"
REPORTS_EXPORT = "reports:export"

REFERENCES_VIEW = "references:read"
REFERENCES_MANAGE = "references:create"

SETTINGS_VIEW = "settings:view"
SETTINGS_UPDATE = "settings:update"

USERS_VIEW = "users:view"
USERS_CREATE = "users:create"
USERS_UPDATE = "users:update"
USERS_DELETE = "users:delete"

ROLES_VIEW = "roles:view"
ROLES_CREATE = "roles:create"
ROLES_UPDATE = "roles:update"
ROLES_DELETE = "roles:delete"

ADMIN_ROLE = "Admin"
MANAGER_ROLE = "Manager"
VIEWER_ROLE = "Viewer"

DEFAULT_ROLES: dict[str, list[str]] = {
    ADMIN_ROLE: [WILDCARD],
    MANAGER_ROLE: [
        DASHBOARD_VIEW,
        ITEMS_VIEW,
        ITEMS_CREATE,
        ITEMS_UPDATE,
        TRANSACTIONS_VIEW,
        TRANSACTIONS_CREATE,
        REPORTS_VIEW,
        REPORTS_EXPORT,
        REFERENCES_VIEW,
        REFERENCES_MANAGE,
        SETTINGS_VIEW,
    ],
    VIEWER_ROLE: [
        DASHBOARD_VIEW,
        ITEMS_VIEW,
        TRANSACTIONS_VIEW,
        REPORTS_VIEW,
        REFERENCES_VIEW,
    ],
}


def has_permission(granted: Iterable[str] | None, permission: str) -> bool:
    """Return ``True`` when *granted* contains *permission* or the wildcard."""

    codes = set(granted or ())
    return WILDCARD in codes or permission in codes


def has_any_permission(granted: Iterable[str] | None, permissions: Iterable[str]) -> bool:
    codes = list(granted or ())
    return any(has_permission(codes, permission) for permission in permissions)
