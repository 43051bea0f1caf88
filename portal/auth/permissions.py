"""
Role-based permissions.

Permissions are derived from the user role only; the backend stays the
authority and enforces its own checks on every call.
"""
from typing import Dict, FrozenSet, Iterable

ROLE_PERMISSIONS: Dict[str, FrozenSet[str]] = {
    "admin": frozenset({
        "users.create", "users.read", "users.update", "users.delete",
        "companies.create", "companies.read", "companies.update", "companies.delete",
        "requests.create", "requests.read", "requests.update", "requests.delete",
        "quotes.create", "quotes.read", "quotes.update", "quotes.delete",
        "payments.read", "payments.update",
        "reports.read", "reports.create",
        "messages.read", "messages.create",
    }),
    "technician": frozenset({
        "requests.read", "requests.update",
        "quotes.read",
        "installations.read", "installations.update",
        "reports.create", "reports.read",
        "messages.read", "messages.create",
    }),
    "client": frozenset({
        "requests.create", "requests.read",
        "quotes.read", "quotes.respond",
        "installations.read",
        "payments.read",
        "messages.read", "messages.create",
    }),
}


# PUBLIC_INTERFACE
def get_role_permissions(role: str) -> FrozenSet[str]:
    """Return the permissions granted to a role (none for unknown roles)."""
    return ROLE_PERMISSIONS.get(role, frozenset())


# PUBLIC_INTERFACE
def has_permissions(role: str, required: Iterable[str]) -> bool:
    """Tell whether a role holds every required permission."""
    granted = get_role_permissions(role)
    return all(permission in granted for permission in required)
