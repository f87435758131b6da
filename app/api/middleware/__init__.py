"""API middleware modules."""

from .auth import (
    AuthenticatedUser,
    get_current_user,
    get_optional_user,
    require_admin,
    require_role,
    require_venue_partner,
)

__all__ = [
    "AuthenticatedUser",
    "get_current_user",
    "get_optional_user",
    "require_admin",
    "require_role",
    "require_venue_partner",
]
