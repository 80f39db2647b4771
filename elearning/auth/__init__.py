"""Bearer-token authentication."""

from .dependencies import AdminUser, AuthenticatedUser, CurrentUser
from .permissions import UserRole


__all__ = ["AdminUser", "AuthenticatedUser", "CurrentUser", "UserRole"]
