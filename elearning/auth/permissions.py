"""Roles recognised by the engine's endpoints."""

from enum import Enum


class UserRole(str, Enum):
    """Roles carried in the access token's ``role`` claim."""

    STUDENT = "student"
    INSTRUCTOR = "instructor"
    ADMIN = "admin"


def is_admin(role: UserRole | str) -> bool:
    return role in (UserRole.ADMIN, UserRole.ADMIN.value)
