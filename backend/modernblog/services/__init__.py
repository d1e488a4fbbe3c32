"""Service layer for business logic."""

from modernblog.services.user_service import UserService

__all__ = [
    "UserService",
]
