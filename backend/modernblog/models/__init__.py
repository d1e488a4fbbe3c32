"""Database models."""

from modernblog.models.user import User

__all__ = [
    "User",
]
