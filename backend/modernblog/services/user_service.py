from datetime import datetime, timezone
from typing import Optional
from uuid import UUID

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from modernblog.models.user import User
from modernblog.schemas.user import UserCreate
from modernblog.utils.passwords import hash_password, verify_password


class UserService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_by_id(self, user_id: UUID) -> Optional[User]:
        result = await self.db.execute(select(User).where(User.id == user_id))
        return result.scalar_one_or_none()

    async def get_by_email(self, email: str) -> Optional[User]:
        result = await self.db.execute(select(User).where(User.email == email.lower()))
        return result.scalar_one_or_none()

    async def get_by_username(self, username: str) -> Optional[User]:
        result = await self.db.execute(select(User).where(User.username == username))
        return result.scalar_one_or_none()

    async def create(self, user_data: UserCreate) -> User:
        email = user_data.email.lower()
        existing = await self.db.execute(
            select(User.id).where(or_(User.email == email, User.username == user_data.username))
        )
        if existing.first() is not None:
            raise UserConflictError("User with this email or username already exists")

        user = User(
            username=user_data.username,
            email=email,
            password_hash=hash_password(user_data.password),
            first_name=user_data.first_name,
            last_name=user_data.last_name,
            is_active=True,
        )
        self.db.add(user)
        await self.db.flush()
        await self.db.refresh(user)
        return user

    async def authenticate(self, email: str, password: str) -> User:
        """
        Check credentials for a login attempt.

        Unknown email and wrong password raise the same error so callers
        cannot tell which one failed.
        """
        user = await self.get_by_email(email)
        if user is None:
            raise InvalidCredentialsError("Invalid credentials")
        if not user.is_active:
            raise InactiveUserError("Account is inactive")
        if not verify_password(password, user.password_hash):
            raise InvalidCredentialsError("Invalid credentials")
        return user

    async def update_last_login(self, user: User) -> None:
        user.last_login_at = datetime.now(timezone.utc)
        await self.db.flush()
        await self.db.refresh(user)


class UserConflictError(Exception):
    pass


class InvalidCredentialsError(Exception):
    pass


class InactiveUserError(Exception):
    pass
