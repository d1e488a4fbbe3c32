from datetime import datetime
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field, model_validator

from modernblog.schemas.user import UserResponse


class TokenType(str, Enum):
    ACCESS = "access"
    REFRESH = "refresh"


class TokenClaims(BaseModel):
    """Decoded payload of a verified token. Registered claims keep their JWT names on the wire."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    user_id: UUID
    username: str
    email: str
    type: TokenType
    issued_at: datetime = Field(alias="iat")
    expires_at: datetime = Field(alias="exp")
    not_before: datetime = Field(alias="nbf")
    issuer: str = Field(alias="iss")
    subject: str = Field(alias="sub")  # str(user_id)

    @model_validator(mode="after")
    def subject_matches_user_id(self) -> "TokenClaims":
        if self.subject != str(self.user_id):
            raise ValueError("Token subject does not match user_id")
        return self


class RequestIdentity(BaseModel):
    """Identity attached to a request by the authorization gate."""

    model_config = ConfigDict(frozen=True)

    user_id: UUID
    username: str
    email: str

    @classmethod
    def from_claims(cls, claims: TokenClaims) -> "RequestIdentity":
        return cls(user_id=claims.user_id, username=claims.username, email=claims.email)


class RegisterRequest(BaseModel):
    username: str = Field(..., min_length=3, max_length=50)
    email: EmailStr
    password: str = Field(..., min_length=6, max_length=128)
    first_name: str | None = Field(None, max_length=100)
    last_name: str | None = Field(None, max_length=100)


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class RefreshRequest(BaseModel):
    refresh_token: str = Field(..., min_length=1)


class AuthResponse(BaseModel):
    user: UserResponse
    access_token: str
    refresh_token: str


class AccessTokenResponse(BaseModel):
    access_token: str


class ProfileResponse(BaseModel):
    user: UserResponse


class MessageResponse(BaseModel):
    message: str


class AuthStatusResponse(BaseModel):
    authenticated: bool
    user_id: UUID | None = None
    username: str | None = None
    email: str | None = None
