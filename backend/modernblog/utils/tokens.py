"""
Signed access/refresh token issuance and validation.

Tokens are stateless HMAC-signed JWTs. Nothing is persisted server side, so a
token stays valid until it expires; refresh tokens are reusable and are not
rotated on exchange.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, NamedTuple
from uuid import UUID

from jose import jwt
from jose.exceptions import JOSEError, JWTClaimsError, JWTError
from pydantic import ValidationError

from modernblog.schemas.auth import TokenClaims, TokenType

logger = logging.getLogger(__name__)

SIGNING_ALGORITHM = "HS256"
# Only the HMAC family is accepted; checked against the unverified header
# before the secret is ever used.
ALLOWED_ALGORITHMS = frozenset({"HS256", "HS384", "HS512"})
DEFAULT_ISSUER = "modernblog-api"


class TokenError(Exception):
    """Base class for token validation failures."""


class MalformedTokenError(TokenError):
    pass


class UnsupportedAlgorithmError(TokenError):
    pass


class InvalidSignatureError(TokenError):
    pass


class TokenExpiredError(TokenError):
    pass


class TokenNotYetValidError(TokenError):
    pass


class WrongTokenTypeError(TokenError):
    pass


class SigningError(Exception):
    """Raised when a token cannot be signed. Treated as a configuration fault."""


@dataclass(frozen=True)
class TokenConfig:
    secret: str
    access_ttl: timedelta
    refresh_ttl: timedelta
    issuer: str = DEFAULT_ISSUER
    leeway: timedelta = timedelta(0)

    def __post_init__(self) -> None:
        if self.access_ttl <= timedelta(0) or self.refresh_ttl <= timedelta(0):
            raise ValueError("Token lifetimes must be positive")
        if self.access_ttl >= self.refresh_ttl:
            raise ValueError("Access token lifetime must be shorter than refresh token lifetime")
        if self.leeway < timedelta(0):
            raise ValueError("Leeway must not be negative")


class TokenPair(NamedTuple):
    access_token: str
    refresh_token: str


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TokenManager:
    def __init__(
        self, config: TokenConfig, clock: Callable[[], datetime] | None = None
    ) -> None:
        self.config = config
        self._clock = clock or _utcnow

    def issue_token_pair(self, user_id: UUID, username: str, email: str) -> TokenPair:
        """Issue an access and a refresh token from the same identity snapshot."""
        return TokenPair(
            access_token=self.issue_access_token(user_id, username, email),
            refresh_token=self.issue_refresh_token(user_id, username, email),
        )

    def issue_access_token(self, user_id: UUID, username: str, email: str) -> str:
        return self._sign(user_id, username, email, TokenType.ACCESS, self.config.access_ttl)

    def issue_refresh_token(self, user_id: UUID, username: str, email: str) -> str:
        return self._sign(user_id, username, email, TokenType.REFRESH, self.config.refresh_ttl)

    def validate_token(self, token: str) -> TokenClaims:
        """
        Verify a token and return its claims.

        Checks run in a fixed order so every failure maps to exactly one
        error class: structure, algorithm allow-list, signature, claim
        shape, then the validity window.
        """
        try:
            header = jwt.get_unverified_header(token)
        except JWTError as e:
            raise MalformedTokenError(str(e)) from None

        algorithm = header.get("alg")
        # alg comes from an untrusted header and may be any JSON value
        if not isinstance(algorithm, str) or algorithm not in ALLOWED_ALGORITHMS:
            raise UnsupportedAlgorithmError(f"Unexpected signing method: {algorithm}")

        try:
            jwt.get_unverified_claims(token)
        except JWTError as e:
            raise MalformedTokenError(str(e)) from None

        try:
            payload = jwt.decode(
                token,
                self.config.secret,
                algorithms=sorted(ALLOWED_ALGORITHMS),
                issuer=self.config.issuer,
                # exp/nbf are checked below against the injected clock
                options={"verify_exp": False, "verify_nbf": False},
            )
        except JWTClaimsError as e:
            raise MalformedTokenError(str(e)) from None
        except JWTError as e:
            raise InvalidSignatureError(str(e)) from None

        try:
            claims = TokenClaims.model_validate(payload)
        except ValidationError as e:
            raise MalformedTokenError(f"Invalid token claims: {e.error_count()} error(s)") from None

        now = self._clock()
        leeway = self.config.leeway
        if now + leeway < claims.not_before:
            raise TokenNotYetValidError("Token is not valid yet")
        if now - leeway >= claims.expires_at:
            raise TokenExpiredError("Token has expired")

        return claims

    def refresh_access_token(self, refresh_token: str) -> str:
        """Exchange a refresh token for a new access token carrying the same identity."""
        claims = self.validate_token(refresh_token)
        if claims.type != TokenType.REFRESH:
            raise WrongTokenTypeError(f"Expected a refresh token, got {claims.type.value}")
        return self.issue_access_token(claims.user_id, claims.username, claims.email)

    def _sign(
        self,
        user_id: UUID,
        username: str,
        email: str,
        token_type: TokenType,
        ttl: timedelta,
    ) -> str:
        if not self.config.secret:
            raise SigningError("Signing secret is not configured")

        issued_at = int(self._clock().timestamp())
        claims: dict[str, Any] = {
            "user_id": str(user_id),
            "username": username,
            "email": email,
            "type": token_type.value,
            "iat": issued_at,
            "exp": issued_at + int(ttl.total_seconds()),
            "nbf": issued_at,
            "iss": self.config.issuer,
            "sub": str(user_id),
        }
        try:
            return jwt.encode(claims, self.config.secret, algorithm=SIGNING_ALGORITHM)
        except JOSEError as e:
            logger.error("Failed to sign %s token: %s", token_type.value, e)
            raise SigningError(f"Failed to sign {token_type.value} token") from e
