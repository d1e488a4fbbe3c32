import logging
from typing import Annotated, Optional

from fastapi import Depends, HTTPException, Request, Security, status
from fastapi.security import APIKeyHeader

from modernblog.schemas.auth import RequestIdentity, TokenType
from modernblog.utils.tokens import TokenError, TokenManager, WrongTokenTypeError

logger = logging.getLogger(__name__)

BEARER_SCHEME = "Bearer"
INVALID_TOKEN_DETAIL = "Invalid or expired token"

# Raw header value; the scheme is parsed strictly by parse_bearer_token
authorization_header = APIKeyHeader(
    name="Authorization",
    scheme_name="BearerToken",
    description="Bearer <access token>",
    auto_error=False,
)


class AuthorizationHeaderError(Exception):
    pass


class MissingAuthorizationError(AuthorizationHeaderError):
    pass


class MalformedAuthorizationError(AuthorizationHeaderError):
    pass


def get_token_manager(request: Request) -> TokenManager:
    return request.app.state.token_manager


def parse_bearer_token(authorization: Optional[str]) -> str:
    """Extract the token from an ``Authorization: Bearer <token>`` header value."""
    if not authorization:
        raise MissingAuthorizationError("Authorization header required")

    parts = authorization.split(" ")
    if len(parts) != 2 or parts[0] != BEARER_SCHEME or not parts[1]:
        raise MalformedAuthorizationError("Invalid authorization header format")
    return parts[1]


def authenticate(authorization: Optional[str], token_manager: TokenManager) -> RequestIdentity:
    """
    Resolve the identity behind an Authorization header value.

    Only access tokens are accepted here; a refresh token raises
    WrongTokenTypeError even though its signature is valid.
    """
    token = parse_bearer_token(authorization)
    claims = token_manager.validate_token(token)
    if claims.type != TokenType.ACCESS:
        raise WrongTokenTypeError(f"Expected an access token, got {claims.type.value}")
    return RequestIdentity.from_claims(claims)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": BEARER_SCHEME},
    )


async def require_auth(
    request: Request,
    token_manager: Annotated[TokenManager, Depends(get_token_manager)],
    authorization: Annotated[Optional[str], Security(authorization_header)],
) -> RequestIdentity:
    """
    Reject the request with 401 unless it carries a valid access token.

    Every token failure produces the same response detail; the exact
    reason only goes to the log.
    """
    request.state.identity = None
    try:
        identity = authenticate(authorization, token_manager)
    except AuthorizationHeaderError as e:
        logger.info("Rejected %s %s: %s", request.method, request.url.path, e)
        raise _unauthorized(str(e)) from None
    except TokenError as e:
        logger.info(
            "Rejected %s %s: %s (%s)", request.method, request.url.path, type(e).__name__, e
        )
        raise _unauthorized(INVALID_TOKEN_DETAIL) from None

    request.state.identity = identity
    return identity


async def optional_auth(
    request: Request,
    token_manager: Annotated[TokenManager, Depends(get_token_manager)],
    authorization: Annotated[Optional[str], Security(authorization_header)],
) -> Optional[RequestIdentity]:
    """
    Attach the identity if a valid access token is present.
    Returns None for missing or invalid credentials, never rejects.
    """
    identity = None
    try:
        identity = authenticate(authorization, token_manager)
    except (AuthorizationHeaderError, TokenError) as e:
        logger.debug("Proceeding without identity on %s: %s", request.url.path, type(e).__name__)

    request.state.identity = identity
    return identity


# Type aliases for dependency injection
TokenManagerDep = Annotated[TokenManager, Depends(get_token_manager)]
CurrentIdentity = Annotated[RequestIdentity, Depends(require_auth)]
OptionalIdentity = Annotated[Optional[RequestIdentity], Depends(optional_auth)]
