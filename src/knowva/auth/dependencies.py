"""FastAPI authentication dependencies."""

from __future__ import annotations

from fastapi import Request, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from knowva.auth.exceptions import UnauthorizedError
from knowva.auth.jwt import TokenIssuer
from knowva.auth.service import AuthService

_bearer = HTTPBearer(auto_error=False)


def get_auth_service(request: Request) -> AuthService:
    """The AuthService built by create_app()."""
    return request.app.state.auth_service


def get_token_issuer(request: Request) -> TokenIssuer:
    return request.app.state.auth_service.issuer


async def get_current_user_id(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Security(_bearer),
) -> str:
    """
    Validate the bearer access token and return its subject.

    The user row is not loaded here; handlers report a missing user as 404.
    """
    if credentials is None:
        raise UnauthorizedError("Missing bearer token")
    user_id = get_token_issuer(request).extract_user_id(credentials.credentials)
    if user_id is None:
        raise UnauthorizedError("Invalid token")
    return user_id
