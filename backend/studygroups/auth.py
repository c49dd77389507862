"""Authentication helpers and FastAPI security dependency.

This module provides utilities to decode JWT tokens and a FastAPI
dependency `get_current_user_id` that validates the bearer token and
returns the id of the acting user.

Token verification raises HTTPExceptions on failure so it can be used
directly inside route dependencies. The gate does not load the user row;
handlers that need it (profile) report a missing user themselves.
"""

from typing import Optional

from fastapi import HTTPException, Request, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
import jwt

from .config import Settings

# auto_error is off so a missing header yields 401 rather than FastAPI's default
bearer_scheme = HTTPBearer(auto_error=False)

_UNAUTHORIZED_HEADERS = {"WWW-Authenticate": "Bearer"}


def decode_token(token: str, settings: Settings) -> dict:
    """Decode and verify a JWT token.

    Returns the decoded payload on success or raises an HTTPException
    with status 401 on failure.
    """
    try:
        return jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail='token expired', headers=_UNAUTHORIZED_HEADERS)
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=401, detail='Please authenticate', headers=_UNAUTHORIZED_HEADERS)


def get_current_user_id(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Security(bearer_scheme),
) -> int:
    """FastAPI dependency that returns the authenticated user id.

    The function extracts the bearer token from the request, decodes it
    and returns the `user_id` claim. It raises an HTTPException(401) for
    any authentication issue.
    """
    if credentials is None or not credentials.credentials:
        raise HTTPException(status_code=401, detail='Please authenticate', headers=_UNAUTHORIZED_HEADERS)
    payload = decode_token(credentials.credentials, request.app.state.settings)
    user_id = payload.get('user_id')
    if not isinstance(user_id, int) or isinstance(user_id, bool):
        raise HTTPException(status_code=401, detail='invalid token payload', headers=_UNAUTHORIZED_HEADERS)
    return user_id
