from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import Header, Request

from early_access.api.errors import ApiError
from early_access.errors import InvalidToken, NotFound


def _unauthorized(message: str) -> ApiError:
    return ApiError(
        401,
        {"success": False, "message": message},
        headers={"WWW-Authenticate": "Bearer"},
    )


def bearer_token(authorization: Optional[str]) -> str:
    """Pull the token out of an Authorization header value.

    The failure messages differ on purpose: a client without a header, a client
    sending an empty "Bearer", and a client with a bad token need different fixes.
    """
    if not authorization:
        raise _unauthorized("Authorization header missing")

    parts = authorization.strip().split(None, 1)
    if len(parts) < 2 or not parts[1].strip():
        raise _unauthorized("Token missing")

    scheme, token = parts[0], parts[1].strip()
    if scheme.lower() != "bearer":
        raise _unauthorized(InvalidToken.message)
    return token


def get_current_user(
    request: Request,
    authorization: Optional[str] = Header(default=None),
) -> Dict[str, Any]:
    """Authenticate a request from its bearer token and load the user row."""
    state = request.app.state
    token = bearer_token(authorization)

    try:
        claims = state.tokens.validate(token)
    except InvalidToken as e:
        raise _unauthorized(e.message)

    user = state.store.get_user_by_id(claims.user_id)
    if user is None:
        # Token is fine, the account is gone.
        raise ApiError(404, {"success": False, "message": NotFound.message})
    return user
