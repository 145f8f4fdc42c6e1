from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Dict

import jwt
from passlib.context import CryptContext

from early_access.errors import InvalidToken
from early_access.util.time import utcnow


# Salted, fixed-cost hash. Only the hash is ever stored.
_pwd = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")
_JWT_ALG = "HS256"

MIN_PASSWORD_LENGTH = 6


def hash_password(password: str) -> str:
    if not password:
        raise ValueError("password_blank")
    return _pwd.hash(password)


def verify_password(password: str, password_hash: str | None) -> bool:
    if not password or not password_hash:
        return False
    try:
        return _pwd.verify(password, password_hash)
    except ValueError:
        # Unrecognized / malformed hash
        return False


def dummy_verify() -> None:
    """Spend the same time as a real verify when there is no hash to check."""
    _pwd.dummy_verify()


@dataclass(frozen=True)
class TokenClaims:
    user_id: str
    tier: str


def create_access_token(*, secret: str, user_id: str, tier: str, expires_minutes: int) -> str:
    if not secret:
        raise ValueError("jwt_secret_blank")

    now = utcnow()
    exp = now + timedelta(minutes=max(1, int(expires_minutes)))

    payload: Dict[str, Any] = {
        "sub": str(user_id),
        "tier": tier,
        "iat": int(now.timestamp()),
        "exp": int(exp.timestamp()),
    }
    return jwt.encode(payload, secret, algorithm=_JWT_ALG)


def decode_access_token(*, token: str, secret: str) -> Dict[str, Any]:
    if not token:
        raise ValueError("token_blank")
    if not secret:
        raise ValueError("jwt_secret_blank")
    return jwt.decode(token, secret, algorithms=[_JWT_ALG], options={"require": ["sub", "exp"]})


class TokenService:
    """Issues and validates stateless session tokens.

    Tokens are HS256 JWTs carrying the user id (``sub``) and tier. Validation
    needs no store lookup; the secret is fixed for the life of the process.
    """

    def __init__(self, secret: str, expires_minutes: int = 60):
        if not secret:
            raise ValueError("jwt_secret_blank")
        self._secret = secret
        self.expires_minutes = int(expires_minutes)

    def issue(self, user_id: str, tier: str) -> str:
        return create_access_token(
            secret=self._secret,
            user_id=user_id,
            tier=tier,
            expires_minutes=self.expires_minutes,
        )

    def validate(self, token: str) -> TokenClaims:
        try:
            payload = decode_access_token(token=token, secret=self._secret)
        except (jwt.InvalidTokenError, ValueError) as e:
            # ExpiredSignatureError and DecodeError are both InvalidTokenError.
            raise InvalidToken() from e

        user_id = str(payload.get("sub") or "")
        tier = str(payload.get("tier") or "")
        if not user_id or not tier:
            raise InvalidToken()
        return TokenClaims(user_id=user_id, tier=tier)
