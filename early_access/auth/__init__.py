"""Authentication and identity reconciliation.

Accounts come from two places:

- Email + password (local signup / login), hashed with passlib.
- Google OAuth; the verified profile is reconciled onto the user row keyed by email.

Sessions are stateless HS256 JWTs carrying the user id and tier, sent as
`Authorization: Bearer <token>`.
"""

from .crud import UserStore, public_user
from .deps import get_current_user
from .reconcile import IdentityReconciler, LoginResult, SignupResult, detect_tier
from .security import TokenClaims, TokenService

__all__ = [
    "UserStore",
    "public_user",
    "get_current_user",
    "IdentityReconciler",
    "LoginResult",
    "SignupResult",
    "detect_tier",
    "TokenClaims",
    "TokenService",
]
