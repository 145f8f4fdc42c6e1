from __future__ import annotations

import uuid
from typing import Any, Dict, Optional

from early_access.db import connect
from early_access.errors import AlreadyExists
from early_access.util.time import utcnow_iso


TIER_COMMUNITY = "COMMUNITY"
TIER_RESEARCHER = "RESEARCHER"
TIERS = (TIER_COMMUNITY, TIER_RESEARCHER)

PROVIDER_LOCAL = "LOCAL"
PROVIDER_GOOGLE = "GOOGLE"
PROVIDERS = (PROVIDER_LOCAL, PROVIDER_GOOGLE)

_BOOL_COLUMNS = ("email_verified", "email_opt_in")

# Columns update_user() may touch. id, email and created_at are immutable.
_MUTABLE_COLUMNS = (
    "password_hash",
    "name",
    "display_name",
    "profile_image",
    "tier",
    "auth_provider",
    "provider_user_id",
    "email_verified",
    "email_opt_in",
    "last_login_at",
)


def _row_to_user(row: Any) -> Optional[Dict[str, Any]]:
    if row is None:
        return None
    d = dict(row)
    for col in _BOOL_COLUMNS:
        if col in d:
            d[col] = bool(d[col])
    return d


def _db_value(col: str, value: Any) -> Any:
    if col in _BOOL_COLUMNS:
        return 1 if value else 0
    return value


def public_user(user: Dict[str, Any]) -> Dict[str, Any]:
    """What the API may show about a user. Never includes the password hash."""
    return {
        "id": user.get("id"),
        "email": user.get("email"),
        "name": user.get("name"),
        "displayName": user.get("display_name"),
        "profileImage": user.get("profile_image"),
        "tier": user.get("tier"),
        "authProvider": user.get("auth_provider"),
        "emailVerified": bool(user.get("email_verified")),
        "createdAt": user.get("created_at"),
    }


class UserStore:
    """User persistence on top of `early_access.db.connect`.

    Each call runs in its own short transaction. Email uniqueness is enforced
    by the database; a conflicting insert surfaces as `AlreadyExists`.
    """

    def __init__(self, db_dsn: str):
        self.db_dsn = db_dsn

    def create_user(
        self,
        *,
        email: str,
        password_hash: str | None = None,
        name: str | None = None,
        display_name: str | None = None,
        profile_image: str | None = None,
        tier: str = TIER_RESEARCHER,
        auth_provider: str = PROVIDER_LOCAL,
        provider_user_id: str | None = None,
        email_verified: bool = False,
        email_opt_in: bool = True,
        last_login_at: str | None = None,
    ) -> Dict[str, Any]:
        if not email:
            raise ValueError("email_blank")
        if tier not in TIERS:
            raise ValueError("invalid_tier")
        if auth_provider not in PROVIDERS:
            raise ValueError("invalid_auth_provider")

        user_id = str(uuid.uuid4())
        now = utcnow_iso()
        with connect(self.db_dsn) as conn:
            # ON CONFLICT works the same on SQLite and Postgres, so we don't depend on
            # engine-specific IntegrityError classes.
            inserted = conn.execute(
                """
                INSERT INTO users (
                    id, email, password_hash, name, display_name, profile_image,
                    tier, auth_provider, provider_user_id, email_verified, email_opt_in,
                    last_login_at, created_at, updated_at
                )
                VALUES (?,?,?,?,?,?,?,?,?,?,?,?,?,?)
                ON CONFLICT(email) DO NOTHING
                RETURNING id
                """,
                (
                    user_id,
                    email,
                    password_hash,
                    name,
                    display_name,
                    profile_image,
                    tier,
                    auth_provider,
                    provider_user_id,
                    1 if email_verified else 0,
                    1 if email_opt_in else 0,
                    last_login_at,
                    now,
                    now,
                ),
            ).fetchone()
            if inserted is None:
                raise AlreadyExists()

            row = conn.execute("SELECT * FROM users WHERE id=?", (user_id,)).fetchone()
        user = _row_to_user(row)
        assert user is not None
        return user

    def get_user_by_email(self, email: str) -> Optional[Dict[str, Any]]:
        if not email:
            return None
        with connect(self.db_dsn) as conn:
            row = conn.execute("SELECT * FROM users WHERE email=?", (email,)).fetchone()
        return _row_to_user(row)

    def get_user_by_id(self, user_id: str) -> Optional[Dict[str, Any]]:
        if not user_id:
            return None
        with connect(self.db_dsn) as conn:
            row = conn.execute("SELECT * FROM users WHERE id=?", (str(user_id),)).fetchone()
        return _row_to_user(row)

    def update_user(self, user_id: str, **changes: Any) -> Optional[Dict[str, Any]]:
        """Apply `changes` and return the updated row (None if the user is gone)."""
        unknown = set(changes) - set(_MUTABLE_COLUMNS)
        if unknown:
            raise ValueError(f"immutable_or_unknown_columns: {sorted(unknown)}")
        if "tier" in changes and changes["tier"] not in TIERS:
            raise ValueError("invalid_tier")
        if "auth_provider" in changes and changes["auth_provider"] not in PROVIDERS:
            raise ValueError("invalid_auth_provider")

        fields = [(k, _db_value(k, v)) for k, v in changes.items()]
        fields.append(("updated_at", utcnow_iso()))

        sets = ", ".join([f"{k}=?" for k, _ in fields])
        params = [v for _, v in fields] + [str(user_id)]
        with connect(self.db_dsn) as conn:
            conn.execute(f"UPDATE users SET {sets} WHERE id=?", params)
            row = conn.execute("SELECT * FROM users WHERE id=?", (str(user_id),)).fetchone()
        return _row_to_user(row)

    def touch_last_login(self, user_id: str) -> Optional[Dict[str, Any]]:
        return self.update_user(user_id, last_login_at=utcnow_iso())

    def delete_user(self, user_id: str) -> bool:
        """Remove a user. Maintenance / test cleanup only; the auth flows never delete."""
        with connect(self.db_dsn) as conn:
            cur = conn.execute("DELETE FROM users WHERE id=?", (str(user_id),))
            return int(cur.rowcount or 0) > 0
