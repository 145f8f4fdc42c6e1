"""Identity reconciliation.

Turns an inbound identity assertion (local signup, local login, or a verified
OAuth profile) into a create / update / reject decision on the user store.

Tier policy
-----------
`detect_tier(email)` is the tier *hint* for an identity. It is pluggable via
`IdentityReconciler(tier_policy=...)` and is used for the COMMUNITY -> RESEARCHER
upgrade of existing users.

New accounts ignore the hint: during early access every new account gets
`EARLY_ACCESS_TIER`. Drop that override when early access ends and new accounts
should take the hint instead.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from early_access.errors import AlreadyExists, InvalidCredentials, MissingEmail, ValidationError
from early_access.util.time import utcnow_iso

from .crud import PROVIDER_LOCAL, PROVIDERS, TIER_COMMUNITY, TIER_RESEARCHER, UserStore
from .security import MIN_PASSWORD_LENGTH, TokenService, dummy_verify, hash_password, verify_password


EARLY_ACCESS_TIER = TIER_RESEARCHER


def _debug(msg: str) -> None:
    print(f"[auth] {msg}")


def detect_tier(email: str) -> str:
    """Tier hint for an identity.

    Early access: everyone qualifies for RESEARCHER. The full product may look
    at the email (e.g. academic domains) here.
    """
    return TIER_RESEARCHER


@dataclass(frozen=True)
class SignupResult:
    """Outcome of a local signup.

    ``already_exists`` is True when the email was registered before; that is an
    idempotent duplicate, not an error, and ``user`` is None.
    """

    already_exists: bool
    user: Optional[Dict[str, Any]] = None


@dataclass(frozen=True)
class LoginResult:
    user: Dict[str, Any]
    token: str


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() == "true"
    return bool(value)


class IdentityReconciler:
    def __init__(
        self,
        store: UserStore,
        tokens: TokenService,
        *,
        notify_welcome: Optional[Callable[[Dict[str, Any]], None]] = None,
        tier_policy: Callable[[str], str] = detect_tier,
    ):
        self.store = store
        self.tokens = tokens
        self.notify_welcome = notify_welcome
        self.tier_policy = tier_policy

    # -----------------------------
    # Local accounts
    # -----------------------------

    def reconcile_local_signup(
        self,
        email: str,
        raw_password: str,
        name: str | None = None,
        email_opt_in: bool | None = None,
    ) -> SignupResult:
        email = (email or "").strip()
        raw_password = raw_password or ""
        if not email or len(raw_password) < MIN_PASSWORD_LENGTH:
            raise ValidationError(
                f"Valid email and a password of at least {MIN_PASSWORD_LENGTH} characters are required."
            )

        try:
            user = self.store.create_user(
                email=email,
                password_hash=hash_password(raw_password),
                name=name,
                tier=EARLY_ACCESS_TIER,
                auth_provider=PROVIDER_LOCAL,
                # Opt-in unless the client explicitly said no.
                email_opt_in=email_opt_in is not False,
            )
        except AlreadyExists:
            _debug("signup for an already registered email")
            return SignupResult(already_exists=True)

        return SignupResult(already_exists=False, user={"id": user["id"], "email": user["email"]})

    def reconcile_local_login(self, email: str, raw_password: str) -> LoginResult:
        email = (email or "").strip()
        if not email or not raw_password:
            raise ValidationError("Email and password are required.")

        user = self.store.get_user_by_email(email)
        if user is None or not user.get("password_hash"):
            # Unknown email and OAuth-only accounts look exactly like a wrong password.
            dummy_verify()
            raise InvalidCredentials()

        if not verify_password(raw_password, user["password_hash"]):
            raise InvalidCredentials()

        user = self.store.touch_last_login(user["id"]) or user
        token = self.tokens.issue(user["id"], user["tier"])
        return LoginResult(user=user, token=token)

    # -----------------------------
    # OAuth
    # -----------------------------

    def reconcile_oauth_profile(self, provider: str, profile: Dict[str, Any]) -> Dict[str, Any]:
        """Create or update the user behind a verified OAuth profile.

        Returns the reconciled user row; the caller issues the token.
        """
        if provider not in PROVIDERS or provider == PROVIDER_LOCAL:
            raise ValueError(f"unsupported_provider: {provider}")

        email = str(profile.get("email") or "").strip()
        if not email:
            raise MissingEmail()

        hint = self.tier_policy(email)

        existing = self.store.get_user_by_email(email)
        if existing is not None:
            return self._update_oauth_user(existing, provider, profile, hint)

        display = profile.get("name") or email
        try:
            user = self.store.create_user(
                email=email,
                name=display,
                display_name=display,
                profile_image=profile.get("picture"),
                tier=EARLY_ACCESS_TIER,
                auth_provider=provider,
                provider_user_id=profile.get("sub"),
                email_verified=_as_bool(profile.get("email_verified")),
                last_login_at=utcnow_iso(),
            )
        except AlreadyExists:
            # Lost a race with a concurrent first login for the same email.
            existing = self.store.get_user_by_email(email)
            if existing is None:
                raise
            return self._update_oauth_user(existing, provider, profile, hint)

        self._send_welcome(user)
        return user

    def _update_oauth_user(
        self,
        user: Dict[str, Any],
        provider: str,
        profile: Dict[str, Any],
        hint: str,
    ) -> Dict[str, Any]:
        changes: Dict[str, Any] = {
            "auth_provider": provider,
            "provider_user_id": profile.get("sub"),
            "email_verified": _as_bool(profile.get("email_verified")),
            "last_login_at": utcnow_iso(),
        }
        # Upgrade only; a RESEARCHER is never downgraded here.
        if hint == TIER_RESEARCHER and user.get("tier") == TIER_COMMUNITY:
            changes["tier"] = TIER_RESEARCHER

        updated = self.store.update_user(user["id"], **changes)
        return updated if updated is not None else {**user, **changes}

    def _send_welcome(self, user: Dict[str, Any]) -> None:
        if self.notify_welcome is None:
            return
        try:
            self.notify_welcome(user)
        except Exception as e:
            _debug(f"welcome notification failed for user_id={user.get('id')}: {e}")
