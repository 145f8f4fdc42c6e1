import os
from dataclasses import dataclass, field
from typing import List, Optional

# Optional: load a local .env file if present.
try:
    from dotenv import load_dotenv

    load_dotenv()
except Exception:
    # If python-dotenv isn't installed or .env isn't present, that's fine.
    pass


def _env_bool(name: str, default: Optional[bool] = None) -> Optional[bool]:
    """Parse a boolean environment variable.

    Returns:
      - True/False if the env var is set to a recognizable value
      - default if unset or unrecognized

    Accepted truthy: 1, true, yes, y, on
    Accepted falsy:  0, false, no, n, off
    """

    raw = os.environ.get(name)
    if raw is None:
        return default
    v = raw.strip().lower()
    if v in ("1", "true", "yes", "y", "on"):
        return True
    if v in ("0", "false", "no", "n", "off"):
        return False
    return default


def _env(name: str, default: str = "") -> str:
    return os.environ.get(name, default)


@dataclass(frozen=True)
class Config:
    """Runtime configuration.

    Values are read from the environment when the instance is created, so tests
    can build a Config with explicit overrides instead of patching os.environ.

    IMPORTANT: Provide secrets via environment variables or a .env file.
    Do not hardcode secrets in source code.
    """

    # -----------------
    # Core
    # -----------------
    # Preferred: set DATABASE_URL to use Postgres.
    # Fallback: EARLY_ACCESS_DB_PATH for SQLite.
    DB_DSN: str = field(
        default_factory=lambda: (
            os.environ.get("EARLY_ACCESS_DATABASE_URL")
            or os.environ.get("DATABASE_URL")
            or os.environ.get("EARLY_ACCESS_DB_PATH", "./early_access.sqlite")
        )
    )

    # -----------------
    # Auth (JWT)
    # -----------------
    # NOTE: In dev, this defaults to a fixed string so you can get started.
    # In production, you MUST set AUTH_JWT_SECRET to a strong random value.
    # Changing it invalidates every token issued so far.
    AUTH_JWT_SECRET: str = field(default_factory=lambda: _env("AUTH_JWT_SECRET", "dev_change_me"))
    AUTH_TOKEN_EXPIRE_MINUTES: int = field(
        default_factory=lambda: int(_env("AUTH_TOKEN_EXPIRE_MINUTES", "60"))
    )

    # -----------------
    # Google OAuth
    # -----------------
    GOOGLE_CLIENT_ID: str = field(default_factory=lambda: _env("GOOGLE_CLIENT_ID"))
    GOOGLE_CLIENT_SECRET: str = field(default_factory=lambda: _env("GOOGLE_CLIENT_SECRET"))

    # The backend's public URL; the OAuth redirect URI is derived from it.
    BACKEND_URL: str = field(default_factory=lambda: _env("BACKEND_URL", "http://localhost:3002"))
    # Where the browser lands after the OAuth callback (token/tier or error in the query).
    FRONTEND_URL: str = field(default_factory=lambda: _env("FRONTEND_URL", "http://localhost:3000"))

    # -----------------
    # Email (SMTP)
    # -----------------
    # Set EMAIL_ENABLED=0 to skip delivery entirely (the messages are logged instead).
    EMAIL_ENABLED: bool = field(default_factory=lambda: _env_bool("EMAIL_ENABLED", True) is True)
    EMAIL_HOST: str = field(default_factory=lambda: _env("EMAIL_HOST"))
    EMAIL_PORT: int = field(default_factory=lambda: int(_env("EMAIL_PORT", "587")))
    EMAIL_USER: str = field(default_factory=lambda: _env("EMAIL_USER"))
    EMAIL_PASS: str = field(default_factory=lambda: _env("EMAIL_PASS"))
    # Defaults to EMAIL_USER when blank.
    EMAIL_FROM: str = field(default_factory=lambda: _env("EMAIL_FROM"))

    # -----------------
    # CORS
    # -----------------
    CORS_ALLOW_ORIGINS: str = field(
        default_factory=lambda: _env(
            "CORS_ALLOW_ORIGINS",
            "http://localhost:3000,http://127.0.0.1:3000",
        )
    )

    @property
    def oauth_redirect_uri(self) -> str:
        return f"{self.BACKEND_URL.rstrip('/')}/api/oauth/google/callback"

    def cors_origins(self) -> List[str]:
        return [o.strip() for o in (self.CORS_ALLOW_ORIGINS or "").split(",") if o.strip()]


def load_config(**overrides) -> Config:
    return Config(**overrides)
