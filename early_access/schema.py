"""Database schema for the Early Access Backend.

SQLite is the default store; Postgres is supported as well.

Timestamps are ISO-8601 TEXT (UTC, with 'Z') for portability across engines.
Booleans are INTEGER 0/1 on both engines so rows read back the same way.

NOTE: The Postgres schema is generated from the SQLite schema with a small set of
transformations (types + autoincrement).
"""

from __future__ import annotations

import re


SCHEMA_SQLITE = r"""
PRAGMA foreign_keys = ON;

-- Users / Auth
-- `email` is the identity key. Uniqueness is enforced here, not in application code,
-- so concurrent signups for the same address resolve to a single row.
-- `password_hash` is NULL for accounts created through OAuth.
CREATE TABLE IF NOT EXISTS users (
    id TEXT PRIMARY KEY,
    email TEXT NOT NULL UNIQUE,
    password_hash TEXT,
    name TEXT,
    display_name TEXT,
    profile_image TEXT,
    tier TEXT NOT NULL DEFAULT 'RESEARCHER' CHECK (tier IN ('COMMUNITY','RESEARCHER')),
    auth_provider TEXT NOT NULL DEFAULT 'LOCAL' CHECK (auth_provider IN ('LOCAL','GOOGLE')),
    provider_user_id TEXT,
    email_verified INTEGER NOT NULL DEFAULT 0,
    email_opt_in INTEGER NOT NULL DEFAULT 1,
    last_login_at TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_users_provider ON users (auth_provider, provider_user_id);

-- Contributions (free-text examples submitted from the early-access site)
-- languages_json holds a JSON array of language names.
CREATE TABLE IF NOT EXISTS contributions (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    text TEXT NOT NULL,
    languages_json TEXT NOT NULL,
    context TEXT,
    region TEXT,
    platform TEXT,
    age TEXT,
    user_email TEXT,
    user_name TEXT,
    submitted_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_contributions_user_email ON contributions (user_email);
CREATE INDEX IF NOT EXISTS idx_contributions_submitted_at ON contributions (submitted_at);
"""


def _sqlite_to_postgres(ddl: str) -> str:
    # Remove SQLite pragmas
    lines: list[str] = []
    for line in ddl.splitlines():
        if line.strip().upper().startswith("PRAGMA "):
            continue
        lines.append(line)
    out = "\n".join(lines)

    # AUTOINCREMENT primary keys
    out = re.sub(
        r"INTEGER\s+PRIMARY\s+KEY\s+AUTOINCREMENT",
        "BIGSERIAL PRIMARY KEY",
        out,
        flags=re.IGNORECASE,
    )
    out = re.sub(r"\bAUTOINCREMENT\b", "", out, flags=re.IGNORECASE)

    return out


SCHEMA_POSTGRES = _sqlite_to_postgres(SCHEMA_SQLITE)


def get_schema_sql(dialect: str) -> str:
    d = (dialect or "").lower()
    if d.startswith("post"):
        return SCHEMA_POSTGRES
    return SCHEMA_SQLITE
