"""Create a local (email + password) user.

Usage:
  python scripts/create_user.py --email alice@example.com --password '...' --tier COMMUNITY

NOTE: This is intended for local/dev, e.g. seeding a COMMUNITY account to try the
tier upgrade on Google sign-in. Public signups always get RESEARCHER.
"""

import argparse
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

from early_access.auth.crud import TIERS, TIER_RESEARCHER, UserStore, public_user
from early_access.auth.security import MIN_PASSWORD_LENGTH, hash_password
from early_access.config import load_config
from early_access.db import init_db
from early_access.errors import AlreadyExists


def main() -> None:
    ap = argparse.ArgumentParser()
    ap.add_argument("--email", required=True)
    ap.add_argument("--password", required=True)
    ap.add_argument("--name", default=None)
    ap.add_argument("--tier", choices=list(TIERS), default=TIER_RESEARCHER)
    args = ap.parse_args()

    if len(args.password) < MIN_PASSWORD_LENGTH:
        ap.error(f"password must be at least {MIN_PASSWORD_LENGTH} characters")

    cfg = load_config()
    init_db(cfg.DB_DSN)

    store = UserStore(cfg.DB_DSN)
    try:
        u = store.create_user(
            email=args.email.strip(),
            password_hash=hash_password(args.password),
            name=args.name,
            tier=args.tier,
        )
    except AlreadyExists:
        print(f"User already exists: {args.email}")
        sys.exit(1)

    print("Created user:")
    print(public_user(u))


if __name__ == "__main__":
    main()
