"""Shared fixtures for the test suite."""

from __future__ import annotations

import shutil
import tempfile
import unittest
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

from early_access.auth.crud import UserStore
from early_access.config import Config, load_config
from early_access.db import init_db

TEST_SECRET = "test-secret"
FRONTEND_URL = "http://localhost:3000"


def make_config(db_path: Path, **overrides: Any) -> Config:
    values: Dict[str, Any] = {
        "DB_DSN": str(db_path),
        "AUTH_JWT_SECRET": TEST_SECRET,
        "AUTH_TOKEN_EXPIRE_MINUTES": 60,
        "FRONTEND_URL": FRONTEND_URL,
        "BACKEND_URL": "http://localhost:3002",
        "GOOGLE_CLIENT_ID": "test-client-id",
        "GOOGLE_CLIENT_SECRET": "test-client-secret",
        "EMAIL_ENABLED": False,
        "CORS_ALLOW_ORIGINS": "",
    }
    values.update(overrides)
    return load_config(**values)


class RecordingMailer:
    """Stands in for Mailer; records what would have been sent."""

    def __init__(self) -> None:
        self.welcome: List[Tuple[str, Optional[str]]] = []
        self.confirmations: List[Tuple[str, Optional[str], str, Sequence[str], Optional[str]]] = []

    async def send_welcome(self, email: str, name: Optional[str] = None) -> bool:
        self.welcome.append((email, name))
        return True

    async def send_contribution_confirmation(
        self,
        email: str,
        name: Optional[str],
        text: str,
        languages: Sequence[str],
        context: Optional[str] = None,
    ) -> bool:
        self.confirmations.append((email, name, text, list(languages), context))
        return True


class TempDBTestCase(unittest.TestCase):
    """Gives each test a fresh SQLite database and a UserStore on it."""

    def setUp(self) -> None:
        self.temp_dir = tempfile.mkdtemp()
        self.db_path = Path(self.temp_dir) / "test_early_access.sqlite"
        self.cfg = make_config(self.db_path)
        init_db(self.cfg.DB_DSN)
        self.store = UserStore(self.cfg.DB_DSN)

    def tearDown(self) -> None:
        shutil.rmtree(self.temp_dir, ignore_errors=True)
