"""Tests for the HTTP surface: signup, login, Google OAuth and whoami."""

from __future__ import annotations

import time
import unittest
from unittest.mock import Mock, patch

import jwt
from fastapi.testclient import TestClient

from early_access.api.server import create_app
from early_access.auth.security import hash_password
from early_access.errors import UpstreamFailure
from early_access.notify.mailer import Mailer
from tests.support import FRONTEND_URL, TEST_SECRET, RecordingMailer, TempDBTestCase, make_config


GOOGLE_PROFILE = {
    "email": "test@example.com",
    "sub": "google_user_id_123",
    "email_verified": True,
    "name": "Test User",
    "picture": "http://example.com/pic.jpg",
}


class APITestCase(TempDBTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.oauth = Mock()
        self.oauth.authorization_url.return_value = "http://google.auth/url"
        self.oauth.exchange_code.return_value = dict(GOOGLE_PROFILE)
        self.mailer = RecordingMailer()
        self.store = Mock(wraps=self.store)
        self.app = create_app(self.cfg, store=self.store, oauth=self.oauth, mailer=self.mailer)
        self.client = TestClient(self.app)

    def signup(self, email: str = "a@x.com", password: str = "secret1", **extra):
        return self.client.post("/signup", json={"email": email, "password": password, **extra})

    def login(self, email: str = "a@x.com", password: str = "secret1"):
        return self.client.post("/api/auth/login", json={"email": email, "password": password})


class HealthTestCase(APITestCase):
    def test_health_and_ping(self) -> None:
        self.assertEqual(self.client.get("/health").json(), {"status": "ok"})
        body = self.client.get("/api/ping").json()
        self.assertTrue(body["success"])
        self.assertIn("timestamp", body)


class SignupRouteTestCase(APITestCase):
    def test_signup_creates_user(self) -> None:
        res = self.signup(name="A")

        self.assertEqual(res.status_code, 201)
        body = res.json()
        self.assertEqual(body["message"], "Sign-up successful!")
        self.assertEqual(body["user"]["email"], "a@x.com")
        self.assertTrue(body["user"]["id"])
        self.assertEqual(set(body["user"]), {"id", "email"})

    def test_duplicate_signup_is_success_shaped(self) -> None:
        self.signup()
        res = self.signup(password="another1")

        self.assertEqual(res.status_code, 200)
        self.assertEqual(res.json(), {"message": "Email already registered.", "alreadyExists": True})

    def test_short_password_is_rejected(self) -> None:
        res = self.signup(password="12345")
        self.assertEqual(res.status_code, 400)
        self.assertIn("at least 6 characters", res.json()["message"])
        self.store.create_user.assert_not_called()

    def test_missing_email_is_rejected(self) -> None:
        res = self.client.post("/signup", json={"password": "secret1"})
        self.assertEqual(res.status_code, 400)

    def test_email_opt_in_false_is_stored(self) -> None:
        self.signup(emailOptIn=False)
        self.assertFalse(self.store.get_user_by_email("a@x.com")["email_opt_in"])

    def test_store_failure_is_generic_server_error(self) -> None:
        self.store.create_user.side_effect = RuntimeError("database is locked")
        res = self.signup()
        self.assertEqual(res.status_code, 500)
        self.assertEqual(res.json(), {"message": "An error occurred during sign-up."})


class LoginRouteTestCase(APITestCase):
    def setUp(self) -> None:
        super().setUp()
        self.signup()

    def test_login_returns_user_and_token(self) -> None:
        res = self.login()

        self.assertEqual(res.status_code, 200)
        body = res.json()
        self.assertTrue(body["success"])
        self.assertEqual(body["data"]["user"]["email"], "a@x.com")
        self.assertEqual(body["data"]["user"]["tier"], "RESEARCHER")
        self.assertNotIn("password_hash", body["data"]["user"])

        claims = self.app.state.tokens.validate(body["data"]["token"])
        self.assertEqual(claims.user_id, body["data"]["user"]["id"])
        self.assertEqual(claims.tier, "RESEARCHER")
        self.assertIsNotNone(self.store.get_user_by_email("a@x.com")["last_login_at"])

    def test_wrong_password_and_unknown_email_are_indistinguishable(self) -> None:
        wrong_password = self.login(password="wrong")
        unknown_email = self.login(email="nobody@x.com")

        self.assertEqual(wrong_password.status_code, 401)
        self.assertEqual(unknown_email.status_code, 401)
        self.assertEqual(wrong_password.content, unknown_email.content)
        self.assertEqual(wrong_password.json(), {"success": False, "message": "Invalid email or password."})

    def test_missing_fields(self) -> None:
        res = self.client.post("/api/auth/login", json={"email": "a@x.com"})
        self.assertEqual(res.status_code, 400)
        self.assertEqual(res.json(), {"success": False, "message": "Email and password are required."})


class OAuthRouteTestCase(APITestCase):
    def callback(self, query: str = ""):
        return self.client.get(f"/api/oauth/google/callback{query}", follow_redirects=False)

    def test_start_redirects_to_provider(self) -> None:
        res = self.client.get("/api/oauth/google", follow_redirects=False)
        self.assertEqual(res.status_code, 302)
        self.assertEqual(res.headers["location"], "http://google.auth/url")

    def test_start_reports_setup_error(self) -> None:
        self.oauth.authorization_url.side_effect = RuntimeError("google_client_id_missing")
        res = self.client.get("/api/oauth/google", follow_redirects=False)
        self.assertEqual(res.status_code, 500)
        self.assertEqual(res.json(), {"message": "Google OAuth setup error."})

    def test_provider_error_redirects_without_store_writes(self) -> None:
        res = self.callback("?error=access_denied")

        self.assertEqual(res.status_code, 302)
        self.assertEqual(res.headers["location"], f"{FRONTEND_URL}/?error=oauth_denied")
        self.oauth.exchange_code.assert_not_called()
        self.store.create_user.assert_not_called()
        self.store.update_user.assert_not_called()

    def test_missing_code(self) -> None:
        res = self.callback()
        self.assertEqual(res.status_code, 302)
        self.assertEqual(res.headers["location"], f"{FRONTEND_URL}/?error=missing_code")

    def test_missing_email_in_profile(self) -> None:
        self.oauth.exchange_code.return_value = {"sub": "x", "email_verified": False}
        res = self.callback("?code=some_code")
        self.assertEqual(res.headers["location"], f"{FRONTEND_URL}/?error=no_email")
        self.store.create_user.assert_not_called()

    def test_exchange_failure_is_server_error_redirect(self) -> None:
        self.oauth.exchange_code.side_effect = UpstreamFailure("Google token error 500")
        res = self.callback("?code=some_code")
        self.assertEqual(res.status_code, 302)
        self.assertEqual(res.headers["location"], f"{FRONTEND_URL}/?error=oauth_server_error")

    def test_new_user_is_created_and_welcomed(self) -> None:
        res = self.callback("?code=some_code")

        self.assertEqual(res.status_code, 302)
        location = res.headers["location"]
        self.assertTrue(location.startswith(f"{FRONTEND_URL}/?token="))
        self.assertTrue(location.endswith("&tier=RESEARCHER"))
        self.oauth.exchange_code.assert_called_once_with("some_code")

        user = self.store.get_user_by_email("test@example.com")
        self.assertEqual(user["tier"], "RESEARCHER")
        self.assertEqual(user["auth_provider"], "GOOGLE")
        self.assertEqual(self.mailer.welcome, [("test@example.com", "Test User")])

        token = location.split("token=", 1)[1].split("&", 1)[0]
        claims = self.app.state.tokens.validate(token)
        self.assertEqual(claims.user_id, user["id"])

    def test_existing_community_user_is_upgraded_and_not_welcomed(self) -> None:
        self.store.create_user(email="test@example.com", password_hash=hash_password("secret1"), tier="COMMUNITY")

        res = self.callback("?code=some_code")

        self.assertTrue(res.headers["location"].endswith("&tier=RESEARCHER"))
        self.assertEqual(self.store.get_user_by_email("test@example.com")["tier"], "RESEARCHER")
        self.assertEqual(self.mailer.welcome, [])

    def test_welcome_email_failure_does_not_change_redirect(self) -> None:
        cfg = make_config(self.db_path, EMAIL_ENABLED=True, EMAIL_HOST="smtp.invalid")
        app = create_app(cfg, oauth=self.oauth, mailer=Mailer(cfg))
        client = TestClient(app)

        with patch.object(Mailer, "send", side_effect=OSError("connection refused")) as send:
            res = client.get("/api/oauth/google/callback?code=some_code", follow_redirects=False)

        send.assert_called_once()
        self.assertEqual(res.status_code, 302)
        self.assertIn("token=", res.headers["location"])
        self.assertIsNotNone(app.state.store.get_user_by_email("test@example.com"))


class WhoamiRouteTestCase(APITestCase):
    def whoami(self, authorization: str | None = None):
        headers = {"Authorization": authorization} if authorization is not None else {}
        return self.client.get("/api/oauth/user", headers=headers)

    def test_missing_header(self) -> None:
        res = self.whoami()
        self.assertEqual(res.status_code, 401)
        self.assertEqual(res.json(), {"success": False, "message": "Authorization header missing"})

    def test_missing_token(self) -> None:
        res = self.whoami("Bearer")
        self.assertEqual(res.status_code, 401)
        self.assertEqual(res.json()["message"], "Token missing")

    def test_invalid_token(self) -> None:
        res = self.whoami("Bearer invalid_token")
        self.assertEqual(res.status_code, 401)
        self.assertEqual(res.json(), {"success": False, "message": "Invalid or expired token"})

    def test_expired_token(self) -> None:
        now = int(time.time())
        token = jwt.encode({"sub": "u", "tier": "RESEARCHER", "exp": now - 10}, TEST_SECRET, algorithm="HS256")
        res = self.whoami(f"Bearer {token}")
        self.assertEqual(res.status_code, 401)
        self.assertEqual(res.json()["message"], "Invalid or expired token")

    def test_missing_header_and_invalid_token_are_distinguishable(self) -> None:
        self.assertNotEqual(self.whoami().json()["message"], self.whoami("Bearer nope").json()["message"])

    def test_deleted_user(self) -> None:
        token = self.app.state.tokens.issue("gone-user-id", "RESEARCHER")
        res = self.whoami(f"Bearer {token}")
        self.assertEqual(res.status_code, 404)
        self.assertEqual(res.json(), {"success": False, "message": "User not found"})

    def test_valid_token_returns_public_user(self) -> None:
        self.signup()
        token = self.login().json()["data"]["token"]

        res = self.whoami(f"Bearer {token}")

        self.assertEqual(res.status_code, 200)
        body = res.json()
        self.assertTrue(body["success"])
        self.assertEqual(body["data"]["email"], "a@x.com")
        self.assertEqual(body["data"]["tier"], "RESEARCHER")
        self.assertNotIn("password_hash", body["data"])
        self.assertNotIn("passwordHash", body["data"])


class EndToEndScenarioTestCase(APITestCase):
    def test_signup_login_whoami(self) -> None:
        first = self.signup("a@x.com", "secret1")
        self.assertEqual(first.status_code, 201)
        self.assertEqual(first.json()["user"]["email"], "a@x.com")

        again = self.signup("a@x.com", "secret1")
        self.assertEqual(again.status_code, 200)
        self.assertTrue(again.json()["alreadyExists"])

        bad = self.login("a@x.com", "wrong")
        self.assertEqual(bad.status_code, 401)
        self.assertEqual(bad.json()["message"], "Invalid email or password.")

        good = self.login("a@x.com", "secret1")
        self.assertEqual(good.status_code, 200)
        token = good.json()["data"]["token"]

        me = self.client.get("/api/oauth/user", headers={"Authorization": f"Bearer {token}"})
        self.assertEqual(me.status_code, 200)
        self.assertEqual(me.json()["data"]["email"], "a@x.com")


if __name__ == "__main__":
    unittest.main()
