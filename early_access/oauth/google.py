"""Google OAuth 2.0 (authorization code flow).

- `authorization_url()` builds the consent-screen URL the browser is redirected to.
- `exchange_code(code)` trades the callback code for tokens at Google's token
  endpoint and returns the claims of the verified ID token (the "profile":
  sub, email, email_verified, name, picture, ...).

ID tokens are verified locally against Google's published signing keys.
"""

from __future__ import annotations

from typing import Any, Dict, Optional
from urllib.parse import urlencode

import jwt
import requests

from early_access.errors import UpstreamFailure


GOOGLE_AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
GOOGLE_CERTS_URL = "https://www.googleapis.com/oauth2/v3/certs"
GOOGLE_ISSUERS = ("https://accounts.google.com", "accounts.google.com")

SCOPES = ("openid", "email", "profile")


def _debug(msg: str) -> None:
    print(f"[oauth] {msg}")


class GoogleOAuthClient:
    def __init__(
        self,
        client_id: str,
        client_secret: str,
        redirect_uri: str,
        *,
        timeout: float = 30,
        jwks_client: Optional[jwt.PyJWKClient] = None,
    ):
        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_uri = redirect_uri
        self.timeout = timeout
        self._jwks_client = jwks_client

    @property
    def jwks_client(self) -> jwt.PyJWKClient:
        # Created lazily; PyJWKClient caches the fetched keys.
        if self._jwks_client is None:
            self._jwks_client = jwt.PyJWKClient(GOOGLE_CERTS_URL)
        return self._jwks_client

    def authorization_url(self) -> str:
        if not self.client_id:
            raise RuntimeError("google_client_id_missing")
        params = {
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "response_type": "code",
            "scope": " ".join(SCOPES),
            "access_type": "offline",
            "prompt": "consent",
        }
        return f"{GOOGLE_AUTH_URL}?{urlencode(params)}"

    def exchange_code(self, code: str) -> Dict[str, Any]:
        """Exchange an authorization code and return the verified profile claims."""
        if not code:
            raise ValueError("code_blank")
        if not self.client_id or not self.client_secret:
            raise RuntimeError("google_oauth_not_configured")

        data = {
            "code": code,
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "redirect_uri": self.redirect_uri,
            "grant_type": "authorization_code",
        }
        _debug("Exchanging authorization code")
        try:
            r = requests.post(GOOGLE_TOKEN_URL, data=data, timeout=self.timeout)
        except requests.RequestException as e:
            raise UpstreamFailure(f"Google token request failed: {e}") from e
        if r.status_code != 200:
            raise UpstreamFailure(f"Google token error {r.status_code}: {r.text}")

        tokens = r.json() if r.text else {}
        id_token = tokens.get("id_token") if isinstance(tokens, dict) else None
        if not id_token:
            raise UpstreamFailure("Google token response has no id_token")

        return self.verify_id_token(id_token)

    def verify_id_token(self, id_token: str) -> Dict[str, Any]:
        try:
            signing_key = self.jwks_client.get_signing_key_from_jwt(id_token)
            claims = jwt.decode(
                id_token,
                signing_key.key,
                algorithms=["RS256"],
                audience=self.client_id,
            )
        except jwt.PyJWTError as e:
            raise UpstreamFailure(f"Google ID token rejected: {e}") from e

        if claims.get("iss") not in GOOGLE_ISSUERS:
            raise UpstreamFailure(f"Google ID token has unexpected issuer: {claims.get('iss')}")
        return claims
