"""Error taxonomy shared by the auth engine, the adapters and the API.

Each error carries a snake_case ``code`` (stable, machine-readable) and a human
``message`` (what the API shows to the client).
"""

from __future__ import annotations


class EarlyAccessError(Exception):
    code = "error"
    message = "An unexpected error occurred."

    def __init__(self, message: str | None = None):
        if message is not None:
            self.message = message
        super().__init__(self.message)


class ValidationError(EarlyAccessError):
    code = "validation_error"
    message = "Invalid input."


class AlreadyExists(EarlyAccessError):
    """A create request for an email that is already registered."""

    code = "already_exists"
    message = "Email already registered."


class InvalidCredentials(EarlyAccessError):
    # One message for unknown email, OAuth-only account and wrong password.
    code = "invalid_credentials"
    message = "Invalid email or password."


class MissingEmail(EarlyAccessError):
    code = "no_email"
    message = "The identity provider did not return an email address."


class OAuthDenied(EarlyAccessError):
    code = "oauth_denied"
    message = "The identity provider reported an error."


class MissingCode(EarlyAccessError):
    code = "missing_code"
    message = "Authorization code missing."


class InvalidToken(EarlyAccessError):
    code = "token_invalid"
    message = "Invalid or expired token"


class NotFound(EarlyAccessError):
    code = "not_found"
    message = "User not found"


class UpstreamFailure(EarlyAccessError):
    code = "upstream_failure"
    message = "An upstream service is unavailable."
