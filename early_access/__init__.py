"""Early Access Backend.

Signup / sign-in gateway for the early-access phase of the product:

- Email + password signup and login.
- Google OAuth sign-in (redirect flow).
- Signed session tokens carrying the user id and membership tier.
- Free-text contributions submitted from the early-access site.

Every account created during early access is granted the RESEARCHER tier.

"""

__all__ = ["__version__"]

__version__ = "0.1.0"
