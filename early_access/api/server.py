from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional
from urllib.parse import urlencode

from fastapi import BackgroundTasks, Depends, FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import RedirectResponse
from pydantic import BaseModel

from early_access import __version__
from early_access.api.errors import ApiError, install_error_handlers
from early_access.auth import IdentityReconciler, TokenService, UserStore, detect_tier, get_current_user, public_user
from early_access.auth.crud import PROVIDER_GOOGLE
from early_access.config import Config, load_config
from early_access.contributions import create_contribution
from early_access.db import connect, init_db
from early_access.errors import InvalidCredentials, MissingCode, MissingEmail, OAuthDenied, ValidationError
from early_access.notify.mailer import Mailer
from early_access.oauth.google import GoogleOAuthClient
from early_access.util.time import utcnow_iso


def _debug(msg: str) -> None:
    print(f"[api] {msg}")


# -----------------------------
# Request models
# -----------------------------
# Fields are optional so missing values reach our own checks and produce the
# documented 400 messages instead of a framework validation error.


class SignupRequest(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None
    name: Optional[str] = None
    emailOptIn: Optional[bool] = None


class LoginRequest(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None


class ContributionRequest(BaseModel):
    text: Optional[str] = None
    languages: Optional[List[str]] = None
    context: Optional[str] = None
    region: Optional[str] = None
    platform: Optional[str] = None
    age: Optional[str] = None
    userEmail: Optional[str] = None
    userName: Optional[str] = None


def get_reconciler(request: Request, background_tasks: BackgroundTasks) -> IdentityReconciler:
    """Per-request engine; welcome emails go out as background tasks after the response."""
    state = request.app.state

    def _welcome(user: Dict[str, Any]) -> None:
        background_tasks.add_task(state.mailer.send_welcome, user["email"], user.get("name"))

    return IdentityReconciler(
        state.store,
        state.tokens,
        notify_welcome=_welcome,
        tier_policy=state.tier_policy,
    )


def create_app(
    cfg: Optional[Config] = None,
    *,
    store: Optional[UserStore] = None,
    tokens: Optional[TokenService] = None,
    oauth: Optional[GoogleOAuthClient] = None,
    mailer: Optional[Mailer] = None,
    tier_policy: Callable[[str], str] = detect_tier,
) -> FastAPI:
    """Build the API. Collaborators default to the ones described by `cfg`."""
    cfg = cfg or load_config()

    app = FastAPI(title="Early Access Backend", version=__version__)
    app.state.cfg = cfg
    app.state.store = store or UserStore(cfg.DB_DSN)
    app.state.tokens = tokens or TokenService(cfg.AUTH_JWT_SECRET, cfg.AUTH_TOKEN_EXPIRE_MINUTES)
    app.state.oauth = oauth or GoogleOAuthClient(
        cfg.GOOGLE_CLIENT_ID,
        cfg.GOOGLE_CLIENT_SECRET,
        cfg.oauth_redirect_uri,
    )
    app.state.mailer = mailer or Mailer(cfg)
    app.state.tier_policy = tier_policy

    install_error_handlers(app)

    cors_origins = cfg.cors_origins()
    if cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=cors_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    @app.on_event("startup")
    def _on_startup() -> None:
        init_db(cfg.DB_DSN)

    # -----------------------------
    # Health
    # -----------------------------

    @app.get("/health")
    def health() -> Dict[str, Any]:
        return {"status": "ok"}

    @app.get("/api/ping")
    def ping() -> Dict[str, Any]:
        return {
            "success": True,
            "message": "Early Access Backend is running",
            "timestamp": utcnow_iso(),
        }

    # -----------------------------
    # Local accounts
    # -----------------------------

    @app.post("/signup", status_code=201)
    def signup(
        payload: SignupRequest,
        response: Response,
        reconciler: IdentityReconciler = Depends(get_reconciler),
    ) -> Dict[str, Any]:
        try:
            result = reconciler.reconcile_local_signup(
                payload.email or "",
                payload.password or "",
                name=payload.name,
                email_opt_in=payload.emailOptIn,
            )
        except ValidationError as e:
            raise ApiError(400, {"message": e.message})
        except Exception as e:
            _debug(f"Error during sign-up: {e!r}")
            raise ApiError(500, {"message": "An error occurred during sign-up."})

        if result.already_exists:
            # Not a client error: the caller already owns this email.
            response.status_code = 200
            return {"message": "Email already registered.", "alreadyExists": True}

        return {"message": "Sign-up successful!", "user": result.user}

    @app.post("/api/auth/login")
    def login(
        payload: LoginRequest,
        reconciler: IdentityReconciler = Depends(get_reconciler),
    ) -> Dict[str, Any]:
        if not payload.email or not payload.password:
            raise ApiError(400, {"success": False, "message": "Email and password are required."})

        try:
            result = reconciler.reconcile_local_login(payload.email, payload.password)
        except InvalidCredentials as e:
            raise ApiError(401, {"success": False, "message": e.message})
        except ValidationError as e:
            raise ApiError(400, {"success": False, "message": e.message})
        except Exception as e:
            _debug(f"Error during login: {e!r}")
            raise ApiError(500, {"success": False, "message": "An error occurred during login."})

        return {"success": True, "data": {"user": public_user(result.user), "token": result.token}}

    # -----------------------------
    # Google OAuth
    # -----------------------------

    def _frontend_redirect(**params: str) -> RedirectResponse:
        # The browser carries the result back from Google's domain, so it travels in the URL.
        url = f"{cfg.FRONTEND_URL.rstrip('/')}/?{urlencode(params)}"
        return RedirectResponse(url, status_code=302)

    @app.get("/api/oauth/google")
    def oauth_google_start(request: Request) -> RedirectResponse:
        try:
            url = request.app.state.oauth.authorization_url()
        except Exception as e:
            _debug(f"Google OAuth URL generation error: {e!r}")
            raise ApiError(500, {"message": "Google OAuth setup error."})
        return RedirectResponse(url, status_code=302)

    @app.get("/api/oauth/google/callback")
    def oauth_google_callback(
        request: Request,
        code: Optional[str] = None,
        error: Optional[str] = None,
        reconciler: IdentityReconciler = Depends(get_reconciler),
    ) -> RedirectResponse:
        state = request.app.state

        if error:
            _debug(f"Google OAuth error callback: {error}")
            return _frontend_redirect(error=OAuthDenied.code)
        if not code:
            _debug("Google OAuth callback: missing code")
            return _frontend_redirect(error=MissingCode.code)

        try:
            profile = state.oauth.exchange_code(code)
            user = reconciler.reconcile_oauth_profile(PROVIDER_GOOGLE, profile)
            token = state.tokens.issue(user["id"], user["tier"])
        except MissingEmail:
            _debug("Google OAuth callback: no email in profile")
            return _frontend_redirect(error=MissingEmail.code)
        except Exception as e:
            _debug(f"Google OAuth callback error: {e!r}")
            return _frontend_redirect(error="oauth_server_error")

        return _frontend_redirect(token=token, tier=str(user["tier"]))

    @app.get("/api/oauth/user")
    def oauth_user(user: Dict[str, Any] = Depends(get_current_user)) -> Dict[str, Any]:
        return {"success": True, "data": public_user(user)}

    # -----------------------------
    # Contributions
    # -----------------------------

    @app.post("/api/contributions/submit", status_code=201)
    def submit_contribution(
        payload: ContributionRequest,
        background_tasks: BackgroundTasks,
        request: Request,
    ) -> Dict[str, Any]:
        try:
            with connect(cfg.DB_DSN) as conn:
                c = create_contribution(
                    conn,
                    text=payload.text or "",
                    languages=payload.languages or [],
                    context=payload.context,
                    region=payload.region,
                    platform=payload.platform,
                    age=payload.age,
                    user_email=payload.userEmail,
                    user_name=payload.userName,
                )
        except ValidationError as e:
            raise ApiError(400, {"message": e.message})
        except Exception as e:
            _debug(f"Error submitting contribution: {e!r}")
            raise ApiError(500, {"message": "Could not submit contribution."})

        if payload.userEmail:
            background_tasks.add_task(
                request.app.state.mailer.send_contribution_confirmation,
                payload.userEmail,
                payload.userName,
                (payload.text or "").strip(),
                payload.languages or [],
                payload.context,
            )

        return {
            "message": "Contribution submitted successfully!",
            "contribution": {"id": c["id"], "submittedAt": c["submitted_at"]},
        }

    return app


app = create_app()
