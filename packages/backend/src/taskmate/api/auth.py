"""Auth API — registration, login, Google sign-in.

Learn: Routes for user authentication:
- POST /auth/register → create a password account → token + user
- POST /auth/login → email/password → token + user
- GET /auth/google → redirect to Google's account chooser
- GET /auth/google/callback → redirect to the front-end with ?token=

The Google callback never returns an error body: any failure (denied
consent, bad state, provider error, account conflict) sends the browser
to the front-end login page instead.
"""

from typing import Optional
from urllib.parse import urlencode

import structlog
from fastapi import APIRouter, Cookie, Depends
from fastapi.responses import RedirectResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from taskmate.auth.oauth import (
    STATE_COOKIE,
    STATE_COOKIE_PATH,
    GoogleOAuthClient,
    OAuthError,
    get_oauth_client,
)
from taskmate.config import settings
from taskmate.db.engine import get_db
from taskmate.errors import TaskmateError
from taskmate.schemas.auth import AuthResponse, LoginRequest, RegisterRequest
from taskmate.schemas.user import UserSummary
from taskmate.services.auth_service import AuthResult, AuthService

logger = structlog.get_logger()

router = APIRouter(prefix="/auth")


def _auth_svc(db: AsyncSession = Depends(get_db)) -> AuthService:
    return AuthService(db)


def _respond(result: AuthResult) -> AuthResponse:
    return AuthResponse(token=result.token, user=UserSummary.model_validate(result.user))


def _login_redirect() -> RedirectResponse:
    return _forget_nonce(RedirectResponse(f"{settings.client_url.rstrip('/')}/login"))


def _forget_nonce(response: RedirectResponse) -> RedirectResponse:
    response.delete_cookie(STATE_COOKIE, path=STATE_COOKIE_PATH)
    return response


# ─── Password ────────────────────────────────────────────


@router.post("/register", response_model=AuthResponse)
async def register(body: RegisterRequest, svc: AuthService = Depends(_auth_svc)):
    """Create a new user account and sign it in."""
    result = await svc.register(body.name, body.email, body.password)
    return _respond(result)


@router.post("/login", response_model=AuthResponse)
async def login(body: LoginRequest, svc: AuthService = Depends(_auth_svc)):
    """Login with email and password → session token."""
    result = await svc.login(body.email, body.password)
    return _respond(result)


# ─── Google ──────────────────────────────────────────────


@router.get("/google")
async def google_login(oauth: GoogleOAuthClient = Depends(get_oauth_client)):
    """Send the browser to Google's consent screen (account chooser forced)."""
    nonce = oauth.new_nonce()
    try:
        response = RedirectResponse(oauth.authorization_url(nonce))
    except OAuthError as e:
        logger.error("oauth.initiate_failed", error=str(e))
        return _login_redirect()

    response.set_cookie(
        STATE_COOKIE,
        nonce,
        max_age=settings.oauth_state_expire_minutes * 60,
        path=STATE_COOKIE_PATH,
        httponly=True,
        samesite="lax",
        secure=settings.environment != "development",
    )
    return response


@router.get("/google/callback")
async def google_callback(
    code: Optional[str] = None,
    state: Optional[str] = None,
    error: Optional[str] = None,
    nonce: Optional[str] = Cookie(None, alias=STATE_COOKIE),
    oauth: GoogleOAuthClient = Depends(get_oauth_client),
    svc: AuthService = Depends(_auth_svc),
):
    """Finish Google sign-in and hand the token to the front-end."""
    if error or not code:
        logger.info("oauth.denied", error=error)
        return _login_redirect()

    try:
        oauth.check_state(state, nonce)
        profile = await oauth.fetch_profile(code)
        result = await svc.oauth_login(profile)
    except (OAuthError, TaskmateError, SQLAlchemyError) as e:
        logger.warning("oauth.callback_failed", error=str(e))
        return _login_redirect()

    query = urlencode({"token": result.token})
    return _forget_nonce(RedirectResponse(f"{settings.client_url}?{query}"))
