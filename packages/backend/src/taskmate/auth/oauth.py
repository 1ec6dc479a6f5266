"""Google OAuth 2.0 client (authorization-code flow).

Learn: The flow has two legs:
1. /auth/google redirects the browser to Google's consent screen with our
   client id, requested scopes and a `state` value.
2. Google redirects back to /auth/google/callback with `code` + `state`.
   We check `state`, exchange the code for an access token, then fetch the
   user's profile from the userinfo endpoint.

The `state` is a short-lived signed JWT rather than a server-side record,
so any worker process can validate it. Its subject is a random nonce that
/auth/google also drops in an HttpOnly cookie; the callback only accepts a
state whose nonce matches the cookie, which ties the flow to the browser
that started it (login CSRF).
"""

import hmac
import secrets
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Optional
from urllib.parse import urlencode

import httpx
import structlog

from taskmate.auth.jwt import TokenError, decode_token, issue_token
from taskmate.config import settings

logger = structlog.get_logger()

GOOGLE_AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
GOOGLE_USERINFO_URL = "https://www.googleapis.com/oauth2/v2/userinfo"
GOOGLE_SCOPES = "openid email profile"

STATE_TOKEN_TYPE = "oauth_state"
STATE_COOKIE = "taskmate_oauth_nonce"
STATE_COOKIE_PATH = "/auth/google"


class OAuthError(Exception):
    """Raised when any leg of the OAuth flow fails."""


@dataclass
class OAuthProfile:
    """The subset of a provider profile we care about."""

    oauth_id: str
    name: str
    emails: list[str] = field(default_factory=list)
    photos: list[str] = field(default_factory=list)
    email_verified: bool = False

    @property
    def email(self) -> Optional[str]:
        return self.emails[0] if self.emails else None

    @property
    def avatar_url(self) -> Optional[str]:
        return self.photos[0] if self.photos else None


class GoogleOAuthClient:
    """Builds the consent URL and turns a callback code into a profile."""

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        redirect_uri: str,
        timeout: float = 30.0,
    ):
        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_uri = redirect_uri
        self.timeout = timeout

    # ─── Leg 1: consent redirect ─────────────────────────

    def authorization_url(self, nonce: str) -> str:
        if not self.client_id:
            raise OAuthError("Google OAuth is not configured")
        params = {
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "response_type": "code",
            "scope": GOOGLE_SCOPES,
            "state": self.new_state(nonce),
            "prompt": "select_account",
        }
        return f"{GOOGLE_AUTH_URL}?{urlencode(params)}"

    @staticmethod
    def new_nonce() -> str:
        return secrets.token_urlsafe(32)

    def new_state(self, nonce: str) -> str:
        return issue_token(
            nonce,
            timedelta(minutes=settings.oauth_state_expire_minutes),
            token_type=STATE_TOKEN_TYPE,
        )

    def check_state(self, state: Optional[str], nonce: Optional[str]) -> None:
        """Accept `state` only if it is ours, unexpired, and minted for `nonce`."""
        if not state:
            raise OAuthError("Missing OAuth state")
        if not nonce:
            raise OAuthError("Missing OAuth state cookie")
        try:
            payload = decode_token(state, token_type=STATE_TOKEN_TYPE)
        except TokenError as e:
            raise OAuthError(f"Bad OAuth state: {e}")
        if not hmac.compare_digest(payload["sub"].encode(), nonce.encode()):
            raise OAuthError("OAuth state does not belong to this browser")

    # ─── Leg 2: code exchange ────────────────────────────

    async def fetch_profile(self, code: str) -> OAuthProfile:
        """Exchange an authorization code for the caller's Google profile."""
        if not self.client_id or not self.client_secret:
            raise OAuthError("Google OAuth is not configured")

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                token_response = await client.post(
                    GOOGLE_TOKEN_URL,
                    data={
                        "client_id": self.client_id,
                        "client_secret": self.client_secret,
                        "code": code,
                        "redirect_uri": self.redirect_uri,
                        "grant_type": "authorization_code",
                    },
                    headers={"Accept": "application/json"},
                )
                token_response.raise_for_status()
                access_token = token_response.json().get("access_token")
                if not access_token:
                    raise OAuthError("Provider returned no access token")

                userinfo_response = await client.get(
                    GOOGLE_USERINFO_URL,
                    headers={"Authorization": f"Bearer {access_token}"},
                )
                userinfo_response.raise_for_status()
                userinfo = userinfo_response.json()
        except httpx.HTTPError as e:
            logger.warning("oauth.provider_error", error=str(e))
            raise OAuthError(f"Google request failed: {e}")
        except ValueError as e:
            raise OAuthError(f"Google returned malformed JSON: {e}")

        return parse_google_userinfo(userinfo)


def parse_google_userinfo(userinfo: dict) -> OAuthProfile:
    """Map Google's userinfo v2 payload onto an OAuthProfile."""
    if not isinstance(userinfo, dict) or not userinfo.get("id"):
        raise OAuthError("Google profile has no id")
    email = userinfo.get("email")
    picture = userinfo.get("picture")
    return OAuthProfile(
        oauth_id=str(userinfo["id"]),
        name=userinfo.get("name") or email or "Google user",
        emails=[email] if email else [],
        photos=[picture] if picture else [],
        email_verified=bool(userinfo.get("verified_email")),
    )


def get_oauth_client() -> GoogleOAuthClient:
    """FastAPI dependency: overridden in tests with a fake provider."""
    return GoogleOAuthClient(
        client_id=settings.google_client_id,
        client_secret=settings.google_client_secret,
        redirect_uri=settings.google_redirect_uri,
    )
