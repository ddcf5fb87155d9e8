"""Authorization-code flow used to (re)authorize the salon's Google Drive account."""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from urllib.parse import urlencode

import httpx

from salon.core.config import Settings, settings
from salon.core.timeutils import utc_naive_now
from salon.services.drive_service import DRIVE_SCOPES, TOKEN_URI

logger = logging.getLogger(__name__)

AUTH_URI = "https://accounts.google.com/o/oauth2/v2/auth"


class OAuthError(Exception):
    pass


@dataclass(frozen=True)
class OAuthTokens:
    access_token: str | None
    refresh_token: str | None
    expires_at: datetime | None  # naive UTC


class GoogleOAuthClient:
    """`transport` is handed to httpx; tests pass an httpx.MockTransport."""

    def __init__(self, config: Settings = settings, transport: httpx.AsyncBaseTransport | None = None):
        self.config = config
        self._transport = transport

    @property
    def configured(self) -> bool:
        return bool(
            self.config.google_drive_client_id
            and self.config.google_drive_client_secret
            and self.config.google_drive_redirect_uri
        )

    def authorization_url(self, state: str) -> str:
        # prompt=consent makes Google issue a new refresh token on every grant
        params = {
            "client_id": self.config.google_drive_client_id,
            "redirect_uri": self.config.google_drive_redirect_uri,
            "response_type": "code",
            "scope": " ".join(DRIVE_SCOPES),
            "access_type": "offline",
            "prompt": "consent",
            "include_granted_scopes": "true",
            "state": state,
        }
        return f"{AUTH_URI}?{urlencode(params)}"

    async def exchange_code(self, code: str) -> OAuthTokens:
        try:
            async with httpx.AsyncClient(transport=self._transport, timeout=15.0) as client:
                resp = await client.post(
                    TOKEN_URI,
                    data={
                        "code": code,
                        "client_id": self.config.google_drive_client_id,
                        "client_secret": self.config.google_drive_client_secret,
                        "redirect_uri": self.config.google_drive_redirect_uri,
                        "grant_type": "authorization_code",
                    },
                    headers={"Content-Type": "application/x-www-form-urlencoded"},
                )
        except httpx.HTTPError as e:
            raise OAuthError(f"Could not reach Google: {e}") from e
        if resp.status_code != 200:
            logger.warning(
                "Google token exchange failed: status=%s body=%s redirect_uri=%s",
                resp.status_code,
                resp.text[:500],
                self.config.google_drive_redirect_uri,
            )
            try:
                payload = resp.json()
            except ValueError:
                payload = {}
            reason = payload.get("error_description") or payload.get("error") or f"HTTP {resp.status_code}"
            raise OAuthError(f"Token exchange rejected: {reason}")
        payload = resp.json()
        expires_in = payload.get("expires_in")
        logger.info("Google authorization code exchanged (refresh token: %s)", bool(payload.get("refresh_token")))
        return OAuthTokens(
            access_token=payload.get("access_token"),
            refresh_token=payload.get("refresh_token"),
            expires_at=utc_naive_now() + timedelta(seconds=int(expires_in)) if expires_in else None,
        )


google_oauth = GoogleOAuthClient()
