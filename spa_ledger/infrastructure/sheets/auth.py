# spa_ledger/infrastructure/sheets/auth.py
"""
Google service-account authentication for the Sheets API.

Flow:
  1. Sign a JWT (RS256) with the service account's private key
     (iss = client email, aud = token endpoint, scope = spreadsheets).
  2. POST it to the token endpoint (grant_type = jwt-bearer).
  3. Cache the returned access token until shortly before it expires.
"""

from __future__ import annotations

import logging
import time

import httpx
from jose import JWTError, jwt

from spa_ledger.core.config import settings
from spa_ledger.domain.errors import RemoteUnavailableError

logger = logging.getLogger("sheets.auth")

SCOPE = "https://www.googleapis.com/auth/spreadsheets"
_GRANT_TYPE = "urn:ietf:params:oauth:grant-type:jwt-bearer"
_ASSERTION_LIFETIME = 3600
# Refresh a minute early so a token never expires mid-request
_EXPIRY_SLACK = 60


def normalize_private_key(raw: str) -> str:
    """Env files usually carry the PEM with literal ``\\n`` sequences."""
    return raw.replace("\\n", "\n").replace("\r\n", "\n")


class ServiceAccountTokenProvider:
    """Hands out bearer tokens for a Google service account."""

    def __init__(
        self,
        client_email: str | None = None,
        private_key: str | None = None,
        token_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.client_email = client_email if client_email is not None else settings.GOOGLE_CLIENT_EMAIL
        self.private_key = normalize_private_key(
            private_key if private_key is not None else settings.GOOGLE_PRIVATE_KEY
        )
        self.token_url = token_url or settings.SHEETS_TOKEN_URL
        self.timeout = timeout or settings.SHEETS_TIMEOUT_SECONDS
        self._transport = transport
        self._token: str | None = None
        self._expires_at = 0.0

    def _assertion(self, now: int) -> str:
        claims = {
            "iss": self.client_email,
            "scope": SCOPE,
            "aud": self.token_url,
            "iat": now,
            "exp": now + _ASSERTION_LIFETIME,
        }
        try:
            return jwt.encode(claims, self.private_key, algorithm="RS256")
        except JWTError as exc:
            raise RemoteUnavailableError(f"Cannot sign service account assertion: {exc}") from exc

    async def get_token(self) -> str:
        if self._token and time.time() < self._expires_at:
            return self._token

        if not self.client_email or not self.private_key:
            raise RemoteUnavailableError("Google credentials missing (GOOGLE_CLIENT_EMAIL / GOOGLE_PRIVATE_KEY)")

        now = int(time.time())
        data = {"grant_type": _GRANT_TYPE, "assertion": self._assertion(now)}

        logger.info("Requesting Sheets access token for %s", self.client_email)
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            try:
                r = await client.post(self.token_url, data=data)
                r.raise_for_status()
                payload = r.json()
            except httpx.HTTPStatusError as exc:
                logger.error("Token endpoint returned %d", exc.response.status_code)
                raise RemoteUnavailableError(
                    f"Token request failed: {exc.response.status_code}"
                ) from exc
            except (httpx.HTTPError, ValueError) as exc:
                logger.error("Token request failed: %s", exc)
                raise RemoteUnavailableError(f"Token request failed: {exc}") from exc

        token = payload.get("access_token")
        if not token:
            raise RemoteUnavailableError("Token response did not include an access_token")

        self._token = token
        self._expires_at = now + int(payload.get("expires_in", _ASSERTION_LIFETIME)) - _EXPIRY_SLACK
        return self._token


class StaticTokenProvider:
    """Fixed bearer token (local emulators, tests)."""

    def __init__(self, token: str) -> None:
        self.token = token

    async def get_token(self) -> str:
        return self.token
