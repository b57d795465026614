"""OAuth2 client-credentials authentication for the Blink Debit API.

The authenticator hands out ``"Bearer <token>"`` headers and refreshes the
token when it is within five minutes of expiry. Concurrent callers that all
see a stale token wait on one lock; the first one refreshes and the rest
pick up its result, so the token endpoint is called once per expiry window.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional

import jwt
import requests
from requests.auth import AuthBase

from blinkdebit.errors import BlinkAuthError

logger = logging.getLogger(__name__)

EXPIRY_BUFFER_SECONDS = 5 * 60


@dataclass(frozen=True)
class Token:
    header: str
    issued_at: float
    expires_at: float


def token_expiry(access_token: str) -> Optional[float]:
    """Read the ``exp`` claim of a JWT without verifying its signature.

    Returns None when the token is not a decodable JWT or carries no
    numeric ``exp``.
    """
    try:
        claims = jwt.decode(access_token, options={"verify_signature": False})
    except jwt.PyJWTError:
        return None
    exp = claims.get("exp")
    if isinstance(exp, bool) or not isinstance(exp, (int, float)):
        return None
    return float(exp)


def _lifetime(expires_in) -> float:
    """Seconds from an ``expires_in`` value, 0 when missing or not a number."""
    if isinstance(expires_in, bool):
        return 0.0
    try:
        return max(0.0, float(expires_in))
    except (TypeError, ValueError):
        return 0.0


class TokenCache:
    """Holds the current token snapshot.

    Snapshots are replaced whole, so a reader sees either the old token or
    the new one, never a mix.
    """

    def __init__(self, expiry_buffer: float = EXPIRY_BUFFER_SECONDS, clock: Callable[[], float] = time.time):
        self.expiry_buffer = expiry_buffer
        self._clock = clock
        self._token: Optional[Token] = None

    @property
    def token(self) -> Optional[Token]:
        return self._token

    def is_fresh(self, token: Optional[Token]) -> bool:
        return token is not None and self._clock() < token.expires_at - self.expiry_buffer

    def get(self) -> Optional[str]:
        """Return the cached header if it is outside the expiry buffer, else None."""
        token = self._token
        if self.is_fresh(token):
            return token.header
        return None

    def now(self) -> float:
        return self._clock()

    def store(self, token: Token) -> None:
        self._token = token

    def invalidate(self) -> None:
        self._token = None


class OAuthAuthenticator(AuthBase):
    """Client-credentials token provider, usable directly as ``session.auth``."""

    GRANT_TYPE = "client_credentials"

    def __init__(
        self,
        token_url: str,
        client_id: str,
        client_secret: str,
        timeout: float = 10.0,
        session: Optional[requests.Session] = None,
        cache: Optional[TokenCache] = None,
    ):
        self.token_url = token_url
        self.client_id = client_id
        self.client_secret = client_secret
        self.timeout = timeout
        # Kept apart from the API session so its auth hook never recurses here.
        self.session = session or requests.Session()
        self.cache = cache or TokenCache()
        self._lock = threading.Lock()

    def __call__(self, request):
        request.headers["Authorization"] = self.get_auth_header()
        return request

    def get_auth_header(self) -> str:
        header = self.cache.get()
        if header is not None:
            return header

        with self._lock:
            # Another thread may have refreshed while we waited.
            header = self.cache.get()
            if header is not None:
                return header
            token = self._fetch_token()
            self.cache.store(token)
            return token.header

    def invalidate(self) -> None:
        self.cache.invalidate()

    def _fetch_token(self) -> Token:
        data = {
            "grant_type": self.GRANT_TYPE,
            "client_id": self.client_id,
            "client_secret": self.client_secret,
        }
        try:
            resp = self.session.post(self.token_url, data=data, timeout=self.timeout)
        except requests.RequestException as exc:
            raise BlinkAuthError(str(exc)) from exc

        if not resp.ok:
            try:
                body = resp.json()
                detail = body.get("error_description") or body.get("error") or resp.text
            except (ValueError, AttributeError):
                detail = resp.text
            raise BlinkAuthError(detail, resp.status_code)

        try:
            body = resp.json()
        except ValueError:
            raise BlinkAuthError("Token response is not JSON", resp.status_code)
        if not isinstance(body, dict):
            raise BlinkAuthError("Token response is not a JSON object", resp.status_code)

        access_token = body.get("access_token")
        if not access_token:
            raise BlinkAuthError("Token response did not include an access token", resp.status_code)
        token_type = body.get("token_type") or "Bearer"

        now = self.cache.now()
        expires_at = token_expiry(access_token)
        if expires_at is None:
            # Unknown lifetime counts as already expired.
            expires_at = now + _lifetime(body.get("expires_in"))

        logger.info("Obtained Blink Debit access token, expires in %.0fs", expires_at - now)
        return Token(header=f"{token_type} {access_token}", issued_at=now, expires_at=expires_at)
