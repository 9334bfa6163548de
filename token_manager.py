import base64
import json
import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, Optional

import requests

from exceptions import AuthenticationFailure, RequestFailure
from transport import DEFAULT_RETRY_POLICY, RetryPolicy, send

LIBRARY_VERSION = "0.1.0"
USER_AGENT = f"python-wallbox-monitor/{LIBRARY_VERSION}"
LOGIN_URL = "https://user-api.wall-box.com/users/signin"
TOKEN_BUFFER_SECONDS = 60
DEFAULT_TOKEN_TTL = 900


def build_headers(authorization: str, partner: bool = False) -> Dict[str, str]:
    headers = {
        "User-Agent": USER_AGENT,
        "Content-Type": "application/json;charset=utf-8",
        "Accept": "application/json, text/plain, */*",
        "Authorization": authorization,
    }
    if partner:
        headers["Partner"] = "wallbox"
    return headers


@dataclass(frozen=True)
class Credentials:
    """Long-lived Wallbox account credentials."""

    username: Optional[str] = None
    password: Optional[str] = field(default=None, repr=False)
    token: Optional[str] = field(default=None, repr=False)

    def __post_init__(self) -> None:
        if not self.token and not (self.username and self.password):
            raise ValueError("Either username and password or a basic token is required")

    @classmethod
    def from_token(cls, token: str) -> "Credentials":
        return cls(token=token)

    @property
    def basic_token(self) -> str:
        if self.token:
            return self.token
        raw = f"{self.username}:{self.password}".encode("utf-8")
        return base64.b64encode(raw).decode("ascii")


@dataclass(frozen=True)
class SessionToken:
    """Bearer token returned by the login exchange."""

    token: str = field(repr=False)
    issued_at: float
    ttl: float

    @property
    def expires_at(self) -> float:
        return self.issued_at + self.ttl

    def is_expired(self, now: float, buffer: float = 0.0) -> bool:
        return now >= self.expires_at - buffer


class WallboxTokenManager:
    """Obtains and refreshes the Wallbox bearer token.

    Logins are serialized by a lock and the stored token is only ever replaced
    as a whole, so several monitors can share one manager.
    """

    def __init__(
        self,
        credentials: Credentials,
        policy: RetryPolicy = DEFAULT_RETRY_POLICY,
        timeout: Optional[float] = None,
        session: Optional[requests.Session] = None,
        proactive_refresh: bool = False,
        refresh_buffer: float = TOKEN_BUFFER_SECONDS,
        default_ttl: float = DEFAULT_TOKEN_TTL,
        clock: Callable[[], float] = time.time,
        login_url: str = LOGIN_URL,
    ) -> None:
        """Initialize the token manager.

        Args:
            credentials: Account credentials sent as basic auth on login
            policy: Retry policy for the login request
            timeout: Request timeout in seconds
            session: Optional requests session shared with the client
            proactive_refresh: Re-authenticate before the token's ttl runs out
                instead of trusting it until the API rejects it
            refresh_buffer: Seconds before expiry at which a proactive refresh happens
            default_ttl: Token lifetime assumed when the login response has no ttl
            clock: Time source, seconds since the epoch
            login_url: Sign-in endpoint
        """
        self.credentials = credentials
        self.policy = policy
        self.timeout = timeout
        self.session = session
        self.proactive_refresh = proactive_refresh
        self.refresh_buffer = refresh_buffer
        self.default_ttl = default_ttl
        self.login_url = login_url
        self._clock = clock
        self._lock = threading.Lock()
        self._session_token: Optional[SessionToken] = None

    @property
    def session_token(self) -> Optional[SessionToken]:
        return self._session_token

    def has_token(self) -> bool:
        return self._session_token is not None

    def _needs_refresh(self, current: SessionToken) -> bool:
        if not self.proactive_refresh:
            if current.is_expired(self._clock()):
                logging.debug("Session token is past its ttl, reusing it until the API rejects it")
            return False
        return current.is_expired(self._clock(), self.refresh_buffer)

    def ensure_token(self) -> str:
        current = self._session_token
        if current is not None and not self._needs_refresh(current):
            return current.token

        with self._lock:
            current = self._session_token
            if current is None:
                logging.info("No session token found. Logging in...")
                return self._login().token
            if self._needs_refresh(current):
                logging.info("Session token about to expire. Re-authenticating...")
                return self._login().token
            return current.token

    def force_reauth(self, stale_token: Optional[str] = None) -> str:
        """Log in again and return the new bearer token.

        Args:
            stale_token: The token the caller saw rejected. If another thread
                already replaced it, that newer token is returned without a
                second login.
        """
        with self._lock:
            current = self._session_token
            if stale_token is not None and current is not None and current.token != stale_token:
                logging.debug("Session token already refreshed by another caller")
                return current.token
            logging.info("Forcing re-authentication...")
            return self._login().token

    def bearer_headers(self, token: Optional[str] = None) -> Dict[str, str]:
        """Headers for a data call, using ``token`` or the current session token."""
        if token is None:
            token = self.ensure_token()
        return build_headers(f"Bearer {token}")

    def login_headers(self) -> Dict[str, str]:
        return build_headers(f"Basic {self.credentials.basic_token}", partner=True)

    def _login(self) -> SessionToken:
        issued_at = self._clock()
        try:
            body = send(
                "GET",
                self.login_url,
                headers=self.login_headers(),
                policy=self.policy,
                timeout=self.timeout,
                session=self.session,
            )
        except RequestFailure as e:
            logging.error(f"Login failed: {e}")
            raise AuthenticationFailure(self.login_url, cause=e, status_code=e.status_code) from e

        try:
            attributes = json.loads(body)["data"]["attributes"]
            token = attributes["token"]
            ttl = self._parse_ttl(attributes.get("ttl"), issued_at)
        except (KeyError, TypeError, ValueError) as e:
            logging.error(f"Invalid login response: {e!r}")
            raise AuthenticationFailure(self.login_url, cause=f"Invalid login response: {e!r}") from e

        if not isinstance(token, str) or not token:
            raise AuthenticationFailure(self.login_url, cause="Login response contained no token")

        self._session_token = SessionToken(token=token, issued_at=issued_at, ttl=ttl)
        logging.info("Logged in to Wallbox, token valid for %ds", ttl)
        return self._session_token

    def _parse_ttl(self, value: object, issued_at: float) -> float:
        if value is None:
            return float(self.default_ttl)
        ttl = float(value)  # type: ignore[arg-type]
        # Wallbox reports the expiry as an epoch timestamp in milliseconds.
        if ttl > 1e11:
            ttl = ttl / 1000 - issued_at
        elif ttl > 1e9:
            ttl = ttl - issued_at
        if ttl <= self.refresh_buffer:
            # A token that is already due would force a login on every call.
            logging.warning(
                f"Login returned a ttl of {ttl:.0f}s, assuming {self.default_ttl}s instead"
            )
            return float(self.default_ttl)
        return ttl
