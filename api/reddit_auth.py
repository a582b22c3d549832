"""
OAuth session for the Reddit script-app flow.

State machine:

    NO_SESSION --first get_token()--> AUTHENTICATING
    AUTHENTICATING --token issued--> ACTIVE
    AUTHENTICATING --credentials rejected--> FAILED (terminal for the process)
    AUTHENTICATING --transient error--> back to NO_SESSION / EXPIRED
    ACTIVE --expired or invalidate()--> EXPIRED --get_token()--> AUTHENTICATING

At most one token request is in flight. Callers arriving while a request is
in flight wait for its outcome and share it, success or failure.
"""

import threading
import time
from collections.abc import Callable
from enum import Enum

import httpx

from api.errors import AuthError, RateLimitedError, SourceError, UpstreamError
from config.config import RedditCredentials
from utils.logger import fields, get_logger

logger = get_logger(__name__)

TOKEN_URL = "https://www.reddit.com/api/v1/access_token"
EXPIRY_SKEW_S = 60.0
DEFAULT_EXPIRES_IN_S = 3600.0


class SessionState(str, Enum):
    NO_SESSION = "no_session"
    AUTHENTICATING = "authenticating"
    ACTIVE = "active"
    EXPIRED = "expired"
    FAILED = "failed"


class OAuthSession:
    """Access token lifecycle for one Reddit app, safe to share across threads."""

    def __init__(
        self,
        credentials: RedditCredentials,
        http_client: httpx.Client,
        *,
        token_url: str = TOKEN_URL,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._credentials = credentials
        self._http = http_client
        self._token_url = token_url
        self._clock = clock

        self._cond = threading.Condition()
        self._state = SessionState.NO_SESSION
        self._access_token: str | None = None
        self._expires_at = 0.0
        self._attempt = 0  # id of the latest authentication attempt
        self._completed = 0  # id of the latest finished attempt
        self._last_error: SourceError | None = None
        self._last_error_attempt = 0  # id of the attempt that produced _last_error
        self._failure: AuthError | None = None
        self._rate_limited_until = 0.0
        self.token_requests = 0

    @property
    def state(self) -> SessionState:
        with self._cond:
            return self._state

    # ---------- token lifecycle ----------

    def get_token(self) -> str:
        """
        Return a valid access token, authenticating if needed.

        Raises:
            AuthError: credentials were rejected (now or earlier in the process)
            UpstreamError / RateLimitedError: the token endpoint failed transiently
        """
        with self._cond:
            while True:
                if self._state == SessionState.FAILED:
                    raise AuthError(self._failure.message if self._failure else "Reddit authentication failed")

                if self._state == SessionState.ACTIVE:
                    if self._clock() < self._expires_at:
                        return self._access_token
                    self._state = SessionState.EXPIRED
                    self._access_token = None

                if self._state == SessionState.AUTHENTICATING:
                    waiting_for = self._attempt
                    self._cond.wait_for(lambda: self._completed >= waiting_for)
                    if self._state in (SessionState.ACTIVE, SessionState.FAILED):
                        continue
                    if self._last_error_attempt != waiting_for:
                        # A newer attempt superseded the one we waited on
                        continue
                    # The attempt we waited on failed transiently: share its error
                    err = self._last_error
                    raise type(err)(err.message, retry_after=err.retry_after)

                # NO_SESSION or EXPIRED: this caller performs the attempt
                self._attempt += 1
                attempt = self._attempt
                resume_state = self._state
                self._state = SessionState.AUTHENTICATING
                break

        return self._authenticate(attempt, resume_state)

    def invalidate(self, token: str) -> None:
        """Mark ``token`` as rejected by the API. A newer token is left alone."""
        with self._cond:
            if self._state == SessionState.ACTIVE and self._access_token == token:
                self._state = SessionState.EXPIRED
                self._access_token = None
                logger.info("Reddit access token rejected; session expired")

    def _authenticate(self, attempt: int, resume_state: SessionState) -> str:
        try:
            token, expires_in = self._request_token()
        except AuthError as e:
            with self._cond:
                self._state = SessionState.FAILED
                self._failure = e
                self._completed = attempt
                self._cond.notify_all()
            logger.error(
                "Reddit credentials rejected; social discussion source disabled for this process",
                extra=fields(event="configuration_failure", source_kind="social_discussion", reason=e.message),
            )
            raise
        except Exception as e:
            error = e if isinstance(e, SourceError) else UpstreamError(f"Token request failed: {type(e).__name__}")
            with self._cond:
                self._state = resume_state
                self._last_error = error
                self._last_error_attempt = attempt
                self._completed = attempt
                self._cond.notify_all()
            logger.warning("Reddit token request failed", extra=fields(error=str(e), error_type=type(e).__name__))
            raise error from e

        with self._cond:
            self._access_token = token
            self._expires_at = self._clock() + max(0.0, expires_in - EXPIRY_SKEW_S)
            self._state = SessionState.ACTIVE
            self._completed = attempt
            self._cond.notify_all()
        logger.info("Reddit session authenticated", extra=fields(expires_in=expires_in))
        return token

    def _request_token(self) -> tuple[str, float]:
        self.token_requests += 1
        response = self._http.post(
            self._token_url,
            auth=(self._credentials.client_id, self._credentials.client_secret),
            data={
                "grant_type": "password",
                "username": self._credentials.username,
                "password": self._credentials.password,
            },
            headers={"User-Agent": self._credentials.user_agent},
        )

        if response.status_code in (400, 401, 403):
            raise AuthError(f"Reddit token endpoint rejected the app credentials (HTTP {response.status_code})")
        if response.status_code == 429:
            raise RateLimitedError("Reddit token endpoint throttled the request")
        if response.status_code >= 300:
            raise UpstreamError(f"Reddit token endpoint returned HTTP {response.status_code}")

        try:
            payload = response.json()
        except ValueError:
            raise UpstreamError("Reddit token endpoint returned a non-JSON body")

        if payload.get("error"):
            # e.g. {"error": "invalid_grant"} for a wrong username/password
            raise AuthError(f"Reddit rejected the account credentials: {payload['error']}")
        token = payload.get("access_token")
        if not token:
            raise UpstreamError("Reddit token response has no access_token")
        return token, float(payload.get("expires_in") or DEFAULT_EXPIRES_IN_S)

    # ---------- per-app rate limit ----------

    def rate_limit_wait(self) -> float | None:
        """Seconds left in a rate-limit window announced by the API, if any."""
        with self._cond:
            remaining = self._rate_limited_until - self._clock()
        return remaining if remaining > 0 else None

    def note_rate_limit(self, remaining: float | None, reset_s: float | None) -> None:
        if remaining is None or reset_s is None or remaining > 0:
            return
        with self._cond:
            self._rate_limited_until = max(self._rate_limited_until, self._clock() + reset_s)
        logger.warning("Reddit rate limit exhausted", extra=fields(reset_s=reset_s))
