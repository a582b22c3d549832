"""Reddit adapter: post plus top comment through the OAuth API."""

import re
from typing import Any
from urllib.parse import urlsplit

import httpx

from api.base_adapter import BaseSourceAdapter
from api.errors import AuthError, NotFoundError, RateLimitedError, UpstreamError
from api.reddit_auth import TOKEN_URL, OAuthSession
from config.config import RedditCredentials
from models.document import NormalizedDocument, SourceKind
from orchestrator.normalizer import from_reddit
from utils.logger import fields, get_logger

logger = get_logger(__name__)

API_BASE = "https://oauth.reddit.com"
COMMENT_LIMIT = 10
_POST_ID = re.compile(r"^[a-z0-9]{1,12}$")
_REMOVED_BODIES = {"[deleted]", "[removed]"}


def parse_post_id(url: str) -> str:
    """
    Post id from a discussion URL.

    Supported shapes: /r/<sub>/comments/<id>/..., /comments/<id>/..., redd.it/<id>

    Raises:
        NotFoundError: no post id in the URL
    """
    raw = url.strip()
    if "://" not in raw:
        raw = "https://" + raw.lstrip("/")
    parsed = urlsplit(raw)
    host = (parsed.hostname or "").lower()
    segments = [seg.lower() for seg in parsed.path.split("/") if seg]

    candidate = None
    if host == "redd.it" and segments:
        candidate = segments[0]
    elif "comments" in segments:
        idx = segments.index("comments")
        if idx + 1 < len(segments):
            candidate = segments[idx + 1]

    if not candidate or not _POST_ID.match(candidate):
        raise NotFoundError(f"No post id in {url}")
    return candidate


def _header_float(response: httpx.Response, name: str) -> float | None:
    value = response.headers.get(name)
    try:
        return float(value) if value is not None else None
    except ValueError:
        return None


class RedditClient(BaseSourceAdapter):
    """
    Social discussion adapter.

    Owns the OAuth session; the session is never exposed to other components.
    A 401 on a content call expires the session, re-authenticates once and
    retries the call once.
    """

    kind = SourceKind.SOCIAL_DISCUSSION

    def __init__(
        self,
        credentials: RedditCredentials,
        *,
        timeout_s: float = 10.0,
        http_client: httpx.Client | None = None,
        api_base: str = API_BASE,
        token_url: str = TOKEN_URL,
        session: OAuthSession | None = None,
    ):
        super().__init__(
            timeout_s=timeout_s,
            http_client=http_client,
            headers={"User-Agent": credentials.user_agent},
        )
        self.credentials = credentials
        self.api_base = api_base.rstrip("/")
        self._session = session or OAuthSession(credentials, self.http, token_url=token_url)

    @property
    def session_state(self):
        return self._session.state

    def _get_comments(self, post_id: str, token: str) -> httpx.Response:
        response = self.http.get(
            f"{self.api_base}/comments/{post_id}",
            params={"sort": "top", "limit": COMMENT_LIMIT, "depth": 1, "raw_json": 1},
            headers={"Authorization": f"bearer {token}", "User-Agent": self.credentials.user_agent},
        )
        self._session.note_rate_limit(
            _header_float(response, "X-Ratelimit-Remaining"),
            _header_float(response, "X-Ratelimit-Reset"),
        )
        return response

    def _fetch(self, url: str) -> NormalizedDocument:
        post_id = parse_post_id(url)

        wait = self._session.rate_limit_wait()
        if wait is not None:
            raise RateLimitedError("Reddit rate limit window still open", retry_after=wait)

        token = self._session.get_token()
        response = self._get_comments(post_id, token)

        if response.status_code == 401:
            logger.info("Reddit rejected access token; re-authenticating", extra=fields(url=url))
            self._session.invalidate(token)
            token = self._session.get_token()
            response = self._get_comments(post_id, token)
            if response.status_code == 401:
                self._session.invalidate(token)
                raise AuthError("Reddit rejected a freshly issued access token")

        if response.status_code == 429:
            raise RateLimitedError(
                "Reddit API throttled the request",
                retry_after=_header_float(response, "X-Ratelimit-Reset") or self._retry_after(response),
            )
        if response.status_code in (403, 404):
            raise NotFoundError(f"Post {post_id} is unavailable (HTTP {response.status_code})")
        if response.status_code >= 400:
            raise UpstreamError(f"Reddit API returned HTTP {response.status_code}", status_code=response.status_code)

        try:
            listings = response.json()
        except ValueError:
            raise UpstreamError("Reddit API returned a non-JSON body")

        post, comments = self._split_listing(listings, post_id)
        return from_reddit(post, self._top_comment(comments))

    @staticmethod
    def _split_listing(listings: Any, post_id: str) -> tuple[dict[str, Any], list[dict[str, Any]]]:
        if not isinstance(listings, list) or not listings:
            raise UpstreamError("Unexpected Reddit listing shape")
        post_children = (listings[0].get("data") or {}).get("children") or []
        if not post_children:
            raise NotFoundError(f"Post {post_id} not found")
        post = post_children[0].get("data") or {}
        comments: list[dict[str, Any]] = []
        if len(listings) > 1:
            for child in (listings[1].get("data") or {}).get("children") or []:
                if child.get("kind") == "t1":
                    comments.append(child.get("data") or {})
        return post, comments

    @staticmethod
    def _top_comment(comments: list[dict[str, Any]]) -> dict[str, Any] | None:
        usable = [
            c
            for c in comments
            if not c.get("stickied") and (c.get("body") or "").strip() not in _REMOVED_BODIES | {""}
        ]
        if not usable:
            return None
        return max(usable, key=lambda c: c.get("score", 0))
