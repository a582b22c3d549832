import threading
import time

import pytest
from conftest import json_response

from api.errors import AuthError, UpstreamError
from api.reddit_auth import TOKEN_URL, OAuthSession, SessionState
from api.reddit_client import RedditClient, parse_post_id
from models.document import FailureReason, SourceKind

POST_URL = "https://www.reddit.com/r/webdev/comments/abc123/mouseover_vs_mouseenter/"


def listing(post=None, comments=()):
    post = post or {
        "id": "abc123",
        "title": "mouseover vs mouseenter?",
        "selftext": "Which one bubbles?",
        "is_self": True,
        "permalink": "/r/webdev/comments/abc123/mouseover_vs_mouseenter/",
        "url": "https://www.reddit.com/r/webdev/comments/abc123/mouseover_vs_mouseenter/",
    }
    return [
        {"kind": "Listing", "data": {"children": [{"kind": "t3", "data": post}]}},
        {"kind": "Listing", "data": {"children": [{"kind": "t1", "data": c} for c in comments]}},
    ]


COMMENTS = [
    {"author": "mod", "body": "Read the rules.", "score": 500, "stickied": True},
    {"author": "alice", "body": "mouseover bubbles, mouseenter does not.", "score": 42},
    {"author": "bob", "body": "[deleted]", "score": 99},
    {"author": "carol", "body": "Depends.", "score": 3},
]


class FakeReddit:
    """Token endpoint plus /comments endpoint, with scriptable responses."""

    def __init__(self, token_responses=None, content_responses=None):
        self.token_responses = list(token_responses or [])
        self.content_responses = list(content_responses or [])
        self.token_calls = 0
        self.content_calls = []
        self.issued = 0

    def __call__(self, request):
        if str(request.url) == TOKEN_URL:
            self.token_calls += 1
            if self.token_responses:
                return self.token_responses.pop(0)
            self.issued += 1
            return json_response(200, {"access_token": f"token-{self.issued}", "expires_in": 3600})
        self.content_calls.append(request)
        if self.content_responses:
            return self.content_responses.pop(0)
        return json_response(200, listing(comments=COMMENTS))


@pytest.fixture
def make_client(make_http_client, reddit_credentials):
    def _make(fake, **kwargs):
        return RedditClient(reddit_credentials, http_client=make_http_client(fake), **kwargs)

    return _make


def test_post_with_top_comment(make_client):
    fake = FakeReddit()
    outcome = make_client(fake).fetch(POST_URL)

    assert outcome.is_success
    doc = outcome.document
    assert doc.source_kind == SourceKind.SOCIAL_DISCUSSION
    assert doc.title == "mouseover vs mouseenter?"
    assert doc.canonical_url == "https://www.reddit.com/r/webdev/comments/abc123/mouseover_vs_mouseenter/"
    assert doc.body_text.startswith("Which one bubbles?")
    # Stickied and deleted comments are skipped
    assert "Top comment by u/alice (score 42)" in doc.body_text
    assert "Read the rules." not in doc.body_text


def test_content_request_shape(make_client, reddit_credentials):
    fake = FakeReddit()
    make_client(fake).fetch(POST_URL)

    request = fake.content_calls[0]
    assert request.url.path == "/comments/abc123"
    assert request.url.params["sort"] == "top"
    assert request.url.params["raw_json"] == "1"
    assert request.headers["Authorization"] == "bearer token-1"
    assert request.headers["User-Agent"] == reddit_credentials.user_agent


def test_token_reused_across_fetches(make_client):
    fake = FakeReddit()
    client = make_client(fake)
    client.fetch(POST_URL)
    client.fetch("https://redd.it/abc123")

    assert fake.token_calls == 1
    assert client.session_state == SessionState.ACTIVE


def test_link_post_without_text_or_comments_is_not_found(make_client):
    post = {"id": "abc123", "title": "A link", "selftext": "", "is_self": False, "url": "https://example.com"}
    fake = FakeReddit(content_responses=[json_response(200, listing(post=post))])
    assert make_client(fake).fetch(POST_URL).failure.reason == FailureReason.NOT_FOUND


def test_link_post_with_comment_includes_link(make_client):
    post = {
        "id": "abc123",
        "title": "A link",
        "selftext": "",
        "is_self": False,
        "url": "https://example.com/article",
        "permalink": "/r/webdev/comments/abc123/a_link/",
    }
    fake = FakeReddit(content_responses=[json_response(200, listing(post=post, comments=COMMENTS[1:2]))])
    doc = make_client(fake).fetch(POST_URL).document

    assert doc.body_text.startswith("Link: https://example.com/article")


def test_401_reauthenticates_once_and_retries(make_client):
    fake = FakeReddit(content_responses=[json_response(401, {"message": "Unauthorized"})])
    client = make_client(fake)
    outcome = client.fetch(POST_URL)

    assert outcome.is_success
    assert fake.token_calls == 2
    assert len(fake.content_calls) == 2
    assert fake.content_calls[1].headers["Authorization"] == "bearer token-2"


def test_second_401_is_auth_error(make_client):
    fake = FakeReddit(
        content_responses=[json_response(401, {}), json_response(401, {})],
    )
    outcome = make_client(fake).fetch(POST_URL)

    assert outcome.failure.reason == FailureReason.AUTH_ERROR
    assert fake.token_calls == 2
    assert len(fake.content_calls) == 2


def test_rejected_credentials_are_terminal(make_client):
    fake = FakeReddit(token_responses=[json_response(401, {"message": "Unauthorized"})])
    client = make_client(fake)

    first = client.fetch(POST_URL)
    second = client.fetch(POST_URL)

    assert first.failure.reason == FailureReason.AUTH_ERROR
    assert second.failure.reason == FailureReason.AUTH_ERROR
    assert client.session_state == SessionState.FAILED
    # The second call never touched the network
    assert fake.token_calls == 1
    assert fake.content_calls == []


def test_invalid_grant_is_auth_error(make_client):
    fake = FakeReddit(token_responses=[json_response(200, {"error": "invalid_grant"})])
    client = make_client(fake)

    assert client.fetch(POST_URL).failure.reason == FailureReason.AUTH_ERROR
    assert client.session_state == SessionState.FAILED


def test_transient_token_failure_is_not_terminal(make_client):
    fake = FakeReddit(token_responses=[json_response(503, {})])
    client = make_client(fake)

    assert client.fetch(POST_URL).failure.reason == FailureReason.UPSTREAM_ERROR
    assert client.session_state == SessionState.NO_SESSION

    assert client.fetch(POST_URL).is_success
    assert fake.token_calls == 2


def test_429_is_rate_limited(make_client):
    fake = FakeReddit(content_responses=[json_response(429, {}, headers={"X-Ratelimit-Reset": "12"})])
    outcome = make_client(fake).fetch(POST_URL)

    assert outcome.failure.reason == FailureReason.RATE_LIMITED
    assert outcome.failure.retry_after == 12.0


def test_exhausted_rate_limit_short_circuits(make_client):
    headers = {"X-Ratelimit-Remaining": "0", "X-Ratelimit-Reset": "300", "X-Ratelimit-Used": "600"}
    fake = FakeReddit(content_responses=[json_response(200, listing(comments=COMMENTS), headers=headers)])
    client = make_client(fake)

    assert client.fetch(POST_URL).is_success
    outcome = client.fetch(POST_URL)

    assert outcome.failure.reason == FailureReason.RATE_LIMITED
    assert 0 < outcome.failure.retry_after <= 300
    assert len(fake.content_calls) == 1


@pytest.mark.parametrize("status", [403, 404])
def test_private_or_missing_post_is_not_found(make_client, status):
    fake = FakeReddit(content_responses=[json_response(status, {})])
    assert make_client(fake).fetch(POST_URL).failure.reason == FailureReason.NOT_FOUND


def test_server_error_is_upstream_error(make_client):
    fake = FakeReddit(content_responses=[json_response(500, {})])
    assert make_client(fake).fetch(POST_URL).failure.reason == FailureReason.UPSTREAM_ERROR


def test_token_expiry_uses_skew(make_http_client, reddit_credentials):
    now = [1000.0]
    fake = FakeReddit(token_responses=[json_response(200, {"access_token": "short", "expires_in": 120})])
    session = OAuthSession(reddit_credentials, make_http_client(fake), clock=lambda: now[0])

    assert session.get_token() == "short"
    now[0] += 59
    assert session.get_token() == "short"
    now[0] += 2
    assert session.get_token() == "token-1"
    assert fake.token_calls == 2


def test_invalidate_ignores_stale_token(make_http_client, reddit_credentials):
    session = OAuthSession(reddit_credentials, make_http_client(FakeReddit()))
    token = session.get_token()

    session.invalidate("some-older-token")
    assert session.state == SessionState.ACTIVE

    session.invalidate(token)
    assert session.state == SessionState.EXPIRED


def test_concurrent_callers_share_one_token_request(make_http_client, reddit_credentials):
    release = threading.Event()
    fake = FakeReddit()

    def slow_handler(request):
        if str(request.url) == TOKEN_URL:
            release.wait(timeout=5)
        return fake(request)

    session = OAuthSession(reddit_credentials, make_http_client(slow_handler))
    results, errors = [], []

    def worker():
        try:
            results.append(session.get_token())
        except Exception as e:  # pragma: no cover - reported through the assertion below
            errors.append(e)

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for thread in threads:
        thread.start()
    time.sleep(0.2)
    release.set()
    for thread in threads:
        thread.join(timeout=5)

    assert errors == []
    assert results == ["token-1"] * 8
    assert fake.token_calls == 1


def test_waiters_receive_failure_of_shared_attempt(make_http_client, reddit_credentials):
    release = threading.Event()
    fake = FakeReddit(token_responses=[json_response(401, {})])

    def slow_handler(request):
        release.wait(timeout=5)
        return fake(request)

    session = OAuthSession(reddit_credentials, make_http_client(slow_handler))
    errors = []

    def worker():
        try:
            session.get_token()
        except AuthError as e:
            errors.append(e)

    threads = [threading.Thread(target=worker) for _ in range(4)]
    for thread in threads:
        thread.start()
    time.sleep(0.2)
    release.set()
    for thread in threads:
        thread.join(timeout=5)

    assert len(errors) == 4
    assert fake.token_calls == 1


class WakeHookCondition(threading.Condition):
    """Runs ``on_wake`` once, with the lock held, right after the first wait returns."""

    def __init__(self, on_wake):
        super().__init__()
        self.on_wake = on_wake
        self.fired = False

    def wait_for(self, predicate, timeout=None):
        result = super().wait_for(predicate, timeout)
        if not self.fired:
            self.fired = True
            self.on_wake()
        return result


def test_waiter_follows_newer_attempt_after_success(make_http_client, reddit_credentials):
    release = threading.Event()
    fake = FakeReddit()

    def slow_first_token(request):
        if str(request.url) == TOKEN_URL and fake.token_calls == 0:
            release.wait(timeout=5)
        return fake(request)

    session = OAuthSession(reddit_credentials, make_http_client(slow_first_token))

    def rejected_and_reauthenticating():
        # Another caller got a 401 on token-1 and started the next attempt
        session.invalidate("token-1")
        session._attempt += 1
        session._state = SessionState.AUTHENTICATING
        threading.Thread(target=session._authenticate, args=(session._attempt, SessionState.EXPIRED)).start()

    session._cond = WakeHookCondition(rejected_and_reauthenticating)
    results, errors = {}, []

    def worker(name):
        try:
            results[name] = session.get_token()
        except Exception as e:  # pragma: no cover - reported through the assertion below
            errors.append(e)

    first = threading.Thread(target=worker, args=("first",))
    first.start()
    time.sleep(0.1)
    waiter = threading.Thread(target=worker, args=("waiter",))
    waiter.start()
    time.sleep(0.1)
    release.set()
    for thread in (first, waiter):
        thread.join(timeout=5)

    assert errors == []
    assert results == {"first": "token-1", "waiter": "token-2"}
    assert fake.token_calls == 2


def test_session_wraps_transport_errors(make_http_client, reddit_credentials):
    import httpx

    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    session = OAuthSession(reddit_credentials, make_http_client(handler))
    with pytest.raises(UpstreamError):
        session.get_token()
    assert session.state == SessionState.NO_SESSION


@pytest.mark.parametrize(
    "url, post_id",
    [
        ("https://www.reddit.com/r/python/comments/abc123/title/", "abc123"),
        ("https://old.reddit.com/comments/xyz9", "xyz9"),
        ("https://redd.it/abc123", "abc123"),
        ("reddit.com/r/Python/comments/ABC123", "abc123"),
    ],
)
def test_parse_post_id(url, post_id):
    assert parse_post_id(url) == post_id


def test_subreddit_url_is_not_found(make_client):
    fake = FakeReddit()
    outcome = make_client(fake).fetch("https://www.reddit.com/r/python/comments/")
    assert outcome.failure.reason == FailureReason.NOT_FOUND
    assert fake.token_calls == 0
