"""Stack Exchange API v2.3 client for question and answer URLs."""

import re
from dataclasses import dataclass
from typing import Any
from urllib.parse import urlsplit

import httpx

from api.base_adapter import BaseSourceAdapter
from api.errors import NotFoundError, RateLimitedError, UpstreamError
from models.document import NormalizedDocument, SourceKind
from orchestrator.normalizer import from_stackexchange
from utils.logger import fields, get_logger

logger = get_logger(__name__)

DEFAULT_PAGE_SIZE = 30
DEFAULT_MAX_ANSWER_PAGES = 5
THROTTLE_VIOLATION = 502  # error_id used by the API for throttling
STACKEXCHANGE_SUFFIX = ".stackexchange.com"
_RETRY_IN_SECONDS = re.compile(r"(\d+)\s*seconds?")


@dataclass(frozen=True)
class QAItem:
    host: str
    item_type: str  # "question" or "answer"
    item_id: int

    @property
    def site(self) -> str:
        """
        API site parameter.

        stackoverflow.com -> stackoverflow, unix.stackexchange.com -> unix,
        mathoverflow.net -> mathoverflow.net (the API keeps non-.com hosts whole).
        """
        if self.host.endswith(STACKEXCHANGE_SUFFIX):
            return self.host[: -len(STACKEXCHANGE_SUFFIX)]
        if self.host.endswith(".com"):
            return self.host[: -len(".com")]
        return self.host


def parse_item(url: str) -> QAItem:
    """
    Extract site and item id from a Q&A URL.

    Supported shapes:
        /questions/<qid>[/<slug>]            question
        /questions/<qid>/<slug>/<aid>        answer
        /questions/<qid>/<slug>#<aid>        answer
        /q/<qid>[/<user>]                    question
        /a/<aid>[/<user>]                    answer

    Raises:
        NotFoundError: URL does not address a question or answer
    """
    raw = url.strip()
    if "://" not in raw:
        raw = "https://" + raw.lstrip("/")
    parsed = urlsplit(raw)
    host = (parsed.hostname or "").lower()
    if host.startswith("www."):
        host = host[4:]
    segments = [seg for seg in parsed.path.split("/") if seg]
    if not host or len(segments) < 2 or not segments[1].isdigit():
        raise NotFoundError(f"No question or answer id in {url}")

    head = segments[0].lower()
    if head == "a":
        return QAItem(host=host, item_type="answer", item_id=int(segments[1]))
    if head == "q":
        return QAItem(host=host, item_type="question", item_id=int(segments[1]))
    if head == "questions":
        if len(segments) >= 4 and segments[3].isdigit():
            return QAItem(host=host, item_type="answer", item_id=int(segments[3]))
        if parsed.fragment.isdigit():
            return QAItem(host=host, item_type="answer", item_id=int(parsed.fragment))
        return QAItem(host=host, item_type="question", item_id=int(segments[1]))
    raise NotFoundError(f"No question or answer id in {url}")


class StackExchangeClient(BaseSourceAdapter):
    """
    Structured Q&A adapter.

    For a question, returns the question plus its accepted answer, following the
    answers pagination until the accepted answer is found. Without an accepted
    answer, the highest-scored answer of the first page is used instead.
    """

    kind = SourceKind.STRUCTURED_QA

    def __init__(
        self,
        api_prefix: str,
        api_key: str | None = None,
        *,
        timeout_s: float = 10.0,
        page_size: int = DEFAULT_PAGE_SIZE,
        max_answer_pages: int = DEFAULT_MAX_ANSWER_PAGES,
        http_client: httpx.Client | None = None,
    ):
        """
        Args:
            api_prefix: Versioned API root, e.g. https://api.stackexchange.com/2.3
            api_key: Optional quota key; anonymous quota applies without it
            page_size: Answers requested per page (API maximum is 100)
            max_answer_pages: Upper bound on pages walked looking for the accepted answer
        """
        super().__init__(timeout_s=timeout_s, http_client=http_client)
        self.api_prefix = api_prefix.rstrip("/")
        self.api_key = api_key
        self.page_size = max(1, min(page_size, 100))
        self.max_answer_pages = max(1, max_answer_pages)

    # ---------- HTTP ----------

    def _get(self, path: str, site: str, **params: Any) -> dict[str, Any]:
        query = {"site": site, **params}
        if self.api_key:
            query["key"] = self.api_key

        response = self.http.get(f"{self.api_prefix}{path}", params=query)

        if response.status_code == 429:
            raise RateLimitedError(
                "Stack Exchange API throttled the request",
                retry_after=self._retry_after(response),
                status_code=429,
            )

        try:
            payload = response.json()
        except ValueError:
            payload = None

        if isinstance(payload, dict) and payload.get("error_id") is not None:
            self._raise_api_error(payload, response)

        if response.status_code == 404:
            raise NotFoundError(f"{path} not found", status_code=404)
        if response.status_code >= 400 or not isinstance(payload, dict):
            raise UpstreamError(
                f"Stack Exchange API returned HTTP {response.status_code}",
                status_code=response.status_code,
            )

        if payload.get("backoff"):
            # The API asks callers to pause this method for the given seconds
            logger.warning(
                "Stack Exchange API requested backoff",
                extra=fields(path=path, backoff=payload["backoff"], quota_remaining=payload.get("quota_remaining")),
            )
        return payload

    def _raise_api_error(self, payload: dict[str, Any], response: httpx.Response) -> None:
        error_id = payload.get("error_id")
        message = payload.get("error_message") or payload.get("error_name") or "unknown error"
        if error_id == THROTTLE_VIOLATION:
            retry_after = self._retry_after(response)
            if retry_after is None and payload.get("backoff"):
                retry_after = float(payload["backoff"])
            match = _RETRY_IN_SECONDS.search(message)
            if retry_after is None and match:
                retry_after = float(match.group(1))
            raise RateLimitedError(f"Stack Exchange throttle violation: {message}", retry_after=retry_after)
        if error_id == 404 or response.status_code == 404:
            raise NotFoundError(f"Stack Exchange: {message}", error_id=error_id)
        raise UpstreamError(f"Stack Exchange error {error_id}: {message}", error_id=error_id)

    # ---------- items ----------

    def _question(self, item: QAItem, question_id: int) -> dict[str, Any]:
        payload = self._get(f"/questions/{question_id}", item.site, filter="withbody")
        items = payload.get("items") or []
        if not items:
            raise NotFoundError(f"Question {question_id} not found on {item.host}")
        question = items[0]
        question.setdefault("link", f"https://{item.host}/questions/{question_id}")
        return question

    def _answer(self, item: QAItem, answer_id: int) -> dict[str, Any]:
        payload = self._get(f"/answers/{answer_id}", item.site, filter="withbody")
        items = payload.get("items") or []
        if not items:
            raise NotFoundError(f"Answer {answer_id} not found on {item.host}")
        answer = items[0]
        answer.setdefault("link", f"https://{item.host}/a/{answer_id}")
        return answer

    def select_answer(self, site: str, question: dict[str, Any]) -> dict[str, Any] | None:
        """
        Pick the answer that represents this question.

        The accepted answer always wins, regardless of score. Pages are walked
        only while the question is known to have an accepted answer.
        """
        if not question.get("answer_count", 1):
            return None

        question_id = question["question_id"]
        expect_accepted = question.get("accepted_answer_id") is not None
        first_page: list[dict[str, Any]] | None = None

        for page in range(1, self.max_answer_pages + 1):
            payload = self._get(
                f"/questions/{question_id}/answers",
                site,
                filter="withbody",
                sort="votes",
                order="desc",
                page=page,
                pagesize=self.page_size,
            )
            items = payload.get("items") or []
            if first_page is None:
                first_page = items

            accepted = [a for a in items if a.get("is_accepted")]
            if accepted:
                return max(accepted, key=lambda a: a.get("score", 0))

            if not expect_accepted or not payload.get("has_more"):
                break
        else:
            logger.warning(
                "Accepted answer not found within page limit",
                extra=fields(site=site, question_id=question_id, max_pages=self.max_answer_pages),
            )

        if not first_page:
            return None
        return max(first_page, key=lambda a: a.get("score", 0))

    def _fetch(self, url: str) -> NormalizedDocument:
        item = parse_item(url)

        if item.item_type == "answer":
            answer = self._answer(item, item.item_id)
            question = self._question(item, answer["question_id"])
            return from_stackexchange(question, answer, answer_only=True)

        question = self._question(item, item.item_id)
        answer = self.select_answer(item.site, question)
        return from_stackexchange(question, answer)
