"""Convert each adapter's native result into a NormalizedDocument."""

from __future__ import annotations

import html
import re
from dataclasses import dataclass
from typing import Any

from bs4 import BeautifulSoup

from api.errors import MalformedSourceError, NotFoundError, SourceError
from models.document import NormalizedDocument, SourceKind

SECTION_RULE = "\n\n---\n"

_BLANK_LINES = re.compile(r"\n\s*\n+")
_INLINE_SPACE = re.compile(r"[ \t\u00a0]+")


@dataclass(frozen=True)
class DocsArticle:
    """Parsed documentation page, before normalization."""

    url: str
    title: str
    body: str
    path: str


def collapse_whitespace(text: str) -> str:
    lines = [_INLINE_SPACE.sub(" ", line).strip() for line in (text or "").splitlines()]
    return _BLANK_LINES.sub("\n\n", "\n".join(lines)).strip()


def html_to_text(markup: str) -> str:
    """Readable text from an HTML fragment; script/style/nav chrome removed."""
    if not markup:
        return ""
    soup = BeautifulSoup(markup, "html.parser")
    for tag in soup(["script", "style", "nav", "aside", "footer", "noscript"]):
        tag.decompose()
    for br in soup.find_all("br"):
        br.replace_with("\n")
    return collapse_whitespace(soup.get_text("\n"))


def build_document(
    kind: SourceKind,
    url: str,
    title: str,
    body: str,
    *,
    empty_error: type[SourceError] = MalformedSourceError,
) -> NormalizedDocument:
    """
    Create the document, enforcing the non-empty body invariant.

    A source that only yields metadata is a failure, so an empty body raises
    ``empty_error`` instead of producing a partial document.
    """
    body = collapse_whitespace(body)
    if not body:
        raise empty_error(f"No readable body at {url}", url=url)
    return NormalizedDocument(
        source_kind=kind,
        canonical_url=url,
        title=title or url,
        body_text=body,
    )


def from_docs_article(article: DocsArticle) -> NormalizedDocument:
    # Title is kept exactly as declared in front-matter
    return build_document(SourceKind.DOCUMENTATION_CORPUS, article.url, article.title, article.body)


def from_stackexchange(
    question: dict[str, Any],
    answer: dict[str, Any] | None,
    *,
    answer_only: bool = False,
) -> NormalizedDocument:
    """
    Args:
        question: Question item from the API (``filter=withbody``)
        answer: Selected answer item, or None when the question has no answers
        answer_only: The URL addressed a single answer; its body is the document
    """
    title = html.unescape(question.get("title") or "").strip()
    if answer_only:
        if not answer:
            raise NotFoundError("Answer has no body")
        url = answer.get("link") or question.get("link") or ""
        return build_document(SourceKind.STRUCTURED_QA, url, title, html_to_text(answer.get("body") or ""))

    parts = [html_to_text(question.get("body") or "")]
    if answer:
        label = "Accepted answer" if answer.get("is_accepted") else "Top answer"
        parts.append(f"{label} (score {answer.get('score', 0)}):\n{html_to_text(answer.get('body') or '')}")
    return build_document(
        SourceKind.STRUCTURED_QA,
        question.get("link") or "",
        title,
        SECTION_RULE.join(p for p in parts if p),
    )


def from_reddit(
    post: dict[str, Any],
    top_comment: dict[str, Any] | None,
    *,
    base_url: str = "https://www.reddit.com",
) -> NormalizedDocument:
    selftext = (post.get("selftext") or "").strip()
    parts = [selftext] if selftext else []
    if top_comment and (top_comment.get("body") or "").strip():
        parts.append(
            f"Top comment by u/{top_comment.get('author', '[deleted]')} "
            f"(score {top_comment.get('score', 0)}):\n{top_comment['body'].strip()}"
        )
    if not parts:
        # Title and link alone are metadata, not readable content
        raise NotFoundError("Post has neither text nor comments")

    if not post.get("is_self") and post.get("url"):
        parts.insert(0, f"Link: {post['url']}")

    permalink = post.get("permalink") or ""
    url = f"{base_url}{permalink}" if permalink.startswith("/") else permalink
    return build_document(
        SourceKind.SOCIAL_DISCUSSION,
        url,
        (post.get("title") or "").strip(),
        SECTION_RULE.join(parts),
        empty_error=NotFoundError,
    )


def from_extraction(payload: dict[str, Any], requested_url: str) -> NormalizedDocument:
    """Generic extractor output is returned verbatim apart from trimming."""
    body = (payload.get("textContent") or "").strip()
    if not body:
        raise NotFoundError(f"Extractor found no readable content at {requested_url}")
    url = payload.get("url") or requested_url
    return NormalizedDocument(
        source_kind=SourceKind.GENERIC_EXTERNAL,
        canonical_url=url,
        title=(payload.get("title") or "").strip() or url,
        body_text=body,
    )
