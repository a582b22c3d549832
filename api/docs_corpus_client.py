"""
Documentation corpus reader for a local checkout of the MDN content repository.

Path translation (the mdn/content on-disk layout):

    https://developer.mozilla.org/<locale>/docs/<slug>
        -> <root>/files/<locale lowercased>/<folder(slug)>/index.md
           (or index.html for older translated pages)

    folder(slug): on the URL-decoded slug, "*" -> "_star_", "::" -> "_doublecolon_",
    ":" -> "_colon_", "?" -> "_question_", then lowercase.

Query strings and fragments play no part in the mapping.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Any
from urllib.parse import unquote, urlsplit

import yaml
from bs4 import BeautifulSoup

from api.base_adapter import BaseSourceAdapter
from api.errors import MalformedSourceError, NotFoundError
from models.document import FailureReason, NormalizedDocument, SourceKind
from orchestrator.normalizer import DocsArticle, collapse_whitespace, from_docs_article
from utils.logger import fields, get_logger

logger = get_logger(__name__)

CANONICAL_BASE = "https://developer.mozilla.org"
INDEX_FILES = ("index.md", "index.html")

_FRONT_MATTER = re.compile(r"\A\ufeff?---[ \t]*\r?\n(.*?)\r?\n---[ \t]*(?:\r?\n|\Z)", re.DOTALL)
_CODE_FENCE = re.compile(r"^[ \t]*(```|~~~).*?^[ \t]*\1[ \t]*$", re.DOTALL | re.MULTILINE)
_HTML_COMMENT = re.compile(r"<!--.*?-->", re.DOTALL)
_MACRO = re.compile(r"\{\{\s*([A-Za-z_][\w-]*)\s*(?:\((.*?)\))?\s*\}\}", re.DOTALL)
_MACRO_ARG = re.compile(r"""(["'])(.*?)\1""")
_IMAGE = re.compile(r"!\[[^\]]*\]\([^)]*\)")
_LINK = re.compile(r"\[([^\]]+)\]\([^)]*\)")
_REF_LINK = re.compile(r"\[([^\]]+)\]\[[^\]]*\]")
_NOTE_MARKER = re.compile(r"^>\s*\[!\w+\]\s*$", re.MULTILINE)
_BLOCKQUOTE = re.compile(r"^>\s?", re.MULTILINE)
_EMPHASIS = re.compile(r"\*\*|__|`|\*(?=\S)|(?<=\S)\*")
_HEADING = re.compile(r"^(#{1,6})\s+(.*?)\s*#*\s*$")

# Macros that render page chrome or live samples rather than prose
BLOCK_MACROS = {
    "apiref",
    "compat",
    "specifications",
    "embedlivesample",
    "embedinteractiveexample",
    "interactiveexample",
    "sidebar",
    "jssidebar",
    "cssref",
    "htmlsidebar",
    "httpsidebar",
    "defaultapisidebar",
    "seecompattable",
    "securecontext_header",
    "availableinworkers",
    "previousnext",
    "previous",
    "next",
    "quicklinkswithsubpages",
    "listsubpages",
    "glossarysidebar",
    "learnsidebar",
}


def slug_to_folder(slug: str) -> str:
    return (
        slug
        .replace("*", "_star_")
        .replace("::", "_doublecolon_")
        .replace(":", "_colon_")
        .replace("?", "_question_")
        .lower()
    )


def _render_macro(match: re.Match) -> str:
    name = match.group(1).lower()
    if name in BLOCK_MACROS:
        return ""
    args = [value for _, value in _MACRO_ARG.findall(match.group(2) or "")]
    if not args:
        return ""
    # xref-style macros: optional second argument is the display text
    return args[1] if len(args) > 1 and args[1] else args[0]


def split_front_matter(text: str) -> tuple[dict[str, Any], str]:
    match = _FRONT_MATTER.match(text)
    if not match:
        raise MalformedSourceError("Missing or unterminated front-matter block")
    try:
        # Scalars stay as written: "title: 2024" is the title "2024"
        meta = yaml.load(match.group(1), Loader=yaml.BaseLoader)
    except yaml.YAMLError as e:
        raise MalformedSourceError(f"Front-matter is not valid YAML: {e}")
    if not isinstance(meta, dict):
        raise MalformedSourceError("Front-matter is not a mapping")
    return meta, text[match.end():]


def _drop_empty_headings(lines: list[str]) -> list[str]:
    kept: list[str] = []
    for idx, line in enumerate(lines):
        heading = _HEADING.match(line)
        if not heading:
            kept.append(line)
            continue
        level = len(heading.group(1))
        has_content = False
        for following in lines[idx + 1:]:
            if not following.strip():
                continue
            nxt = _HEADING.match(following)
            if nxt and len(nxt.group(1)) <= level:
                break
            if not nxt:
                has_content = True
                break
        if has_content:
            kept.append(heading.group(2))
    return kept


def markdown_to_prose(markdown: str) -> str:
    """Explanatory text of an MDN markdown body, code samples and macros removed."""
    text = _CODE_FENCE.sub("", markdown)
    text = _HTML_COMMENT.sub("", text)
    text = _MACRO.sub(_render_macro, text)
    text = _IMAGE.sub("", text)
    text = _LINK.sub(r"\1", text)
    text = _REF_LINK.sub(r"\1", text)
    text = _NOTE_MARKER.sub("", text)
    text = _BLOCKQUOTE.sub("", text)
    text = _EMPHASIS.sub("", text)
    # Inline HTML (tables, <kbd>, <sup>...) keeps only its text
    text = BeautifulSoup(text, "html.parser").get_text()
    return collapse_whitespace("\n".join(_drop_empty_headings(text.splitlines())))


def html_to_prose(markup: str) -> tuple[str, str]:
    """Title and article text of an HTML page, code samples removed."""
    soup = BeautifulSoup(markup, "html.parser")
    title_tag = soup.find("title") or soup.find("h1")
    title = title_tag.get_text(" ", strip=True) if title_tag else ""
    for tag in soup(["pre", "script", "style", "nav", "header", "footer", "aside", "title"]):
        tag.decompose()
    root = soup.find("article") or soup.find("main") or soup.find("body") or soup
    return title, collapse_whitespace(root.get_text("\n"))


class DocsCorpusClient(BaseSourceAdapter):
    """Reads documentation pages from a local mirror instead of the network."""

    kind = SourceKind.DOCUMENTATION_CORPUS
    uses_network = False
    default_failure_reason = FailureReason.MALFORMED_SOURCE

    def __init__(self, root: str | Path, *, timeout_s: float = 10.0):
        super().__init__(timeout_s=timeout_s)
        self.root = Path(root)
        if not self.enabled:
            logger.warning(
                "Documentation corpus root has no files/ directory; reader disabled",
                extra=fields(event="configuration_failure", root=str(self.root)),
            )

    @property
    def enabled(self) -> bool:
        return (self.root / "files").is_dir()

    def resolve_path(self, url: str) -> tuple[Path, str, str]:
        """
        Map a documentation URL to its file.

        Returns:
            (file path, locale as written in the URL, slug)

        Raises:
            NotFoundError: URL is not a docs URL or no file exists for it
        """
        raw = url.strip()
        if "://" not in raw:
            raw = "https://" + raw.lstrip("/")
        segments = [unquote(seg) for seg in urlsplit(raw).path.split("/") if seg]
        if len(segments) < 3 or segments[1].lower() != "docs":
            raise NotFoundError(f"Not a documentation URL: {url}")

        locale, slug = segments[0], "/".join(segments[2:])
        # Decoded segments may smuggle separators ("%2F..")
        parts = f"{locale}/{slug}".replace("\\", "/").split("/")
        if any(part in {"", ".", ".."} for part in parts):
            raise NotFoundError(f"Refusing path traversal in {url}")

        folder = self.root / "files" / locale.lower() / slug_to_folder(slug)
        for name in INDEX_FILES:
            candidate = folder / name
            if candidate.is_file():
                return candidate, locale, slug
        raise NotFoundError(f"No corpus file for {url}", path=str(folder))

    def read_article(self, url: str) -> DocsArticle:
        path, locale, slug = self.resolve_path(url)
        try:
            text = path.read_text(encoding="utf-8")
        except UnicodeDecodeError as e:
            raise MalformedSourceError(f"Corpus file is not UTF-8: {e}", path=str(path))

        if path.suffix == ".md":
            meta, body = split_front_matter(text)
            prose = markdown_to_prose(body)
            title = meta.get("title")
        else:
            meta, body = split_front_matter(text) if text.lstrip("\ufeff").startswith("---") else ({}, text)
            html_title, prose = html_to_prose(body)
            title = meta.get("title") or html_title

        if not isinstance(title, str) or not title:
            raise MalformedSourceError("Page does not declare a title", path=str(path))
        canonical_slug = meta.get("slug") if isinstance(meta.get("slug"), str) else slug
        return DocsArticle(
            url=f"{CANONICAL_BASE}/{locale}/docs/{canonical_slug}",
            title=title,
            body=prose,
            path=str(path),
        )

    def _fetch(self, url: str) -> NormalizedDocument:
        return from_docs_article(self.read_article(url))
