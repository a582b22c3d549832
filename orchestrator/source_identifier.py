from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import urlsplit

import yaml

from models.document import SourceKind

# The identifier only routes to specialized adapters
ROUTABLE_KINDS = {
    SourceKind.DOCUMENTATION_CORPUS,
    SourceKind.STRUCTURED_QA,
    SourceKind.SOCIAL_DISCUSSION,
}


@dataclass(frozen=True)
class UrlParts:
    host: str
    segments: tuple[str, ...]


@dataclass(frozen=True)
class SourceRule:
    kind: SourceKind
    hosts: frozenset[str]
    host_suffixes: tuple[str, ...] = ()
    # Each prefix is a tuple of lowercase segments; "*" matches any one segment
    path_prefixes: tuple[tuple[str, ...], ...] = ()

    def matches(self, parts: UrlParts) -> bool:
        if parts.host not in self.hosts and not any(parts.host.endswith(s) for s in self.host_suffixes):
            return False
        if not self.path_prefixes:
            return True
        return any(_prefix_matches(prefix, parts.segments) for prefix in self.path_prefixes)


def _prefix_matches(prefix: tuple[str, ...], segments: tuple[str, ...]) -> bool:
    if len(segments) < len(prefix):
        return False
    return all(p == "*" or p == s for p, s in zip(prefix, segments))


def _split_prefix(prefix: str) -> tuple[str, ...]:
    return tuple(seg.lower() for seg in prefix.split("/") if seg)


def split_url(url: str) -> UrlParts | None:
    """
    Host and lowercase path segments of ``url``.

    Accepts URLs without a scheme; query, fragment, port, credentials, a leading
    "www." and trailing slashes are ignored. Returns None when there is no host.
    """
    raw = (url or "").strip()
    if not raw:
        return None
    if "://" not in raw:
        raw = "https://" + raw.lstrip("/")
    try:
        parsed = urlsplit(raw)
        host = (parsed.hostname or "").rstrip(".")
    except ValueError:
        return None
    if not host:
        return None
    if host.startswith("www."):
        host = host[4:]
    segments = tuple(seg.lower() for seg in parsed.path.split("/") if seg)
    return UrlParts(host=host, segments=segments)


class SourceIdentifier:
    """
    Classify URLs into a SourceKind from host and path prefix alone.

    Rules are kept in configuration order and only rules for enabled kinds are
    active, so a disabled source's URLs come back as UNKNOWN.
    """

    def __init__(self, rules: Iterable[SourceRule], enabled_kinds: Iterable[SourceKind] | None = None):
        enabled = set(ROUTABLE_KINDS if enabled_kinds is None else enabled_kinds)
        self._rules = [rule for rule in rules if rule.kind in enabled]

    @classmethod
    def from_yaml(
        cls, path: str | None = None, enabled_kinds: Iterable[SourceKind] | None = None
    ) -> "SourceIdentifier":
        registry_path = (
            Path(path) if path else Path(__file__).resolve().parent.parent / "config" / "source_registry.yaml"
        )
        if not registry_path.exists():
            raise ValueError(f"Source registry not found at {registry_path}")

        data = yaml.safe_load(registry_path.read_text(encoding="utf-8"))
        if not data or "sources" not in data:
            raise ValueError("Invalid source registry: missing sources")

        rules: list[SourceRule] = []
        for entry in data["sources"]:
            if "kind" not in entry or not (entry.get("hosts") or entry.get("host_suffixes")):
                raise ValueError(f"Source rule needs a kind and at least one host: {entry}")
            kind = SourceKind(entry["kind"])
            if kind not in ROUTABLE_KINDS:
                raise ValueError(f"Source kind {kind.value} cannot be routed by URL")
            rules.append(
                SourceRule(
                    kind=kind,
                    hosts=frozenset(h.lower() for h in entry.get("hosts", [])),
                    host_suffixes=tuple(s.lower() for s in entry.get("host_suffixes", [])),
                    path_prefixes=tuple(_split_prefix(p) for p in entry.get("path_prefixes", [])),
                )
            )
        return cls(rules, enabled_kinds=enabled_kinds)

    @property
    def rules(self) -> list[SourceRule]:
        return list(self._rules)

    def classify(self, url: str) -> SourceKind:
        parts = split_url(url)
        if parts is None:
            return SourceKind.UNKNOWN
        for rule in self._rules:
            if rule.matches(parts):
                return rule.kind
        return SourceKind.UNKNOWN
