import os
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from dotenv import load_dotenv

from utils.logger import get_logger

logger = get_logger(__name__)

DEFAULT_STACKEXCHANGE_API_PREFIX = "https://api.stackexchange.com/2.3"
DEFAULT_REDDIT_USER_AGENT = "research-relay/1.0"
DEFAULT_UPSTREAM_TIMEOUT_SECONDS = 10.0


class SearchProvider(Enum):
    """Supported search providers."""
    GOOGLE = "google"
    TAVILY = "tavily"


@dataclass(frozen=True)
class SearchProviderConfig:
    provider: SearchProvider
    google_engine_id: str | None = None
    google_api_key: str | None = None
    tavily_api_key: str | None = None


@dataclass(frozen=True)
class StackExchangeConfig:
    api_prefix: str = DEFAULT_STACKEXCHANGE_API_PREFIX
    # Optional: without it the anonymous per-IP quota applies
    api_key: str | None = None


@dataclass(frozen=True)
class DocsCorpusConfig:
    root: Path


@dataclass(frozen=True)
class RedditCredentials:
    client_id: str
    client_secret: str
    username: str
    password: str
    user_agent: str = DEFAULT_REDDIT_USER_AGENT

    def __repr__(self) -> str:
        return f"RedditCredentials(client_id={self.client_id!r}, username={self.username!r})"


@dataclass(frozen=True)
class ScrapperConfig:
    host: str


def _optional(env: Mapping[str, str], name: str) -> str | None:
    """Read an env var, treating unset and blank as the same "absent" value."""
    value = (env.get(name) or "").strip()
    return value or None


class Config:
    """
    Configuration for search and retrieval, loaded once at startup.

    Each source owns one optional field. ``None`` means the source is not
    configured; the Q&A source is always present because its key is optional.
    """

    def __init__(self, env: Mapping[str, str] | None = None):
        if env is None:
            # Load environment variables from .env file if it exists
            env_path = Path(__file__).parent.parent / ".env"
            if env_path.exists():
                load_dotenv(dotenv_path=env_path)
            env = os.environ

        provider_name = (_optional(env, "SEARCH_PROVIDER") or SearchProvider.GOOGLE.value).lower()
        try:
            provider = SearchProvider(provider_name)
        except ValueError:
            raise ValueError(
                f"Unknown SEARCH_PROVIDER '{provider_name}'. "
                f"Must be one of: {', '.join(p.value for p in SearchProvider)}"
            )

        self.search = SearchProviderConfig(
            provider=provider,
            google_engine_id=_optional(env, "GOOGLE_SEARCH_ENGINE_ID"),
            google_api_key=_optional(env, "GOOGLE_SEARCH_API_KEY"),
            tavily_api_key=_optional(env, "TAVILY_API_KEY"),
        )

        self.stackexchange = StackExchangeConfig(
            api_prefix=(_optional(env, "STACKEXCHANGE_API_PREFIX") or DEFAULT_STACKEXCHANGE_API_PREFIX).rstrip("/"),
            api_key=_optional(env, "STACKEXCHANGE_API_KEY"),
        )

        corpus_root = _optional(env, "DOCS_CORPUS_ROOT")
        self.docs_corpus = DocsCorpusConfig(root=Path(corpus_root)) if corpus_root else None

        reddit_values = {
            name: _optional(env, name)
            for name in ("REDDIT_CLIENT_ID", "REDDIT_CLIENT_SECRET", "REDDIT_USERNAME", "REDDIT_PASSWORD")
        }
        if all(reddit_values.values()):
            self.reddit = RedditCredentials(
                client_id=reddit_values["REDDIT_CLIENT_ID"],
                client_secret=reddit_values["REDDIT_CLIENT_SECRET"],
                username=reddit_values["REDDIT_USERNAME"],
                password=reddit_values["REDDIT_PASSWORD"],
                user_agent=_optional(env, "REDDIT_USER_AGENT") or DEFAULT_REDDIT_USER_AGENT,
            )
        else:
            self.reddit = None
            missing = [name for name, value in reddit_values.items() if not value]
            if len(missing) < len(reddit_values):
                # Partially configured: almost certainly an operator mistake
                logger.warning(
                    "Reddit credentials incomplete; social discussion source disabled",
                    extra={"extra_fields": {"event": "configuration_failure", "missing": missing}},
                )

        scrapper_host = _optional(env, "SCRAPPER_HOST")
        self.scrapper = ScrapperConfig(host=scrapper_host.rstrip("/")) if scrapper_host else None

        self.upstream_timeout_s = float(
            _optional(env, "UPSTREAM_TIMEOUT_SECONDS") or DEFAULT_UPSTREAM_TIMEOUT_SECONDS
        )
        self.source_registry_path = _optional(env, "SOURCE_REGISTRY_PATH")

    def validate(self) -> bool:
        """
        Check that the selected search provider has its credentials.

        Retrieval sources never fail validation: a missing source is disabled instead.

        Returns:
            bool: True if configuration is valid, False otherwise
        """
        if self.search.provider == SearchProvider.GOOGLE:
            if not (self.search.google_engine_id and self.search.google_api_key):
                logger.error("GOOGLE_SEARCH_ENGINE_ID and GOOGLE_SEARCH_API_KEY must both be set")
                return False
        elif self.search.provider == SearchProvider.TAVILY:
            if not self.search.tavily_api_key:
                logger.error("TAVILY_API_KEY is not set")
                return False
        return True

    def describe_sources(self) -> dict[str, bool]:
        """Which retrieval sources are enabled by this configuration."""
        return {
            "documentation_corpus": self.docs_corpus is not None,
            "structured_qa": True,
            "structured_qa_quota_key": self.stackexchange.api_key is not None,
            "social_discussion": self.reddit is not None,
            "generic_external": self.scrapper is not None,
        }
