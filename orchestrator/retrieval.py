"""
RetrievalOrchestrator - routes a URL to the right source adapter.

Key guarantees:
- No exceptions bubble up from retrieve()
- A specialized adapter's document is returned unchanged and ends the request
- Each adapter is invoked at most once per retrieve(); retries belong to the caller
- On exhaustion the specialized adapter's failure is preferred over the generic one
"""

from __future__ import annotations

import dataclasses
import time

from api.base_adapter import BaseSourceAdapter
from api.docs_corpus_client import DocsCorpusClient
from api.reddit_client import RedditClient
from api.scrapper_client import ScrapperClient
from api.stackexchange_client import StackExchangeClient
from config.config import Config
from models.document import (
    AttemptRecord,
    FailureReason,
    FetchFailure,
    FetchOutcome,
    NormalizedDocument,
    RetrievalRequest,
    RetrievalResult,
    SourceKind,
)
from orchestrator.fallback_policy import FallbackManager, FallbackPolicy, NextAction
from orchestrator.source_identifier import SourceIdentifier
from utils.logger import fields, get_logger

logger = get_logger(__name__)


class RetrievalOrchestrator:
    def __init__(
        self,
        identifier: SourceIdentifier,
        adapters: dict[SourceKind, BaseSourceAdapter],
        generic: ScrapperClient | None = None,
        *,
        policy: FallbackPolicy | None = None,
        fallback_manager: FallbackManager | None = None,
    ):
        """
        Args:
            identifier: URL classifier, built with only the enabled kinds active
            adapters: Specialized adapters keyed by the kind they serve
            generic: Generic extraction client; None or disabled means no fallback
        """
        self._identifier = identifier
        self._adapters = dict(adapters)
        self._generic = generic
        self._policy = policy or FallbackPolicy()
        self._fallback_manager = fallback_manager or FallbackManager()

    @classmethod
    def from_config(cls, config: Config, *, policy: FallbackPolicy | None = None) -> "RetrievalOrchestrator":
        timeout = config.upstream_timeout_s
        adapters: dict[SourceKind, BaseSourceAdapter] = {
            SourceKind.STRUCTURED_QA: StackExchangeClient(
                config.stackexchange.api_prefix, config.stackexchange.api_key, timeout_s=timeout
            ),
        }
        if config.docs_corpus is not None:
            adapters[SourceKind.DOCUMENTATION_CORPUS] = DocsCorpusClient(config.docs_corpus.root, timeout_s=timeout)
        if config.reddit is not None:
            adapters[SourceKind.SOCIAL_DISCUSSION] = RedditClient(config.reddit, timeout_s=timeout)

        generic = ScrapperClient(config.scrapper.host if config.scrapper else None, timeout_s=timeout)

        enabled_kinds = [kind for kind, adapter in adapters.items() if adapter.enabled]
        identifier = SourceIdentifier.from_yaml(config.source_registry_path, enabled_kinds=enabled_kinds)

        logger.info(
            "Retrieval orchestrator initialized",
            extra=fields(
                enabled_sources=[k.value for k in enabled_kinds],
                generic_extraction=generic.enabled,
                quota_key=config.stackexchange.api_key is not None,
            ),
        )
        return cls(identifier, adapters, generic, policy=policy)

    # ---------- helpers ----------

    @property
    def identifier(self) -> SourceIdentifier:
        return self._identifier

    @property
    def generic_enabled(self) -> bool:
        return self._generic is not None and self._generic.enabled

    def classify(self, url: str) -> SourceKind:
        return self._identifier.classify(url)

    def _invoke(self, adapter: BaseSourceAdapter, url: str, attempts: list[AttemptRecord]) -> FetchOutcome:
        start_time = time.time()
        outcome = adapter.fetch(url)
        attempts.append(
            AttemptRecord(
                source_kind=adapter.kind,
                reason="ok" if outcome.is_success else outcome.failure.reason.value,
                latency_ms=int((time.time() - start_time) * 1000),
            )
        )
        return outcome

    def _report_configuration_failure(self, url: str, failure: FetchFailure) -> None:
        logger.warning(
            "Configuration-class failure from specialized adapter",
            extra=fields(
                event="configuration_failure",
                url=url,
                source_kind=failure.source_kind.value,
                reason=failure.reason.value,
                message=failure.message,
            ),
        )

    # ---------- public API ----------

    def retrieve(self, request: str | RetrievalRequest) -> RetrievalResult:
        """
        Fetch readable content for a URL.

        Never raises: unexpected errors become an UPSTREAM_ERROR failure.
        """
        if not isinstance(request, RetrievalRequest):
            request = RetrievalRequest(url=request)

        try:
            return self._retrieve(request)
        except Exception as e:
            logger.exception("retrieve() failed", extra=fields(url=request.url))
            return RetrievalResult(
                request=request,
                classified_as=SourceKind.UNKNOWN,
                failure=FetchFailure(
                    reason=FailureReason.UPSTREAM_ERROR,
                    message=f"Internal retrieval error: {type(e).__name__}",
                    source_kind=SourceKind.UNKNOWN,
                ),
            )

    def _retrieve(self, request: RetrievalRequest) -> RetrievalResult:
        url = request.url
        if not url:
            return RetrievalResult(
                request=request,
                classified_as=SourceKind.UNKNOWN,
                failure=FetchFailure(FailureReason.NOT_FOUND, "Empty URL", SourceKind.UNKNOWN),
            )

        kind = self._identifier.classify(url)
        if request.source_hint is not None and request.source_hint != kind:
            logger.info(
                "Source hint disagrees with classification",
                extra=fields(url=url, source_hint=request.source_hint.value, source_kind=kind.value),
            )

        attempts: list[AttemptRecord] = []
        configuration_failures: list[FetchFailure] = []
        specialized_failure: FetchFailure | None = None

        adapter = self._adapters.get(kind)
        if adapter is not None and adapter.enabled:
            outcome = self._invoke(adapter, url, attempts)
            if outcome.is_success:
                return RetrievalResult(
                    request=request, classified_as=kind, document=outcome.document, attempts=attempts
                )
            specialized_failure = outcome.failure
            if specialized_failure.is_configuration_failure:
                configuration_failures.append(specialized_failure)
                self._report_configuration_failure(url, specialized_failure)

        decision = self._fallback_manager.decide(
            classified_as=kind,
            failure=specialized_failure,
            generic_enabled=self.generic_enabled,
            policy=self._policy,
        )

        generic_failure: FetchFailure | None = None
        if decision.action == NextAction.TRY_GENERIC:
            logger.info(
                "Falling back to generic extraction",
                extra=fields(url=url, source_kind=kind.value, reason=decision.reason),
            )
            outcome = self._invoke(self._generic, url, attempts)
            if outcome.is_success:
                return RetrievalResult(
                    request=request,
                    classified_as=kind,
                    document=self._with_search_title(outcome.document, request),
                    attempts=attempts,
                    configuration_failures=configuration_failures,
                )
            generic_failure = outcome.failure

        failure = specialized_failure or generic_failure
        if failure is None:
            failure = FetchFailure(
                reason=FailureReason.SERVICE_UNAVAILABLE,
                message="No retrieval strategy is available for this URL",
                source_kind=kind,
            )

        logger.warning(
            "Retrieval exhausted",
            extra=fields(
                url=url,
                source_kind=kind.value,
                reason=failure.reason.value,
                decision=decision.reason,
                attempts=[a.reason for a in attempts],
            ),
        )
        return RetrievalResult(
            request=request,
            classified_as=kind,
            failure=failure,
            attempts=attempts,
            configuration_failures=configuration_failures,
        )

    @staticmethod
    def _with_search_title(document: NormalizedDocument, request: RetrievalRequest) -> NormalizedDocument:
        """Use the search result title when the extractor found none."""
        search_title = (request.search_title or "").strip()
        if search_title and document.title == document.canonical_url:
            return dataclasses.replace(document, title=search_title)
        return document

    def close(self) -> None:
        for adapter in self._adapters.values():
            adapter.close()
        if self._generic is not None:
            self._generic.close()
