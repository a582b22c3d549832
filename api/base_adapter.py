import time
from abc import ABC, abstractmethod

import httpx

from api.errors import SourceError
from models.document import FailureReason, FetchOutcome, NormalizedDocument, SourceKind
from utils.logger import fields, get_logger

logger = get_logger(__name__)


class BaseSourceAdapter(ABC):
    """
    Abstract base class for source adapters.

    One adapter handles exactly one SourceKind. Subclasses implement ``_fetch``
    and raise ``api.errors.SourceError`` subclasses for expected failures.
    ``fetch`` is the public entry point and never raises.
    """

    kind: SourceKind = SourceKind.UNKNOWN
    uses_network: bool = True
    # Reason reported for timeouts, transport errors and unexpected exceptions
    default_failure_reason: FailureReason = FailureReason.UPSTREAM_ERROR

    def __init__(self, *, timeout_s: float, http_client: httpx.Client | None = None, headers: dict | None = None):
        """
        Args:
            timeout_s: Timeout applied to every upstream call
            http_client: Pre-built client (tests pass one backed by httpx.MockTransport)
            headers: Default headers for the client this adapter creates
        """
        self.timeout_s = timeout_s
        self._headers = headers or {}
        self._owns_client = http_client is None
        if http_client is None and self.uses_network:
            http_client = httpx.Client(timeout=timeout_s, headers=self._headers, follow_redirects=True)
        self._http = http_client

    @property
    def http(self) -> httpx.Client:
        if self._http is None:
            raise RuntimeError(f"{type(self).__name__} does not make network calls")
        return self._http

    @property
    def enabled(self) -> bool:
        return True

    @abstractmethod
    def _fetch(self, url: str) -> NormalizedDocument:
        """Retrieve and normalize the document behind ``url``."""

    def fetch(self, url: str) -> FetchOutcome:
        """
        Retrieve ``url`` from this source.

        IMPORTANT: Never raises exceptions - returns a FetchOutcome with a failure instead
        """
        start_time = time.time()
        try:
            document = self._fetch(url)
            outcome = FetchOutcome.success(document)
        except SourceError as e:
            outcome = FetchOutcome.fail(
                e.reason, e.message, self.kind, retry_after=e.retry_after, details=e.details
            )
        except httpx.TimeoutException as e:
            outcome = FetchOutcome.fail(
                self.default_failure_reason,
                f"Upstream call timed out after {self.timeout_s}s",
                self.kind,
                details={"error_type": type(e).__name__},
            )
        except httpx.HTTPError as e:
            outcome = FetchOutcome.fail(
                self.default_failure_reason,
                f"Upstream transport error: {e}",
                self.kind,
                details={"error_type": type(e).__name__},
            )
        except Exception as e:
            logger.exception("Adapter raised unexpectedly", extra=fields(url=url, source_kind=self.kind.value))
            outcome = FetchOutcome.fail(
                self.default_failure_reason,
                f"Unexpected adapter error: {type(e).__name__}",
                self.kind,
                details={"error_type": type(e).__name__},
            )

        latency_ms = self._measure_latency(start_time)
        if outcome.is_success:
            logger.info(
                "Adapter fetch succeeded",
                extra=fields(url=url, source_kind=self.kind.value, latency_ms=latency_ms),
            )
        else:
            logger.info(
                "Adapter fetch failed",
                extra=fields(
                    url=url,
                    source_kind=self.kind.value,
                    reason=outcome.failure.reason.value,
                    message=outcome.failure.message,
                    latency_ms=latency_ms,
                ),
            )
        return outcome

    def close(self) -> None:
        if self._owns_client and self._http is not None:
            self._http.close()

    @staticmethod
    def _measure_latency(start_time: float) -> int:
        return int((time.time() - start_time) * 1000)

    @staticmethod
    def _retry_after(response: httpx.Response, header: str = "Retry-After") -> float | None:
        value = response.headers.get(header)
        if value is None:
            return None
        try:
            return max(0.0, float(value))
        except ValueError:
            return None
