"""Client for a Scrapper reader-mode extraction service."""

import httpx

from api.base_adapter import BaseSourceAdapter
from api.errors import NotFoundError, ServiceUnavailableError
from models.document import FailureReason, NormalizedDocument, SourceKind
from orchestrator.normalizer import from_extraction


class ScrapperClient(BaseSourceAdapter):
    """
    Generic extraction adapter.

    Sends the page URL to ``{host}/api/article`` and returns the extracted
    title and text as they come back.
    """

    kind = SourceKind.GENERIC_EXTERNAL
    default_failure_reason = FailureReason.SERVICE_UNAVAILABLE

    def __init__(self, host: str | None, *, timeout_s: float = 30.0, http_client: httpx.Client | None = None):
        """
        Args:
            host: Base URL of the service, e.g. http://scrapper:3000. None disables the adapter.
        """
        super().__init__(timeout_s=timeout_s, http_client=http_client)
        self.host = host.rstrip("/") if host else None

    @property
    def enabled(self) -> bool:
        return self.host is not None

    def _fetch(self, url: str) -> NormalizedDocument:
        if not self.enabled:
            raise ServiceUnavailableError("Generic extraction service is not configured")

        response = self.http.get(f"{self.host}/api/article", params={"url": url, "cache": "no"})

        if response.status_code in (404, 410, 422):
            raise NotFoundError(
                f"Extraction service could not read {url} (HTTP {response.status_code})",
                status_code=response.status_code,
            )
        if response.status_code >= 300:
            raise ServiceUnavailableError(
                f"Extraction service returned HTTP {response.status_code}",
                status_code=response.status_code,
            )
        try:
            payload = response.json()
        except ValueError:
            raise ServiceUnavailableError("Extraction service returned a non-JSON body")
        if not isinstance(payload, dict):
            raise ServiceUnavailableError("Extraction service returned an unexpected body")

        return from_extraction(payload, url)
