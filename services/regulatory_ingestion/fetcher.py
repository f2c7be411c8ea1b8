"""
Source Fetcher
==============

Retrieves regulatory source documents over HTTPS.

Fetch failures here are usually permanent (bad URL, source down), so nothing
is retried; the caller decides whether to run the job again.

Version: 0.1.0
"""

from dataclasses import dataclass
from datetime import UTC, datetime
from types import TracebackType

import httpx

from services.regulatory_ingestion.errors import FetchError
from services.regulatory_ingestion.models import SourceDocument
from shared.config import settings
from shared.logging import get_logger


logger = get_logger(__name__)


@dataclass
class FetcherConfig:
    """Configuration for the source fetcher."""

    user_agent: str = settings.ingestion.user_agent
    accept: str = "text/html,application/xhtml+xml"
    accept_language: str = "en"

    connect_timeout: float = settings.ingestion.connect_timeout
    read_timeout: float = settings.ingestion.read_timeout

    @property
    def headers(self) -> dict[str, str]:
        return {
            "User-Agent": self.user_agent,
            "Accept": self.accept,
            "Accept-Language": self.accept_language,
        }


class SourceFetcher:
    """
    Fetches source documents with a fixed identity header set.

    Usage:
        async with SourceFetcher() as fetcher:
            document = await fetcher.fetch(url)
    """

    def __init__(
        self,
        config: FetcherConfig | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """
        Initialize the fetcher.

        Args:
            config: Fetcher configuration
            client: Externally managed HTTP client; the fetcher will not close it
        """
        self.config = config or FetcherConfig()
        self._client = client
        self._owns_client = client is None

    def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            timeout = httpx.Timeout(
                connect=self.config.connect_timeout,
                read=self.config.read_timeout,
                write=30.0,
                pool=30.0,
            )
            self._client = httpx.AsyncClient(timeout=timeout, follow_redirects=True)
        return self._client

    async def close(self) -> None:
        """Close the HTTP client if this fetcher created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "SourceFetcher":
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()

    async def fetch(self, url: str) -> SourceDocument:
        """
        Fetch a document.

        Args:
            url: Document URL

        Returns:
            SourceDocument with the raw markup

        Raises:
            FetchError: On a non-2xx response or a transport failure
        """
        client = self._get_client()

        try:
            response = await client.get(url, headers=self.config.headers)
        except httpx.HTTPError as e:
            logger.error("source_fetch_failed", url=url, error=str(e))
            raise FetchError(url, None, str(e) or type(e).__name__, original_error=e) from e

        if not response.is_success:
            logger.error(
                "source_fetch_rejected",
                url=url,
                status=response.status_code,
                reason=response.reason_phrase,
            )
            raise FetchError(url, response.status_code, response.reason_phrase)

        logger.info(
            "source_fetched",
            url=url,
            status=response.status_code,
            chars=len(response.text),
        )

        return SourceDocument(
            url=url,
            raw_markup=response.text,
            fetched_at=datetime.now(UTC),
        )
