"""
Content Fetch Module
====================

Async client for the Firecrawl v2 REST API. Single pages go through
``POST /scrape``; multi-page sources start a ``POST /crawl`` job and poll
``GET /crawl/{id}`` until it finishes.

Fetch failures never raise to the orchestrator: they come back in
``FetchResult.error`` and count as zero content for the source.
"""

from __future__ import annotations

import asyncio
import logging
import os
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

import httpx

from booth_beacon.core.enums import FetchMode
from booth_beacon.core.errors import ConfigurationError, FetchError
from booth_beacon.ingestion.retry import RetryPolicy, retry_async

if TYPE_CHECKING:
    from booth_beacon.ingestion.registry import SourceConfig

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.firecrawl.dev/v2"

# Status codes worth another attempt
_RETRYABLE_STATUS = {408, 429, 500, 502, 503, 504}


@dataclass
class FetchedPage:
    """Markdown of one page."""

    url: str
    markdown: str


@dataclass
class FetchResult:
    """Result of fetching a source."""

    url: str
    pages: list[FetchedPage] = field(default_factory=list)
    error: str | None = None
    fetched_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @property
    def success(self) -> bool:
        """Check if fetch was successful."""
        return self.error is None

    @property
    def markdown(self) -> str:
        """All page markdown joined with page separators."""
        return "\n\n---\n\n".join(
            f"<!-- {page.url} -->\n{page.markdown}" if len(self.pages) > 1 else page.markdown
            for page in self.pages
        )

    @property
    def content_length(self) -> int:
        return sum(len(page.markdown) for page in self.pages)


class FirecrawlClient:
    """
    Firecrawl v2 client over httpx.

    Each HTTP call is wrapped in the fetch retry policy. Transport errors
    and retryable status codes trigger another attempt; other 4xx
    responses do not.
    """

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 60.0,
        retry_policy: RetryPolicy | None = None,
        poll_interval: float = 5.0,
        poll_timeout: float = 600.0,
        transport: httpx.AsyncBaseTransport | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self.api_key = api_key or os.environ.get("FIRECRAWL_API_KEY")
        if not self.api_key:
            raise ConfigurationError(
                "Firecrawl API key not found. Set FIRECRAWL_API_KEY environment variable."
            )
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.retry_policy = retry_policy or RetryPolicy()
        self.poll_interval = poll_interval
        self.poll_timeout = poll_timeout
        self._transport = transport
        self._sleep = sleep

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
            transport=self._transport,
            headers={
                "Authorization": f"Bearer {self.api_key}",
                "Content-Type": "application/json",
            },
        )

    async def _request(
        self,
        client: httpx.AsyncClient,
        method: str,
        url: str,
        payload: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        async def attempt() -> dict[str, Any]:
            response = await client.request(method, url, json=payload)
            if response.status_code in _RETRYABLE_STATUS:
                raise _TransientFetchError(f"{method} {url} returned {response.status_code}")
            if response.status_code >= 400:
                raise FetchError(
                    f"{method} {url} returned {response.status_code}: {response.text[:200]}"
                )
            return response.json()

        return await retry_async(
            attempt,
            self.retry_policy,
            retry_on=(httpx.TransportError, _TransientFetchError),
            label=f"Firecrawl {method} {url}",
            sleep=self._sleep,
        )

    async def fetch(self, source: SourceConfig) -> FetchResult:
        """
        Fetch a configured source in its configured mode.

        Args:
            source: Source configuration

        Returns:
            FetchResult with page markdown, or an error
        """
        if source.mode == FetchMode.CRAWL:
            return await self.crawl(
                source.url,
                include_paths=source.include_paths,
                exclude_paths=source.exclude_paths,
                limit=source.page_limit,
            )
        return await self.scrape(source.url)

    async def scrape(self, url: str) -> FetchResult:
        """
        Scrape a single page as markdown.

        Args:
            url: Page URL

        Returns:
            FetchResult with one page, or an error
        """
        payload = {"url": url, "formats": ["markdown"], "onlyMainContent": True}
        try:
            async with self._client() as client:
                data = await self._request(client, "POST", "/scrape", payload)
        except (httpx.HTTPError, FetchError, ValueError) as e:
            logger.warning(f"Scrape failed for {url}: {e}")
            return FetchResult(url=url, error=str(e))

        if not data.get("success", True):
            return FetchResult(url=url, error=data.get("error") or "scrape unsuccessful")

        page = data.get("data") or {}
        markdown = page.get("markdown") or ""
        if not markdown.strip():
            return FetchResult(url=url, error="empty content")
        page_url = (page.get("metadata") or {}).get("sourceURL") or url
        logger.info(f"Scraped {url} ({len(markdown)} chars)")
        return FetchResult(url=url, pages=[FetchedPage(url=page_url, markdown=markdown)])

    async def crawl(
        self,
        url: str,
        include_paths: list[str] | None = None,
        exclude_paths: list[str] | None = None,
        limit: int = 50,
    ) -> FetchResult:
        """
        Crawl a site and collect page markdown.

        Args:
            url: Start URL
            include_paths: Path globs to follow
            exclude_paths: Path globs to skip
            limit: Maximum pages

        Returns:
            FetchResult with one entry per non-empty page, or an error
        """
        payload: dict[str, Any] = {
            "url": url,
            "limit": limit,
            "scrapeOptions": {"formats": ["markdown"], "onlyMainContent": True},
        }
        if include_paths:
            payload["includePaths"] = include_paths
        if exclude_paths:
            payload["excludePaths"] = exclude_paths

        try:
            async with self._client() as client:
                started = await self._request(client, "POST", "/crawl", payload)
                job_id = started.get("id") or started.get("jobId")
                if not job_id:
                    return FetchResult(url=url, error=f"No crawl job id in response: {started}")
                logger.info(f"Started crawl {job_id} for {url}")
                documents = await self._poll_crawl(client, job_id)
        except (httpx.HTTPError, FetchError, ValueError) as e:
            logger.warning(f"Crawl failed for {url}: {e}")
            return FetchResult(url=url, error=str(e))

        pages = []
        for doc in documents:
            markdown = doc.get("markdown") or ""
            if not markdown.strip():
                continue
            page_url = (doc.get("metadata") or {}).get("sourceURL") or doc.get("url") or url
            pages.append(FetchedPage(url=page_url, markdown=markdown))

        if not pages:
            return FetchResult(url=url, error="crawl returned no content")
        logger.info(f"Crawled {url}: {len(pages)} pages")
        return FetchResult(url=url, pages=pages)

    async def _poll_crawl(self, client: httpx.AsyncClient, job_id: str) -> list[dict[str, Any]]:
        deadline = time.monotonic() + self.poll_timeout
        while time.monotonic() < deadline:
            data = await self._request(client, "GET", f"/crawl/{job_id}")
            status = data.get("status", "")
            logger.debug(
                f"Crawl {job_id}: status={status} {data.get('completed', '?')}/{data.get('total', '?')}"
            )
            if status == "completed":
                documents = list(data.get("data") or [])
                next_url = data.get("next")
                while next_url:
                    page = await self._request(client, "GET", next_url)
                    documents.extend(page.get("data") or [])
                    next_url = page.get("next")
                return documents
            if status in ("failed", "cancelled"):
                raise FetchError(f"Crawl {job_id} ended with status '{status}'")
            await self._sleep(self.poll_interval)

        raise FetchError(f"Crawl {job_id} timed out after {self.poll_timeout}s")


class _TransientFetchError(FetchError):
    """A fetch failure worth another attempt."""
