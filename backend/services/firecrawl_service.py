"""
Firecrawl Service

Scrapes JavaScript-heavy regulatory portals (FFIEC CDR, SEC EDGAR) through the
hosted Firecrawl API and returns markdown plus LLM-extracted structured data.
"""

from typing import Dict, Any, List, Optional, Union
import logging

import httpx

from config.settings import settings
from config.timeout_settings import get_timeout_for_operation
from exceptions import IngestionError

logger = logging.getLogger(__name__)

# Wait for client-side rendering before capturing the page
DEFAULT_WAIT_MS = 3000


class FirecrawlService:
    """Client for the Firecrawl /v1/scrape endpoint."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        api_url: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key if api_key is not None else settings.FIRECRAWL_API_KEY
        self.api_url = api_url or settings.FIRECRAWL_API_URL
        self.transport = transport
        self.timeout = get_timeout_for_operation("firecrawl")

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    async def scrape(
        self,
        url: str,
        formats: List[Union[str, Dict[str, Any]]],
        fallback_error: Optional[str] = None,
        **options: Any,
    ) -> Dict[str, Any]:
        """
        Scrape one page.

        Args:
            url: Page to scrape
            formats: Firecrawl output formats, e.g. ["markdown", {"type": "json", "prompt": ...}]
            fallback_error: Error message used when Firecrawl gives none;
                defaults to "Request failed with status N"
            **options: Extra request fields (extract, onlyMainContent, ...)

        Returns:
            Dict with json, extract, markdown and metadata keys (None where absent)

        Raises:
            IngestionError: Firecrawl not configured, or returned a non-2xx status
        """
        if not self.configured:
            raise IngestionError("Firecrawl connector not configured", status_code=500)

        body: Dict[str, Any] = {
            "url": url,
            "formats": formats,
            "onlyMainContent": True,
            "waitFor": DEFAULT_WAIT_MS,
        }
        body.update(options)

        logger.info(f"Firecrawl scrape: {url}")
        try:
            async with httpx.AsyncClient(transport=self.transport, timeout=self.timeout) as client:
                response = await client.post(
                    self.api_url,
                    json=body,
                    headers={
                        "Authorization": f"Bearer {self.api_key}",
                        "Content-Type": "application/json",
                    },
                )
        except httpx.RequestError as e:
            logger.error(f"Firecrawl request failed for {url}: {e}")
            raise IngestionError(f"Firecrawl request failed: {e}", status_code=502)

        try:
            payload = response.json()
        except ValueError:
            payload = {}

        if response.is_error:
            logger.error(f"Firecrawl API error {response.status_code} for {url}: {payload}")
            message = payload.get("error") or fallback_error or f"Request failed with status {response.status_code}"
            raise IngestionError(message, status_code=response.status_code)

        data = payload.get("data") or {}
        return {
            "json": data.get("json") or payload.get("json"),
            "extract": data.get("extract") or payload.get("extract"),
            "markdown": data.get("markdown") or payload.get("markdown"),
            "metadata": data.get("metadata") or payload.get("metadata"),
        }
