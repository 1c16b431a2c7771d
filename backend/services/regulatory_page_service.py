"""
Regulatory Page Service

Direct HTML retrieval for portal pages when Firecrawl is not configured.
Pages are reduced to plain text so they can be stored and analyzed like any
other report content.
"""

from typing import Optional, Dict, Any, TypedDict
import asyncio
import logging

import aiohttp
from bs4 import BeautifulSoup

from config.timeout_settings import get_timeout_for_operation
from exceptions import IngestionError

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/124.0 Safari/537.36"


class RegulatoryPage(TypedDict):
    url: str
    title: str
    text: str
    status_code: int
    content_type: str


def html_to_text(html: str) -> str:
    """Extract readable text from an HTML document, dropping page chrome."""
    soup = BeautifulSoup(html, "html.parser")
    for element in soup(["script", "style", "nav", "footer", "header", "aside"]):
        element.decompose()

    lines = (line.strip() for line in soup.get_text().splitlines())
    chunks = (phrase.strip() for line in lines for phrase in line.split("  "))
    return "\n".join(chunk for chunk in chunks if chunk)


def extract_title(html: str) -> str:
    soup = BeautifulSoup(html, "html.parser")
    title_tag = soup.find("title")
    if title_tag and title_tag.get_text(strip=True):
        return title_tag.get_text(strip=True)
    h1_tag = soup.find("h1")
    if h1_tag and h1_tag.get_text(strip=True):
        return h1_tag.get_text(strip=True)
    return "Untitled Page"


class RegulatoryPageService:
    """Fetches a portal page and returns its text content."""

    def __init__(self, user_agent: Optional[str] = None):
        self.timeout = get_timeout_for_operation("web_scraping")
        self.user_agent = user_agent or DEFAULT_USER_AGENT

    async def retrieve_page(self, url: str, params: Optional[Dict[str, Any]] = None) -> RegulatoryPage:
        """
        GET a page and reduce it to text.

        Raises:
            IngestionError: network failure or non-2xx status
        """
        headers = {
            "User-Agent": self.user_agent,
            "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
            "Accept-Language": "en-US,en;q=0.5",
        }
        try:
            async with aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout),
                headers=headers,
            ) as session:
                async with session.get(url, params=params, allow_redirects=True) as response:
                    body = await response.text(errors="ignore")
                    if response.status >= 400:
                        raise IngestionError(f"API request failed: {response.status}", status_code=response.status)
                    content_type = response.headers.get("content-type", "text/html")
                    final_url = str(response.url)
                    status = response.status
        except aiohttp.ClientError as e:
            logger.error(f"Error retrieving page {url}: {e}")
            raise IngestionError(f"Network error: {e}", status_code=502)
        except asyncio.TimeoutError:
            raise IngestionError(f"Request timed out after {self.timeout} seconds", status_code=504)

        logger.info(f"Retrieved {final_url} ({status}, {len(body)} bytes)")
        return RegulatoryPage(
            url=final_url,
            title=extract_title(body),
            text=html_to_text(body),
            status_code=status,
            content_type=content_type,
        )
