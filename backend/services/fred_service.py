"""
FRED Service

Async client for Federal Reserve Economic Data series observations.
"""

from typing import Dict, Any, List, Optional
import logging

import httpx

from config.settings import settings
from config.timeout_settings import get_timeout_for_operation
from exceptions import IngestionError

logger = logging.getLogger(__name__)

FRED_API_URL = "https://api.stlouisfed.org/fred"

# Dashboard indicator keys -> FRED series IDs
FRED_SERIES_MAP: Dict[str, str] = {
    "fed_funds": "FEDFUNDS",
    "treasury_10y": "GS10",
    "treasury_2y": "GS2",
    "unemployment": "UNRATE",
    "gdp": "GDP",
    "inflation": "CPIAUCSL",
}
DEFAULT_SERIES = "FEDFUNDS"


def resolve_series(metric: Optional[str]) -> str:
    """Map an indicator key to its FRED series; unknown or empty keys give FEDFUNDS."""
    if not metric:
        return DEFAULT_SERIES
    return FRED_SERIES_MAP.get(metric, DEFAULT_SERIES)


def observations_to_markdown(series_id: str, observations: List[Dict[str, Any]]) -> str:
    lines = [f"## FRED series {series_id}", "", "| Date | Value |", "|---|---|"]
    lines.extend(f"| {o.get('date', '')} | {o.get('value', '')} |" for o in observations)
    return "\n".join(lines)


class FredService:
    """Service for the FRED series/observations endpoint."""

    def __init__(self, api_key: Optional[str] = None, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.api_key = api_key or settings.FRED_API_KEY
        self.transport = transport
        self.timeout = get_timeout_for_operation("fred")

    async def get_observations(self, series_id: str, limit: int = 8) -> List[Dict[str, Any]]:
        """
        Most recent observations for a series, newest first.

        Raises:
            IngestionError: no API key configured, or the API rejected the request
        """
        if not self.api_key:
            raise IngestionError("FRED API key not configured", status_code=500, portal="fred")

        params = {
            "series_id": series_id,
            "api_key": self.api_key,
            "file_type": "json",
            "sort_order": "desc",
            "limit": str(limit),
        }
        try:
            async with httpx.AsyncClient(transport=self.transport, timeout=self.timeout) as client:
                response = await client.get(f"{FRED_API_URL}/series/observations", params=params)
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPStatusError as e:
            logger.error(f"FRED API error for {series_id}: {e.response.status_code}")
            raise IngestionError(f"API request failed: {e.response.status_code}", status_code=e.response.status_code, portal="fred")
        except httpx.RequestError as e:
            logger.error(f"FRED request failed for {series_id}: {e}")
            raise IngestionError(f"FRED request failed: {e}", portal="fred")
        except ValueError as e:
            logger.error(f"FRED returned invalid JSON for {series_id}: {e}")
            raise IngestionError(f"Invalid JSON from FRED: {e}", status_code=502, portal="fred")

        observations = data.get("observations", [])
        logger.info(f"Fetched {len(observations)} FRED observations for {series_id}")
        return observations
