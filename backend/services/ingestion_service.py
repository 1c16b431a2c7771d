"""
Ingestion Service

Pulls regulatory data from the supported portals (FFIEC CDR, FRED, SEC EDGAR,
FDIC BankFind) or a custom JSON API and returns it in one common envelope.

Routing per portal:
    ffiec/sec + Firecrawl key   -> Firecrawl scrape with structured extraction
    ffiec, no Firecrawl key     -> direct page fetch reduced to text
    sec with a CIK              -> EDGAR submissions JSON
    fred /series/observations   -> FRED observations
    fdic /financials            -> BankFind financials
    anything else               -> direct GET, JSON or text by content type
"""

from typing import Dict, Any, Optional
import asyncio
import json
import logging

import httpx
import requests

from config.timeout_settings import get_timeout_for_operation
from exceptions import IngestionError
from schemas.api_connection import Portal
from schemas.ingestion import (
    FetchApiRequest,
    IngestionEnvelope,
    ScrapeRequest,
    ScrapeResponse,
    MetricRequest,
    MetricData,
    MetricResponse,
)
from services.fdic_service import FdicService, KNOWN_CERT_NUMBERS, records_to_markdown
from services.firecrawl_service import FirecrawlService
from services.fred_service import FredService, resolve_series, observations_to_markdown
from services.regulatory_page_service import RegulatoryPageService
from services.sec_edgar_service import SecEdgarService, filings_to_markdown, get_sec_edgar_service
from utils.date_utils import utc_now_iso
from utils.string_utils import parse_percent

logger = logging.getLogger(__name__)


PORTAL_CONFIGS: Dict[str, Dict[str, Any]] = {
    "ffiec": {
        "base_url": "https://cdr.ffiec.gov/public",
        "endpoints": {
            "callReport": "/ManageFacsimiles.aspx",
            "ubpr": "/ManageFacsimiles.aspx",
            "nicSearch": "/NIC/NICSearchProxy.aspx",
        },
    },
    "fred": {
        "base_url": "https://api.stlouisfed.org/fred",
        "endpoints": {
            "series": "/series/observations",
            "search": "/series/search",
        },
    },
    "sec": {
        "base_url": "https://www.sec.gov/cgi-bin",
        "endpoints": {
            "edgar": "/browse-edgar",
            "search": "/srch-ia",
        },
    },
    "fdic": {
        "base_url": "https://banks.data.fdic.gov/api",
        "endpoints": {
            "institutions": "/institutions",
            "sod": "/sod",
            "financials": "/financials",
        },
    },
}

FFIEC_EXTRACT_SCHEMA = {
    "type": "object",
    "properties": {
        "institutionName": {"type": "string"},
        "rssdId": {"type": "string"},
        "reportingPeriod": {"type": "string"},
        "metrics": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "name": {"type": "string"},
                    "value": {"type": "string"},
                    "period": {"type": "string"},
                },
            },
        },
        "tables": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "title": {"type": "string"},
                    "data": {"type": "array"},
                },
            },
        },
    },
}
FFIEC_EXTRACT_PROMPT = "Extract financial metrics, institution details, and any tabular data from this regulatory report page."

FFIEC_CDR_URL = "https://cdr.ffiec.gov/public/ManageFacsimiles.aspx"

# scrape-regulatory-data extraction prompts
SCRAPE_PROMPTS = {
    "ffiec": "Extract all financial metrics including Tier 1 Capital Ratio, CET1 Ratio, Net Interest Margin, Return on Assets, Return on Equity, Efficiency Ratio, NPL Ratio, and Liquidity Coverage Ratio. Include the reporting period and institution name.",
    "fred": "Extract the latest value, date, previous values for the last 8 quarters, percentage change, and any trend information for this economic indicator.",
    "sec": "Extract filing dates, form types (10-K, 10-Q), document links, and key financial highlights from the most recent filings.",
    "fdic": "Extract total deposits by branch, market share data, deposit trends by region, and any comparative market data.",
}

# Per-metric drill-down sources: metric id -> (source label, url, extraction prompt)
METRIC_SOURCES: Dict[str, Dict[str, str]] = {
    "nim": {
        "source": "FFIEC CDR",
        "url": FFIEC_CDR_URL,
        "prompt": "Extract Net Interest Margin (NIM) data including quarterly values for the last 8 quarters, year-over-year comparison, and peer group median.",
    },
    "tier1": {
        "source": "FFIEC CDR",
        "url": FFIEC_CDR_URL,
        "prompt": "Extract Tier 1 Capital Ratio data including quarterly values, regulatory thresholds, and peer comparison.",
    },
    "cet1": {
        "source": "FFIEC CDR",
        "url": FFIEC_CDR_URL,
        "prompt": "Extract Common Equity Tier 1 (CET1) Ratio data with quarterly trends and regulatory minimums.",
    },
    "roa": {
        "source": "FFIEC UBPR",
        "url": FFIEC_CDR_URL,
        "prompt": "Extract Return on Assets (ROA) percentages for recent quarters with peer group comparison.",
    },
    "roe": {
        "source": "FFIEC UBPR",
        "url": FFIEC_CDR_URL,
        "prompt": "Extract Return on Equity (ROE) data with trend analysis and peer benchmarking.",
    },
    "efficiency": {
        "source": "FFIEC Call Report",
        "url": FFIEC_CDR_URL,
        "prompt": "Extract Efficiency Ratio (non-interest expense / total revenue) with quarterly breakdown.",
    },
    "npl": {
        "source": "FFIEC CDR",
        "url": FFIEC_CDR_URL,
        "prompt": "Extract Non-Performing Loan (NPL) ratio data including classified assets and trend.",
    },
    "lcr": {
        "source": "FR 2052a",
        "url": "https://www.federalreserve.gov/apps/reportingforms/Report/Index/FR_2052a",
        "prompt": "Extract Liquidity Coverage Ratio (LCR) data with high-quality liquid assets breakdown.",
    },
    "ldr": {
        "source": "FFIEC Call Report",
        "url": FFIEC_CDR_URL,
        "prompt": "Extract Loan-to-Deposit Ratio with total loans, total deposits, and quarterly trend.",
    },
    "cof": {
        "source": "FRED / UBPR",
        "url": "https://fred.stlouisfed.org/series/FEDFUNDS",
        "prompt": "Extract Cost of Funds data including deposit rates, borrowing costs, and Fed Funds comparison.",
    },
    "acl_coverage": {
        "source": "FFIEC FRY-9C",
        "url": FFIEC_CDR_URL,
        "prompt": "Extract Allowance for Credit Losses to NPL ratio with CECL reserve adequacy metrics.",
    },
}

PERIOD_SERIES_SCHEMA = {
    "type": "array",
    "items": {
        "type": "object",
        "properties": {
            "period": {"type": "string"},
            "value": {"type": "number"},
        },
    },
}

METRIC_JSON_SCHEMA = {
    "type": "object",
    "properties": {
        "metricName": {"type": "string"},
        "currentValue": {"type": "number"},
        "unit": {"type": "string"},
        "quarterlyData": PERIOD_SERIES_SCHEMA,
        "yearlyData": PERIOD_SERIES_SCHEMA,
        "peerMedian": {"type": "number"},
        "regulatoryMinimum": {"type": "number"},
        "reportingPeriod": {"type": "string"},
    },
}


def scrape_target_url(source: str, rssd_id: Optional[str] = None, metric: Optional[str] = None, bank_name: Optional[str] = None) -> str:
    """Public page scraped for a source."""
    if source == "ffiec":
        if rssd_id:
            return f"{FFIEC_CDR_URL}?IdRssd={rssd_id}"
        return "https://cdr.ffiec.gov/public/PWS/DownloadBulkData.aspx"
    if source == "fred":
        return f"https://fred.stlouisfed.org/series/{resolve_series(metric)}"
    if source == "sec":
        company = "+".join(bank_name.split()) if bank_name else "Mizuho"
        return f"https://www.sec.gov/cgi-bin/browse-edgar?action=getcompany&company={company}&type=10-K&dateb=&owner=include&count=10"
    if source == "fdic":
        if rssd_id:
            return f"https://www7.fdic.gov/sod/sodInstBranch.asp?baression={rssd_id}"
        return "https://www7.fdic.gov/sod/sodInstBranchFind.asp"
    raise IngestionError(f"Unknown source: {source}", status_code=400)


def has_data(data: Any, markdown: Optional[str]) -> bool:
    if markdown:
        return True
    if isinstance(data, (dict, list, str)):
        return len(data) > 0
    return data is not None


class IngestionService:
    """Service for fetching data from regulatory portals."""

    def __init__(
        self,
        firecrawl: Optional[FirecrawlService] = None,
        fdic: Optional[FdicService] = None,
        fred: Optional[FredService] = None,
        sec: Optional[SecEdgarService] = None,
        pages: Optional[RegulatoryPageService] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.firecrawl = firecrawl or FirecrawlService()
        self.fdic = fdic or FdicService(transport=transport)
        self.fred = fred
        self.sec = sec or get_sec_edgar_service()
        self.pages = pages or RegulatoryPageService()
        self.transport = transport

    # =========================================================================
    # fetch-api-data
    # =========================================================================

    async def fetch_api_data(self, request: FetchApiRequest) -> IngestionEnvelope:
        """
        Fetch data from a portal or custom API.

        Raises:
            IngestionError: invalid request (400) or upstream failure (upstream status)
        """
        portal = request.portal.value if isinstance(request.portal, Portal) else str(request.portal)

        if portal == Portal.CUSTOM.value:
            if not request.base_url:
                raise IngestionError("Base URL required for custom API", status_code=400, portal=portal)
            base_url = request.base_url
            endpoint = request.endpoint or ""
        else:
            config = PORTAL_CONFIGS.get(portal)
            if not config:
                raise IngestionError(f"Unknown portal: {portal}", status_code=400, portal=portal)
            base_url = request.base_url or config["base_url"]
            endpoint = request.endpoint or next(iter(config["endpoints"].values()))

        url = f"{base_url.rstrip('/')}{endpoint}" if endpoint else base_url
        params: Dict[str, Any] = dict(request.query_params or {})
        if request.rssd_id:
            params["IdRssd"] = request.rssd_id

        logger.info(f"Fetching {portal} data from {url}", extra={"portal": portal})

        if portal in (Portal.FFIEC.value, Portal.SEC.value) and self.firecrawl.configured:
            result = await self._fetch_with_firecrawl(url, params)
        elif portal == Portal.FFIEC.value:
            result = await self._fetch_page(url, params)
        elif portal == Portal.SEC.value and params.get("CIK"):
            result = await self._fetch_sec_filings(str(params["CIK"]))
        elif portal == Portal.FRED.value and endpoint == "/series/observations" and params.get("series_id"):
            result = await self._fetch_fred_series(str(params["series_id"]), request.api_key)
        elif portal == Portal.FDIC.value and endpoint == "/financials" and request.rssd_id:
            result = await self._fetch_fdic_financials(request.rssd_id)
        else:
            if portal == Portal.FRED.value and request.api_key:
                params["api_key"] = request.api_key
                params.setdefault("file_type", "json")
            result = await self._direct_get(url, params, portal, request.api_key, request.headers)

        return IngestionEnvelope(
            success=True,
            data=result.get("data"),
            markdown=result.get("markdown"),
            data_available=has_data(result.get("data"), result.get("markdown")),
            metadata=result.get("metadata"),
            portal=portal,
            fetched_at=utc_now_iso(),
        )

    async def _fetch_with_firecrawl(self, url: str, params: Dict[str, Any]) -> Dict[str, Any]:
        target = str(httpx.URL(url, params=params)) if params else url
        scraped = await self.firecrawl.scrape(
            target,
            formats=["markdown", "extract"],
            fallback_error="Failed to scrape page",
            extract={"schema": FFIEC_EXTRACT_SCHEMA, "prompt": FFIEC_EXTRACT_PROMPT},
        )
        return {
            "data": scraped.get("extract") or {},
            "markdown": scraped.get("markdown"),
            "metadata": scraped.get("metadata"),
        }

    async def _fetch_page(self, url: str, params: Dict[str, Any]) -> Dict[str, Any]:
        page = await self.pages.retrieve_page(url, params=params or None)
        return {
            "data": {"title": page["title"]},
            "markdown": page["text"],
            "metadata": {"status": page["status_code"], "contentType": page["content_type"], "url": page["url"]},
        }

    async def _fetch_sec_filings(self, cik: str) -> Dict[str, Any]:
        try:
            filings = await asyncio.to_thread(self.sec.get_recent_filings, cik)
        except requests.HTTPError as e:
            status = e.response.status_code if e.response is not None else 502
            raise IngestionError(f"API request failed: {status}", status_code=status, portal="sec")
        except requests.RequestException as e:
            raise IngestionError(f"SEC EDGAR request failed: {e}", status_code=502, portal="sec")
        return {
            "data": filings,
            "markdown": filings_to_markdown(filings),
            "metadata": {"status": 200, "contentType": "application/json", "url": f"https://data.sec.gov/submissions/CIK{filings['cik']}.json"},
        }

    async def _fetch_fred_series(self, series_id: str, api_key: Optional[str]) -> Dict[str, Any]:
        fred = self.fred or FredService(api_key=api_key, transport=self.transport)
        observations = await fred.get_observations(series_id)
        return {
            "data": {"seriesId": series_id, "observations": observations},
            "markdown": observations_to_markdown(series_id, observations),
            "metadata": {"status": 200, "contentType": "application/json", "url": f"https://fred.stlouisfed.org/series/{series_id}"},
        }

    async def _fetch_fdic_financials(self, rssd_id: str) -> Dict[str, Any]:
        cert = KNOWN_CERT_NUMBERS.get(rssd_id)
        filters = f"CERT:{cert}" if cert else f"RSSDID:{rssd_id}"
        try:
            records = await self.fdic.get_financials(filters, limit=8)
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            raise IngestionError(f"API request failed: {status}", status_code=status, portal="fdic")
        except httpx.RequestError as e:
            raise IngestionError(f"FDIC request failed: {e}", status_code=502, portal="fdic")
        except ValueError as e:
            raise IngestionError(f"Invalid JSON from FDIC: {e}", status_code=502, portal="fdic")
        return {
            "data": records,
            "markdown": records_to_markdown(records),
            "metadata": {"status": 200, "contentType": "application/json", "url": "https://banks.data.fdic.gov/api/financials"},
        }

    async def _direct_get(
        self,
        url: str,
        params: Dict[str, Any],
        portal: str,
        api_key: Optional[str],
        headers: Optional[Dict[str, str]],
    ) -> Dict[str, Any]:
        request_headers = {"Accept": "application/json", **(headers or {})}
        if api_key and portal != Portal.FRED.value:
            request_headers["Authorization"] = f"Bearer {api_key}"

        timeout = get_timeout_for_operation("custom_api" if portal == Portal.CUSTOM.value else portal)
        try:
            async with httpx.AsyncClient(transport=self.transport, timeout=timeout) as client:
                response = await client.get(url, params=params, headers=request_headers)
        except httpx.RequestError as e:
            logger.error(f"{portal} request failed: {e}", extra={"portal": portal})
            raise IngestionError(f"API request failed: {e}", status_code=502, portal=portal)

        if response.is_error:
            logger.error(f"{portal} API error: {response.status_code}", extra={"portal": portal})
            raise IngestionError(f"API request failed: {response.status_code}", status_code=response.status_code, portal=portal)

        content_type = response.headers.get("content-type", "")
        if "application/json" in content_type:
            try:
                data = response.json()
            except ValueError as e:
                logger.error(f"{portal} returned invalid JSON: {e}", extra={"portal": portal})
                raise IngestionError(f"Invalid JSON response: {e}", status_code=502, portal=portal)
        else:
            data = response.text

        return {
            "data": data,
            "markdown": None,
            "metadata": {"status": response.status_code, "contentType": content_type, "url": str(response.url)},
        }

    # =========================================================================
    # scrape-regulatory-data
    # =========================================================================

    async def scrape_regulatory_data(self, request: ScrapeRequest) -> ScrapeResponse:
        """Scrape a public portal page with Firecrawl JSON extraction."""
        if not self.firecrawl.configured:
            logger.error("FIRECRAWL_API_KEY not configured")
            raise IngestionError("Firecrawl connector not configured", status_code=500, portal=request.source)

        url = scrape_target_url(request.source, request.rssd_id, request.metric, request.bank_name)
        logger.info(f"Scraping {request.source} from URL: {url}", extra={"portal": request.source})

        try:
            scraped = await self.firecrawl.scrape(
                url,
                formats=["markdown", {"type": "json", "prompt": SCRAPE_PROMPTS[request.source]}],
            )
        except IngestionError as e:
            raise IngestionError(e.message, status_code=e.status_code, portal=request.source,
                                 details={"source": request.source, "url": url})

        return ScrapeResponse(
            success=True,
            source=request.source,
            url=url,
            scraped_at=utc_now_iso(),
            data=scraped.get("json"),
            markdown=scraped.get("markdown"),
            metadata=scraped.get("metadata"),
        )

    # =========================================================================
    # fetch-metric-data
    # =========================================================================

    async def fetch_metric_data(self, request: MetricRequest) -> MetricResponse:
        """Drill-down history for one dashboard metric."""
        if not self.firecrawl.configured:
            raise IngestionError("Firecrawl connector not configured", status_code=500)

        config = METRIC_SOURCES.get(request.metric_id)
        if not config:
            raise IngestionError(f"Unknown metric: {request.metric_id}", status_code=400)

        url = config["url"]
        if "ffiec" in url and request.rssd_id:
            url = f"{url}?IdRssd={request.rssd_id}"

        logger.info(f"Fetching {request.metric_id} from: {url}")
        scraped = await self.firecrawl.scrape(
            url,
            formats=["markdown", {"type": "json", "schema": METRIC_JSON_SCHEMA, "prompt": config["prompt"]}],
        )

        extracted = scraped.get("json") or {}
        data = MetricData(
            metric_name=extracted.get("metricName") or request.metric_id.upper(),
            current_value=parse_percent(extracted.get("currentValue")),
            unit=extracted.get("unit") or "%",
            quarterly_data=(extracted.get("quarterlyData") or [])[-request.periods:],
            yearly_data=extracted.get("yearlyData") or [],
            peer_median=parse_percent(extracted.get("peerMedian")),
            regulatory_minimum=parse_percent(extracted.get("regulatoryMinimum")),
            reporting_period=extracted.get("reportingPeriod"),
        )

        return MetricResponse(
            success=True,
            metric_id=request.metric_id,
            source=config["source"],
            url=url,
            scraped_at=utc_now_iso(),
            data=data,
            raw_markdown=scraped.get("markdown"),
        )


def serialize_payload(envelope: IngestionEnvelope) -> str:
    """Text stored as report raw_content for a fetched envelope: markdown if present, else JSON of data."""
    if envelope.markdown:
        return envelope.markdown
    if isinstance(envelope.data, str):
        return envelope.data
    return json.dumps(envelope.data, indent=2, default=str)


def get_ingestion_service() -> IngestionService:
    return IngestionService()
