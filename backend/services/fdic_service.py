"""
FDIC BankFind Service

Thin async client for the FDIC BankFind Suite API (https://banks.data.fdic.gov/api).
Used for peer financials and as the FDIC ingestion adapter.
"""

from typing import Dict, Any, List, Optional, Tuple
import logging

import httpx

from config.timeout_settings import get_timeout_for_operation
from schemas.ingestion import PeerMetricValues
from utils.date_utils import format_fdic_period
from utils.string_utils import safe_number

logger = logging.getLogger(__name__)

BANKFIND_API_URL = "https://banks.data.fdic.gov/api"

FINANCIAL_FIELDS = "REPNM,ASSET,DEP,NETINC,EQ,ROA,ROE,NIMY,EEFFR,NCLNLSR,IDT1RWAJR,RBCRWAJ,REPDTE"

# RSSD ID -> FDIC certificate number for the reference bank set
KNOWN_CERT_NUMBERS: Dict[str, str] = {
    "852218": "628",     # JPMorgan Chase Bank
    "480228": "3510",    # Bank of America
    "476810": "7213",    # Citibank
    "451965": "3511",    # Wells Fargo Bank
    "2182786": "33124",  # Goldman Sachs Bank USA
    "1456501": "32992",  # Morgan Stanley Bank
    "504713": "6548",    # U.S. Bank
    "817824": "6384",    # PNC Bank
    "852320": "9846",    # Truist Bank
    "497404": "24838",   # TD Bank
    "413208": "57890",   # HSBC Bank USA
    "134687": "32536",   # MUFG Union Bank
    "623806": "21843",   # Mizuho Bank (USA)
}

# Columns rendered when an FDIC financials record is turned into markdown
MARKDOWN_FIELDS = [
    ("REPNM", "Institution"),
    ("REPDTE", "Report Date"),
    ("ASSET", "Total Assets ($000)"),
    ("DEP", "Total Deposits ($000)"),
    ("EQ", "Total Equity ($000)"),
    ("NETINC", "Net Income ($000)"),
    ("ROA", "ROA (%)"),
    ("ROE", "ROE (%)"),
    ("NIMY", "Net Interest Margin (%)"),
    ("EEFFR", "Efficiency Ratio (%)"),
    ("NCLNLSR", "Noncurrent Loans / Loans (%)"),
    ("IDT1RWAJR", "Tier 1 Risk-Based Capital Ratio (%)"),
    ("RBCRWAJ", "Total Risk-Based Capital Ratio (%)"),
]


def extract_metrics(record: Dict[str, Any]) -> PeerMetricValues:
    """Map an FDIC financials record onto dashboard metric keys.

    BankFind basic financials expose neither CET1 nor LCR.
    """
    return PeerMetricValues(
        roa=safe_number(record.get("ROA")),
        roe=safe_number(record.get("ROE")),
        nim=safe_number(record.get("NIMY")),
        efficiency=safe_number(record.get("EEFFR")),
        npl=safe_number(record.get("NCLNLSR")),
        tier1=safe_number(record.get("IDT1RWAJR")),
        cet1=None,
        lcr=None,
        total_assets=safe_number(record.get("ASSET")),
    )


def records_to_markdown(records: List[Dict[str, Any]]) -> str:
    """Render financials records as a markdown table for the report store."""
    if not records:
        return ""
    header = "| " + " | ".join(label for _, label in MARKDOWN_FIELDS) + " |"
    divider = "|" + "---|" * len(MARKDOWN_FIELDS)
    rows = [
        "| " + " | ".join(str(r.get(field, "")) for field, _ in MARKDOWN_FIELDS) + " |"
        for r in records
    ]
    return "\n".join(["## FDIC BankFind Financials", "", header, divider, *rows])


class FdicService:
    """Service for the FDIC BankFind financials API."""

    def __init__(self, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.transport = transport
        self.timeout = get_timeout_for_operation("fdic")

    async def get_financials(
        self,
        filters: str,
        fields: str = FINANCIAL_FIELDS,
        limit: int = 1,
    ) -> List[Dict[str, Any]]:
        """
        Query /financials, newest report first.

        Args:
            filters: BankFind filter expression, e.g. "CERT:628"
            fields: Comma separated field list
            limit: Max records

        Returns:
            List of flat record dicts (the API's {"data": {...}} wrappers are unwrapped)

        Raises:
            httpx.HTTPStatusError: non-2xx response
            httpx.RequestError: network failure or timeout
        """
        params = {
            "filters": filters,
            "fields": fields,
            "sort_by": "REPDTE",
            "sort_order": "DESC",
            "limit": str(limit),
            "format": "json",
        }
        async with httpx.AsyncClient(transport=self.transport, timeout=self.timeout) as client:
            response = await client.get(
                f"{BANKFIND_API_URL}/financials",
                params=params,
                headers={"Accept": "application/json"},
            )
            response.raise_for_status()
            payload = response.json()

        return [item.get("data", item) if isinstance(item, dict) else item for item in payload.get("data", [])]

    async def fetch_latest_financials(
        self, rssd_id: str, cert_number: Optional[str] = None
    ) -> Tuple[PeerMetricValues, Optional[str], Optional[str]]:
        """
        Latest financials for one institution.

        Looks up by certificate number (given or known), falling back to an
        RSSDID filter when no certificate is known.

        Returns:
            (metrics, period, error) - error is None on success
        """
        cert = cert_number or KNOWN_CERT_NUMBERS.get(rssd_id)

        if not cert:
            try:
                records = await self.get_financials(f"RSSDID:{rssd_id}", fields=f"CERT,{FINANCIAL_FIELDS}")
                if records:
                    r = records[0]
                    return extract_metrics(r), format_fdic_period(r.get("REPDTE")), None
            except (httpx.HTTPError, ValueError) as e:
                logger.error(f"FDIC RSSD lookup failed for {rssd_id}: {e}")
            return PeerMetricValues(), None, f"No cert number found for RSSD {rssd_id}"

        logger.info(f"Fetching FDIC data for cert {cert} (RSSD: {rssd_id})")
        try:
            records = await self.get_financials(f"CERT:{cert}")
        except httpx.HTTPStatusError as e:
            return PeerMetricValues(), None, f"FDIC API returned {e.response.status_code}"
        except (httpx.RequestError, ValueError) as e:
            logger.error(f"FDIC fetch error for cert {cert}: {e}")
            return PeerMetricValues(), None, str(e) or "FDIC fetch failed"

        if not records:
            return PeerMetricValues(), None, "No financial data found"

        r = records[0]
        return extract_metrics(r), format_fdic_period(r.get("REPDTE")), None
