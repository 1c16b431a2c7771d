"""
SEC EDGAR Service

Wrapper for the EDGAR submissions API (https://data.sec.gov/submissions).
EDGAR requires a descriptive User-Agent and allows 10 requests per second.
"""

import requests
import logging
import time
from typing import List, Dict, Any, Optional

from config.settings import settings
from config.timeout_settings import get_timeout_for_operation

logger = logging.getLogger(__name__)

SUBMISSIONS_URL = "https://data.sec.gov/submissions/CIK{cik}.json"
COMPANY_TICKERS_URL = "https://www.sec.gov/files/company_tickers.json"
ARCHIVES_URL = "https://www.sec.gov/Archives/edgar/data/{cik}/{accession}/{document}"

# Rate limiting
REQUESTS_PER_SECOND = 8  # Stay under the 10/s limit
MIN_REQUEST_INTERVAL = 1.0 / REQUESTS_PER_SECOND

PERIODIC_FORMS = ("10-K", "10-Q")


class SecEdgarService:
    """Service for interacting with SEC EDGAR."""

    def __init__(self, user_agent: Optional[str] = None):
        self.user_agent = user_agent or settings.SEC_USER_AGENT
        self.timeout = get_timeout_for_operation("sec_edgar")
        self._last_request_time = 0.0

    def _rate_limit(self):
        """Enforce rate limiting between requests."""
        elapsed = time.time() - self._last_request_time
        if elapsed < MIN_REQUEST_INTERVAL:
            time.sleep(MIN_REQUEST_INTERVAL - elapsed)
        self._last_request_time = time.time()

    def _get_json(self, url: str) -> Dict[str, Any]:
        self._rate_limit()
        response = requests.get(
            url,
            headers={"User-Agent": self.user_agent, "Accept": "application/json"},
            timeout=self.timeout,
        )
        response.raise_for_status()
        return response.json()

    def find_cik(self, company: str) -> Optional[str]:
        """
        Resolve a company name or ticker to a CIK.

        Returns:
            Zero-padded 10 digit CIK, or None if nothing matches
        """
        needle = company.strip().lower()
        if not needle:
            return None

        tickers = self._get_json(COMPANY_TICKERS_URL)
        for entry in tickers.values():
            if entry.get("ticker", "").lower() == needle or needle in entry.get("title", "").lower():
                return str(entry["cik_str"]).zfill(10)
        return None

    def get_recent_filings(
        self,
        cik: str,
        forms: tuple = PERIODIC_FORMS,
        max_results: int = 10,
    ) -> Dict[str, Any]:
        """
        Recent periodic filings for a registrant.

        Args:
            cik: Central Index Key (padding optional)
            forms: Form types to keep
            max_results: Max filings returned

        Returns:
            Dict with company name, cik and a filings list
            (form, filingDate, reportDate, accessionNumber, url)

        Raises:
            requests.HTTPError: EDGAR returned a non-2xx status
        """
        cik = str(cik).zfill(10)
        submissions = self._get_json(SUBMISSIONS_URL.format(cik=cik))
        recent = submissions.get("filings", {}).get("recent", {})

        filings: List[Dict[str, Any]] = []
        for i, form in enumerate(recent.get("form", [])):
            if form not in forms:
                continue
            accession = recent["accessionNumber"][i]
            document = recent.get("primaryDocument", [""] * (i + 1))[i]
            filings.append({
                "form": form,
                "filingDate": recent.get("filingDate", [None] * (i + 1))[i],
                "reportDate": recent.get("reportDate", [None] * (i + 1))[i],
                "accessionNumber": accession,
                "url": ARCHIVES_URL.format(
                    cik=int(cik),
                    accession=accession.replace("-", ""),
                    document=document,
                ),
            })
            if len(filings) >= max_results:
                break

        logger.info(f"EDGAR: {len(filings)} periodic filings for CIK {cik}")
        return {"company": submissions.get("name"), "cik": cik, "filings": filings}


def filings_to_markdown(result: Dict[str, Any]) -> str:
    lines = [
        f"## SEC filings: {result.get('company') or result.get('cik')}",
        "",
        "| Form | Filed | Period | Document |",
        "|---|---|---|---|",
    ]
    for f in result.get("filings", []):
        lines.append(f"| {f['form']} | {f.get('filingDate') or ''} | {f.get('reportDate') or ''} | {f['url']} |")
    return "\n".join(lines)


_sec_edgar_service: Optional[SecEdgarService] = None


def get_sec_edgar_service() -> SecEdgarService:
    """Get or create the SEC EDGAR service singleton."""
    global _sec_edgar_service
    if _sec_edgar_service is None:
        _sec_edgar_service = SecEdgarService()
    return _sec_edgar_service
