"""
Ingestion schemas - requests to regulatory portals and the common response envelope.

Wire format is camelCase (rssdId, fetchedAt, dataAvailable); Python attributes are snake_case.
"""

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from typing import Optional, List, Dict, Any, Literal

from schemas.api_connection import Portal


class CamelModel(BaseModel):
    """Base for schemas exchanged in camelCase."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# =============================================================================
# fetch-api-data
# =============================================================================

class FetchApiRequest(CamelModel):
    portal: Portal
    connection_id: Optional[str] = None
    base_url: Optional[str] = None
    endpoint: Optional[str] = None
    rssd_id: Optional[str] = None
    api_key: Optional[str] = None
    headers: Optional[Dict[str, str]] = None
    query_params: Optional[Dict[str, str]] = None


class IngestionEnvelope(CamelModel):
    """Common shape every ingestion adapter returns."""
    success: bool
    data: Any = None
    markdown: Optional[str] = None
    data_available: bool = False
    metadata: Optional[Dict[str, Any]] = None
    portal: Optional[str] = None
    fetched_at: Optional[str] = None
    error: Optional[str] = None


# =============================================================================
# scrape-regulatory-data
# =============================================================================

class ScrapeRequest(CamelModel):
    source: Literal["ffiec", "fred", "sec", "fdic"]
    rssd_id: Optional[str] = None
    metric: Optional[str] = Field(default=None, description="FRED series key, e.g. 'treasury_10y'")
    bank_name: Optional[str] = None


class ScrapeResponse(CamelModel):
    success: bool
    source: Optional[str] = None
    url: Optional[str] = None
    scraped_at: Optional[str] = None
    data: Any = None
    markdown: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None
    error: Optional[str] = None


# =============================================================================
# fetch-metric-data
# =============================================================================

class MetricRequest(CamelModel):
    metric_id: str
    rssd_id: str = "623806"
    periods: int = Field(default=8, ge=1, le=40)


class PeriodValue(CamelModel):
    period: Optional[str] = None
    value: Optional[float] = None


class MetricData(CamelModel):
    metric_name: str
    current_value: Optional[float] = None
    unit: str = "%"
    quarterly_data: List[PeriodValue] = Field(default_factory=list)
    yearly_data: List[PeriodValue] = Field(default_factory=list)
    peer_median: Optional[float] = None
    regulatory_minimum: Optional[float] = None
    reporting_period: Optional[str] = None


class MetricResponse(CamelModel):
    success: bool
    metric_id: Optional[str] = None
    source: Optional[str] = None
    url: Optional[str] = None
    scraped_at: Optional[str] = None
    data: Optional[MetricData] = None
    raw_markdown: Optional[str] = None
    error: Optional[str] = None


# =============================================================================
# fetch-peer-metrics
# =============================================================================

class PeerRef(CamelModel):
    rssd_id: str
    name: str
    cert_number: Optional[str] = None


class PeerMetricsRequest(CamelModel):
    peers: List[PeerRef] = Field(default_factory=list)


class PeerMetricValues(CamelModel):
    roa: Optional[float] = None
    roe: Optional[float] = None
    nim: Optional[float] = None
    efficiency: Optional[float] = None
    npl: Optional[float] = None
    tier1: Optional[float] = None
    cet1: Optional[float] = None
    lcr: Optional[float] = None
    total_assets: Optional[float] = None

    def has_any(self) -> bool:
        return any(v is not None for v in self.model_dump().values())


class PeerMetrics(CamelModel):
    rssd_id: str
    name: str
    cert_number: Optional[str] = None
    period: Optional[str] = None
    metrics: PeerMetricValues = Field(default_factory=PeerMetricValues)
    source: str = "FDIC BankFind"
    fetched_at: str
    error: Optional[str] = None


class PeerMetricsResponse(CamelModel):
    success: bool
    results: List[PeerMetrics] = Field(default_factory=list)
    fetched_at: str
    success_count: int = 0
    total_requested: int = 0
