"""
Derived dashboard views computed by the aggregation layer.
"""

from pydantic import Field
from typing import Optional, List, Dict, Literal

from schemas.ingestion import CamelModel, PeerMetrics


class MetricSource(CamelModel):
    """Which report a merged metric value came from."""
    report_type: str
    period: str
    source: str


class AggregatedMetrics(CamelModel):
    metrics: Dict[str, float] = Field(default_factory=dict)
    metric_sources: Dict[str, MetricSource] = Field(default_factory=dict)
    has_data: bool = False
    reports_count: int = 0


class LatestReportMetrics(CamelModel):
    metrics: Optional[Dict[str, float]] = None
    reporting_period: Optional[str] = None
    report_name: Optional[str] = None
    institution_name: Optional[str] = None
    source: str = "upload"
    has_data: bool = False


class MetricThreshold(CamelModel):
    min: Optional[float] = None
    max: Optional[float] = None
    status: Literal["good", "warning", "critical"]


class BankMetricCard(CamelModel):
    id: str
    label: str
    value: str
    change: float = 0
    change_label: str = ""
    source: str
    report_type: str
    source_url: str
    bank_id: str
    description: str
    threshold: Optional[MetricThreshold] = None


class MetricCardsResponse(CamelModel):
    metrics: List[BankMetricCard] = Field(default_factory=list)
    institution_name: Optional[str] = None
    reporting_period: Optional[str] = None
    has_data: bool = False
    reports_count: int = 0


class ExecutiveInsight(CamelModel):
    id: str
    category: Literal["strength", "attention", "opportunity", "risk"]
    title: str
    summary: str
    metric: Optional[str] = None
    source: str
    report_type: str


class ExecutiveInsightsResponse(CamelModel):
    insights: List[ExecutiveInsight] = Field(default_factory=list)
    reporting_period: str = ""
    institution_name: Optional[str] = None
    has_data: bool = False


class HistoryPoint(CamelModel):
    period: str
    value: float
    report_id: str


class MetricHistory(CamelModel):
    metric_key: str
    points: List[HistoryPoint] = Field(default_factory=list)
    latest_value: float = 0
    previous_value: float = 0
    change: float = 0
    change_percent: float = 0
    is_positive_good: bool = True
    is_good_change: bool = False


class BalanceSheetItem(CamelModel):
    name: str
    value: float
    display_value: str
    percentage: float


class CapitalBreakdown(CamelModel):
    cet1_capital: float
    at1_capital: float
    tier2_capital: float
    total_capital: float
    tier1_capital: float
    cet1_ratio: float
    tier1_ratio: float
    total_capital_ratio: float


class BalanceSheetEstimate(CamelModel):
    total_assets: float
    assets: List[BalanceSheetItem]
    liabilities_equity: List[BalanceSheetItem]
    capital_breakdown: CapitalBreakdown


class PeerValue(CamelModel):
    bank_name: str
    value: str


class PeerComparisonMetric(CamelModel):
    id: str
    label: str
    subject_value: str
    peer_values: List[PeerValue]
    peer_median: str
    peer_percentile: int
    source: str = "FFIEC CDR"
    report_type: str = "UBPR Peer Group"
    interpretation: str
    category: Literal["capital", "profitability", "efficiency", "risk", "liquidity"]


class PeerComparisonRequest(CamelModel):
    peer_ids: List[str] = Field(default_factory=lambda: ["jpmorgan", "bofa", "citi", "wells"])
    use_report_metrics: bool = Field(default=True, description="Use metrics extracted from ingested reports for the subject bank")
    live_peer_metrics: Optional[List[PeerMetrics]] = Field(default=None, description="FDIC results from fetch-peer-metrics")


class PeerComparisonResponse(CamelModel):
    metrics: List[PeerComparisonMetric]
    subject_source: Literal["reports", "reference"]
