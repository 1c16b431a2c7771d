"""
Aggregation Service

Pure functions that turn stored reports and insights into dashboard views:
report deduplication, metric merging, KPI cards, executive insights, metric
history, peer percentiles and the estimated balance sheet.

Nothing here touches the database; callers pass in IngestedReport rows (with
their insights loaded) or plain metric dicts.
"""

from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple
from datetime import datetime
import logging
import math
import re

from models import InsightType, ReportStatus
from schemas.dashboard import (
    AggregatedMetrics,
    BalanceSheetEstimate,
    BalanceSheetItem,
    BankMetricCard,
    CapitalBreakdown,
    ExecutiveInsight,
    ExecutiveInsightsResponse,
    HistoryPoint,
    LatestReportMetrics,
    MetricCardsResponse,
    MetricHistory,
    MetricSource,
    MetricThreshold,
    PeerComparisonMetric,
    PeerValue,
)
from schemas.ingestion import PeerMetrics
from schemas.report import ReportSchema
from utils.date_utils import extract_period_from_filename, period_sort_key
from utils.string_utils import format_currency, format_number, safe_number, truncate

logger = logging.getLogger(__name__)


##### DEDUPLICATION #####

def report_key(report) -> Tuple[str, str, str, Optional[str]]:
    """Logical identity of a report."""
    return (report.name, report.source, report.report_type, report.reporting_period)


def dedupe_reports(reports: Iterable) -> List[ReportSchema]:
    """
    Keep the newest report per (name, source, report_type, reporting_period).

    Returns one ReportSchema per key, newest first, with has_older_version set
    when the key had more than one report.
    """
    groups: Dict[Tuple, List] = {}
    for report in reports:
        groups.setdefault(report_key(report), []).append(report)

    latest = []
    for group in groups.values():
        group.sort(key=lambda r: r.created_at or datetime.min, reverse=True)
        latest.append((group[0], len(group) > 1))

    latest.sort(key=lambda item: item[0].created_at or datetime.min, reverse=True)
    return [
        ReportSchema.model_validate(report).model_copy(update={"has_older_version": has_older})
        for report, has_older in latest
    ]


##### METRIC MERGE #####

def _insights_newest_first(report) -> List:
    return sorted(report.insights or [], key=lambda i: i.created_at or datetime.min, reverse=True)


def metrics_insight(report):
    """The report's newest metric_extraction insight that carries metrics, if any."""
    for insight in _insights_newest_first(report):
        if insight.insight_type == InsightType.METRIC_EXTRACTION.value and insight.metrics:
            return insight
    return None


def report_period(report) -> str:
    return report.reporting_period or extract_period_from_filename(report.name) or "Latest"


def source_label(report) -> str:
    if report.source == "ffiec":
        return "FFIEC CDR"
    if report.source == "fdic":
        return "FDIC"
    return report.report_type.upper()


def _positive_number(value: Any) -> Optional[float]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return float(value) if value > 0 else None


def aggregate_report_metrics(reports: Sequence) -> AggregatedMetrics:
    """
    Merge extracted metrics across analyzed reports.

    Reports are walked newest first; for each metric key the first strictly
    positive numeric value wins and its report is recorded as the source.
    """
    analyzed = sorted(
        (r for r in reports if r.status == ReportStatus.ANALYZED.value),
        key=lambda r: r.created_at or datetime.min,
        reverse=True,
    )

    merged: Dict[str, float] = {}
    sources: Dict[str, MetricSource] = {}
    for report in analyzed:
        insight = metrics_insight(report)
        if not insight:
            continue
        for key, value in insight.metrics.items():
            number = _positive_number(value)
            if number is None or merged.get(key):
                continue
            merged[key] = number
            sources[key] = MetricSource(
                report_type=report.report_type.upper(),
                period=report_period(report),
                source=source_label(report),
            )

    return AggregatedMetrics(
        metrics=merged,
        metric_sources=sources,
        has_data=bool(merged),
        reports_count=len(analyzed),
    )


def latest_report_metrics(reports: Sequence) -> LatestReportMetrics:
    """Metrics of the newest report that has a metrics insight."""
    ordered = sorted(reports, key=lambda r: r.created_at or datetime.min, reverse=True)
    for report in ordered:
        insight = metrics_insight(report)
        if insight:
            return LatestReportMetrics(
                metrics={k: v for k, v in insight.metrics.items() if safe_number(v) is not None},
                reporting_period=report.reporting_period or extract_period_from_filename(report.name),
                report_name=report.name,
                institution_name=report.institution_name,
                source=report.source,
                has_data=True,
            )
    return LatestReportMetrics()


##### METRIC CARDS #####

FFIEC_FACSIMILES_URL = "https://cdr.ffiec.gov/public/ManageFacsimiles.aspx"
FFIEC_CDR_URL = "https://cdr.ffiec.gov/"
SUBJECT_BANK_ID = "mizuho"

# keys: extracted metric keys in preference order
# min/max: regulatory threshold shown on the card
# good/warning: status bands; direction "min" means higher is better
CARD_DEFINITIONS: List[Dict[str, Any]] = [
    {
        "id": "tier1-capital", "keys": ("tier1_capital_ratio",), "label": "Tier 1 Capital Ratio",
        "direction": "min", "limit": 8.0, "good": 10.5, "warning": 8.0,
        "source": "Call Report", "report_type": "Call Report Schedule RC-R", "url": FFIEC_FACSIMILES_URL,
        "description": "Core capital as % of risk-weighted assets. Measures ability to absorb losses.",
    },
    {
        "id": "cet1", "keys": ("common_equity_tier1_ratio", "cet1_ratio"), "label": "CET1 Ratio",
        "direction": "min", "limit": 7.0, "good": 9.0, "warning": 7.0,
        "source": "Call Report", "report_type": "Call Report Schedule RC-R", "url": FFIEC_FACSIMILES_URL,
        "description": "Common Equity Tier 1 capital as % of risk-weighted assets.",
    },
    {
        "id": "total-capital", "keys": ("total_capital_ratio",), "label": "Total Capital Ratio",
        "direction": "min", "limit": 10.0, "good": 12.0, "warning": 10.0,
        "source": "UBPR", "report_type": "UBPR", "url": FFIEC_FACSIMILES_URL,
        "description": "Total regulatory capital as % of risk-weighted assets.",
    },
    {
        "id": "leverage-ratio", "keys": ("tier1_leverage_ratio",), "label": "Tier 1 Leverage Ratio",
        "direction": "min", "limit": 4.0, "good": 5.0, "warning": 4.0,
        "source": "UBPR", "report_type": "UBPR", "url": FFIEC_FACSIMILES_URL,
        "description": "Tier 1 capital divided by average total consolidated assets.",
    },
    {
        "id": "nim", "keys": ("net_interest_margin",), "label": "Net Interest Margin",
        "direction": "min", "limit": 2.5, "good": 2.5, "warning": 2.0,
        "source": "UBPR", "report_type": "UBPR", "url": FFIEC_CDR_URL,
        "description": "Difference between interest income and interest paid, relative to assets.",
    },
    {
        "id": "roa", "keys": ("roa", "return_on_average_assets"), "label": "Return on Assets (ROA)",
        "direction": "min", "limit": 1.0, "good": 1.0, "warning": 0.5,
        "source": "UBPR", "report_type": "UBPR", "url": FFIEC_CDR_URL,
        "description": "Net income as a percentage of average total assets.",
    },
    {
        "id": "roe", "keys": ("roe",), "label": "Return on Equity (ROE)",
        "direction": "min", "limit": 10.0, "good": 10.0, "warning": 6.0,
        "source": "UBPR", "report_type": "UBPR", "url": FFIEC_CDR_URL,
        "description": "Net income as a percentage of average total equity.",
    },
    {
        "id": "efficiency", "keys": ("efficiency_ratio",), "label": "Efficiency Ratio",
        "direction": "max", "limit": 60.0, "good": 55.0, "warning": 65.0,
        "source": "UBPR", "report_type": "UBPR", "url": FFIEC_CDR_URL,
        "description": "Non-interest expenses divided by revenue. Lower is better.",
    },
    {
        "id": "npl", "keys": ("npl_ratio",), "label": "NPL Ratio",
        "direction": "max", "limit": 2.0, "good": 1.0, "warning": 2.0,
        "source": "UBPR", "report_type": "UBPR", "url": FFIEC_CDR_URL,
        "description": "Non-performing loans as a percentage of total loans.",
    },
    {
        "id": "lcr", "keys": ("lcr",), "label": "Liquidity Coverage Ratio",
        "direction": "min", "limit": 100.0, "good": 120.0, "warning": 100.0,
        "source": "Call Report", "report_type": "Call Report", "url": FFIEC_CDR_URL,
        "description": "High-quality liquid assets to net cash outflows over 30 days.",
    },
]


def threshold_status(value: float, direction: str, good: float, warning: float) -> str:
    """Band a value as good / warning / critical."""
    if direction == "max":
        if value <= good:
            return "good"
        return "warning" if value <= warning else "critical"
    if value >= good:
        return "good"
    return "warning" if value >= warning else "critical"


def format_total_assets(value: float) -> str:
    if value >= 1e12:
        return f"${value / 1e12:.2f}T"
    if value >= 1e9:
        return f"${value / 1e9:.1f}B"
    return f"${value / 1e6:.0f}M"


def _first_metric(metrics: Dict[str, float], keys: Sequence[str]) -> Tuple[Optional[str], Optional[float]]:
    for key in keys:
        value = metrics.get(key)
        if value:
            return key, value
    return None, None


def _card(definition: Dict[str, Any], key: str, value_text: str, sources: Dict[str, MetricSource], threshold: MetricThreshold) -> BankMetricCard:
    src = sources.get(key)
    return BankMetricCard(
        id=definition["id"],
        label=definition["label"],
        value=value_text,
        change=0,
        change_label=f"as of {src.period}" if src and src.period else "",
        source=src.source if src else definition["source"],
        report_type=src.report_type if src else definition["report_type"],
        source_url=definition["url"],
        bank_id=SUBJECT_BANK_ID,
        description=definition["description"],
        threshold=threshold,
    )


def build_bank_metric_cards(metrics: Dict[str, float], sources: Dict[str, MetricSource]) -> List[BankMetricCard]:
    """KPI cards for every merged metric that is present and positive."""
    cards: List[BankMetricCard] = []
    for definition in CARD_DEFINITIONS:
        key, value = _first_metric(metrics, definition["keys"])
        if value is None or value <= 0:
            continue
        bound = {"min": definition["limit"]} if definition["direction"] == "min" else {"max": definition["limit"]}
        threshold = MetricThreshold(
            status=threshold_status(value, definition["direction"], definition["good"], definition["warning"]),
            **bound,
        )
        cards.append(_card(definition, key, f"{format_number(value)}%", sources, threshold))

    total_assets = metrics.get("total_assets")
    if total_assets and total_assets > 0:
        definition = {
            "id": "total-assets", "label": "Total Assets",
            "source": "Call Report", "report_type": "Call Report Schedule RC", "url": FFIEC_CDR_URL,
            "description": "Total consolidated assets of the institution.",
        }
        cards.append(_card(definition, "total_assets", format_total_assets(total_assets), sources, MetricThreshold(status="good")))

    return cards


def build_metric_cards_response(reports: Sequence) -> MetricCardsResponse:
    aggregated = aggregate_report_metrics(reports)
    latest = latest_report_metrics(reports)
    return MetricCardsResponse(
        metrics=build_bank_metric_cards(aggregated.metrics, aggregated.metric_sources),
        institution_name=latest.institution_name,
        reporting_period=latest.reporting_period,
        has_data=aggregated.has_data,
        reports_count=len(reports),
    )


##### EXECUTIVE INSIGHTS #####

METRIC_IN_TEXT = re.compile(r"(\d+\.?\d*%|\d+\.?\d*\s*bps|\d+\.?\d*x)")
SUMMARY_LIMIT = 200


def insight_category(category: Optional[str], insight_type: str) -> str:
    """Executive bucket for an insight."""
    if category in ("capital", "liquidity"):
        return "strength"
    if category in ("compliance", "strategic"):
        return "opportunity"
    if category in ("asset_quality", "profitability"):
        return "attention"
    if insight_type == InsightType.RISK_ASSESSMENT.value:
        return "risk"
    if insight_type == InsightType.RECOMMENDATION.value:
        return "opportunity"
    return "attention"


def build_executive_insights(latest_report) -> ExecutiveInsightsResponse:
    """Executive summary items from the newest analyzed report."""
    if latest_report is None:
        return ExecutiveInsightsResponse()

    period = latest_report.reporting_period or ""
    source = "Call Report" if latest_report.source == "upload" else latest_report.source.upper()

    insights: List[ExecutiveInsight] = []
    for index, insight in enumerate(_insights_newest_first(latest_report)):
        if insight.insight_type == InsightType.METRIC_EXTRACTION.value:
            continue
        match = METRIC_IN_TEXT.search(insight.content)
        insights.append(ExecutiveInsight(
            id=f"real-insight-{index}",
            category=insight_category(insight.category, insight.insight_type),
            title=insight.title,
            summary=truncate(insight.content, SUMMARY_LIMIT),
            metric=match.group(0) if match else None,
            source=source,
            report_type=f"{latest_report.report_type} ({period or 'Latest'})",
        ))

    return ExecutiveInsightsResponse(
        insights=insights,
        reporting_period=period,
        institution_name=latest_report.institution_name,
        has_data=bool(insights),
    )


##### SUBSTANTIVE FILTER #####

BRACKETED = re.compile(r"^\[.*\]$", re.DOTALL)
ANALYSIS_OF = re.compile(r"^Analysis of\b", re.IGNORECASE)
HAS_DIGIT = re.compile(r"\d")


def is_substantive(content: Optional[str]) -> bool:
    """False for placeholder insight text the model sometimes emits."""
    text = (content or "").strip()
    if not text or BRACKETED.match(text):
        return False
    if len(text) < 60 and not HAS_DIGIT.search(text):
        return False
    if ANALYSIS_OF.match(text) and len(text) < 100:
        return False
    return True


##### METRIC HISTORY #####

# Dashboard metric key -> extracted metric keys in preference order
METRIC_KEY_ALIASES: Dict[str, Tuple[str, ...]] = {
    "tier1": ("tier1_capital_ratio",),
    "cet1": ("common_equity_tier1_ratio", "cet1_ratio"),
    "total_capital": ("total_capital_ratio",),
    "leverage": ("tier1_leverage_ratio",),
    "roa": ("roa", "return_on_average_assets"),
    "roe": ("roe",),
    "efficiency": ("efficiency_ratio",),
    "nim": ("net_interest_margin",),
    "npl": ("npl_ratio",),
    "lcr": ("lcr",),
    "total_assets": ("total_assets",),
}

LOWER_IS_BETTER = ("efficiency", "npl")

# Raw extracted key -> dashboard key
DASHBOARD_KEY_BY_ALIAS: Dict[str, str] = {
    alias: key for key, aliases in METRIC_KEY_ALIASES.items() for alias in aliases
}


def build_metric_history(reports: Sequence, metric_key: str) -> MetricHistory:
    """
    One metric across analyzed reports, oldest period first.

    metric_key is a dashboard key (tier1, nim, ...) or a raw extracted key.
    Each period contributes the value from its newest report.
    """
    keys = METRIC_KEY_ALIASES.get(metric_key, (metric_key,))
    analyzed = sorted(
        (r for r in reports if r.status == ReportStatus.ANALYZED.value),
        key=lambda r: r.created_at or datetime.min,
        reverse=True,
    )

    by_period: Dict[str, HistoryPoint] = {}
    for report in analyzed:
        insight = metrics_insight(report)
        if not insight:
            continue
        period = report_period(report)
        if period in by_period:
            continue
        _, value = _first_metric({k: v for k, v in insight.metrics.items() if _positive_number(v)}, keys)
        if value is not None:
            by_period[period] = HistoryPoint(period=period, value=value, report_id=report.id)

    points = sorted(by_period.values(), key=lambda p: period_sort_key(p.period))
    latest = points[-1].value if points else 0
    previous = points[-2].value if len(points) > 1 else 0
    change = latest - previous
    is_positive_good = DASHBOARD_KEY_BY_ALIAS.get(metric_key, metric_key) not in LOWER_IS_BETTER

    return MetricHistory(
        metric_key=metric_key,
        points=points,
        latest_value=latest,
        previous_value=previous,
        change=round(change, 4),
        change_percent=round(change / previous * 100, 2) if previous != 0 else 0,
        is_positive_good=is_positive_good,
        is_good_change=change > 0 if is_positive_good else change < 0,
    )


##### PEER PERCENTILE #####

# Reference peer set: tier1, cet1, roa, roe, efficiency, nim, npl, lcr
PEER_BANKS: Dict[str, Dict[str, Any]] = {
    "jpmorgan": {"name": "JPMorgan", "rssd_id": "852218", "metrics": {"tier1": 15.1, "cet1": 13.8, "roa": 1.21, "roe": 15.2, "efficiency": 54.2, "nim": 2.81, "npl": 0.68, "lcr": 112}},
    "bofa": {"name": "Bank of America", "rssd_id": "480228", "metrics": {"tier1": 13.8, "cet1": 12.1, "roa": 0.98, "roe": 11.4, "efficiency": 62.1, "nim": 2.54, "npl": 0.91, "lcr": 118}},
    "citi": {"name": "Citibank", "rssd_id": "476810", "metrics": {"tier1": 14.5, "cet1": 13.0, "roa": 0.72, "roe": 7.8, "efficiency": 69.8, "nim": 2.48, "npl": 1.12, "lcr": 116}},
    "wells": {"name": "Wells Fargo", "rssd_id": "451965", "metrics": {"tier1": 12.4, "cet1": 11.2, "roa": 1.05, "roe": 12.1, "efficiency": 67.3, "nim": 3.02, "npl": 0.79, "lcr": 125}},
    "goldman": {"name": "Goldman Sachs", "rssd_id": "2182786", "metrics": {"tier1": 16.2, "cet1": 14.8, "roa": 0.88, "roe": 10.5, "efficiency": 66.1, "nim": 1.92, "npl": 0.42, "lcr": 138}},
    "morgan_stanley": {"name": "Morgan Stanley", "rssd_id": "1456501", "metrics": {"tier1": 15.8, "cet1": 14.2, "roa": 0.95, "roe": 11.2, "efficiency": 71.2, "nim": 1.85, "npl": 0.38, "lcr": 145}},
    "usbank": {"name": "U.S. Bank", "rssd_id": "504713", "metrics": {"tier1": 11.2, "cet1": 9.8, "roa": 1.12, "roe": 13.8, "efficiency": 59.2, "nim": 2.92, "npl": 0.82, "lcr": 108}},
    "pnc": {"name": "PNC", "rssd_id": "817824", "metrics": {"tier1": 11.8, "cet1": 10.2, "roa": 1.08, "roe": 12.9, "efficiency": 60.5, "nim": 2.78, "npl": 0.76, "lcr": 112}},
    "truist": {"name": "Truist", "rssd_id": "852320", "metrics": {"tier1": 10.9, "cet1": 9.5, "roa": 0.92, "roe": 10.8, "efficiency": 62.8, "nim": 2.98, "npl": 0.88, "lcr": 109}},
    "td": {"name": "TD Bank", "rssd_id": "497404", "metrics": {"tier1": 12.8, "cet1": 11.5, "roa": 0.85, "roe": 9.8, "efficiency": 64.2, "nim": 2.62, "npl": 0.65, "lcr": 122}},
    "hsbc": {"name": "HSBC USA", "rssd_id": "413208", "metrics": {"tier1": 14.2, "cet1": 12.8, "roa": 0.78, "roe": 8.5, "efficiency": 68.5, "nim": 2.18, "npl": 0.95, "lcr": 132}},
    "mufg": {"name": "MUFG", "rssd_id": "134687", "metrics": {"tier1": 13.5, "cet1": 12.2, "roa": 0.82, "roe": 9.2, "efficiency": 65.8, "nim": 2.35, "npl": 0.58, "lcr": 128}},
}

SUBJECT_BANK = {
    "id": SUBJECT_BANK_ID,
    "name": "Mizuho Americas",
    "rssd_id": "623806",
    "metrics": {"tier1": 14.8, "cet1": 13.2, "roa": 0.92, "roe": 9.8, "efficiency": 64.2, "nim": 2.42, "npl": 0.72, "lcr": 142},
}

PEER_METRICS: List[Tuple[str, str, str]] = [
    ("tier1", "Tier 1 Capital Ratio", "capital"),
    ("cet1", "CET1 Ratio", "capital"),
    ("roa", "Return on Assets", "profitability"),
    ("roe", "Return on Equity", "profitability"),
    ("efficiency", "Efficiency Ratio", "efficiency"),
    ("nim", "Net Interest Margin", "profitability"),
    ("npl", "NPL Ratio", "risk"),
    ("lcr", "Liquidity Coverage Ratio", "liquidity"),
]

ABOVE_MEDIAN = "Above median among selected peers"
BELOW_MEDIAN = "Below median among selected peers"


def _numeric(values: Iterable[Any]) -> List[float]:
    return [float(v) for v in values if isinstance(v, (int, float)) and not isinstance(v, bool)]


def compute_peer_median(peer_values: Iterable[Any]) -> float:
    """Upper median without interpolation: sorted(values)[n // 2]; 0 when there are no numeric peers."""
    values = sorted(_numeric(peer_values))
    if not values:
        return 0
    return values[len(values) // 2]


def compute_peer_percentile(subject_value: float, peer_values: Iterable[Any], lower_is_better: bool = False) -> int:
    """
    Share of peers the subject beats, 0-100.

    Ties count in neither direction. No numeric peers gives 50.
    """
    values = _numeric(peer_values)
    if not values:
        return 50
    if lower_is_better:
        beaten = sum(1 for v in values if v > subject_value)
    else:
        beaten = sum(1 for v in values if v < subject_value)
    # Half-up rounding, so 5 of 8 peers reads 63
    return math.floor(beaten / len(values) * 100 + 0.5)


def interpret_percentile(percentile: int) -> str:
    return ABOVE_MEDIAN if percentile >= 50 else BELOW_MEDIAN


def subject_metrics_from_reports(metrics: Dict[str, float]) -> Dict[str, float]:
    """Map merged extracted metrics onto peer comparison keys."""
    subject: Dict[str, float] = {}
    for key, _, _ in PEER_METRICS:
        _, value = _first_metric(metrics, METRIC_KEY_ALIASES[key])
        if value is not None:
            subject[key] = value
    return subject


def _live_values(live_peer_metrics: Optional[List[PeerMetrics]]) -> Dict[str, Dict[str, Optional[float]]]:
    """rssd_id -> metric values from successful FDIC peer fetches."""
    live: Dict[str, Dict[str, Optional[float]]] = {}
    for result in live_peer_metrics or []:
        if result.error:
            continue
        live[result.rssd_id] = result.metrics.model_dump()
    return live


def build_peer_comparison(
    selected_peer_ids: Sequence[str],
    subject_values: Optional[Dict[str, float]] = None,
    live_peer_metrics: Optional[List[PeerMetrics]] = None,
) -> List[PeerComparisonMetric]:
    """
    Subject bank vs. selected peers for each comparison metric.

    Unknown peer ids are ignored. Live FDIC values override reference values
    where present; subject values fall back to the reference subject metrics.
    """
    peers = [(pid, PEER_BANKS[pid]) for pid in selected_peer_ids if pid in PEER_BANKS]
    live = _live_values(live_peer_metrics)
    subject = {**SUBJECT_BANK["metrics"], **(subject_values or {})}

    comparison: List[PeerComparisonMetric] = []
    for key, label, category in PEER_METRICS:
        subject_value = subject[key]
        values: List[Optional[float]] = []
        for _, bank in peers:
            live_value = live.get(bank["rssd_id"], {}).get(key)
            values.append(live_value if live_value is not None else bank["metrics"].get(key))

        percentile = compute_peer_percentile(subject_value, values, lower_is_better=key in LOWER_IS_BETTER)
        median = compute_peer_median(values)
        comparison.append(PeerComparisonMetric(
            id=f"{key}-peer",
            label=label,
            subject_value=f"{format_number(subject_value)}%",
            peer_values=[
                PeerValue(bank_name=bank["name"], value=f"{format_number(v)}%" if v is not None else "N/A")
                for (_, bank), v in zip(peers, values)
            ],
            peer_median=f"{median:.2f}%",
            peer_percentile=percentile,
            interpretation=interpret_percentile(percentile),
            category=category,
        ))

    return comparison


##### BALANCE SHEET #####

ASSET_MIX = [("Cash & Securities", 0.35), ("Loans & Leases", 0.45), ("Other Assets", 0.20)]
LIABILITY_MIX = [("Deposits", 0.55), ("Borrowings", 0.30), ("Other Liabilities", 0.15)]
# Risk-weighted assets assumed at 70% of total assets when they cannot be derived
RWA_DENSITY = 0.7


def estimate_balance_sheet(metrics: Dict[str, float]) -> Optional[BalanceSheetEstimate]:
    """
    Approximate balance sheet from total assets and capital ratios.

    Returns None unless total_assets is positive. The asset and liability
    mixes are fixed shares; only the capital stack is derived from ratios.
    """
    total_assets = metrics.get("total_assets") or 0
    if total_assets <= 0:
        return None

    leverage = (metrics.get("tier1_leverage_ratio") or 0) / 100
    total_capital_ratio = (metrics.get("total_capital_ratio") or 0) / 100
    cet1_ratio = (metrics.get("common_equity_tier1_ratio") or metrics.get("cet1_ratio") or 0) / 100
    tier1_ratio = (metrics.get("tier1_capital_ratio") or 0) / 100

    if leverage > 0:
        tier1_capital = leverage * total_assets
    else:
        tier1_capital = tier1_ratio * total_assets * RWA_DENSITY

    if cet1_ratio == tier1_ratio:
        cet1_capital = tier1_capital
    else:
        cet1_capital = cet1_ratio * total_assets * RWA_DENSITY
    at1_capital = tier1_capital - cet1_capital

    if leverage > 0 and tier1_ratio > 0:
        rwa = tier1_capital / tier1_ratio
    else:
        rwa = total_assets * RWA_DENSITY

    if total_capital_ratio > 0:
        total_capital = total_capital_ratio * rwa
    else:
        total_capital = tier1_capital * 1.05
    tier2_capital = total_capital - tier1_capital
    total_liabilities = total_assets - total_capital

    def item(name: str, value: float) -> BalanceSheetItem:
        return BalanceSheetItem(
            name=name,
            value=value,
            display_value=format_currency(value),
            percentage=value / total_assets * 100,
        )

    assets = [item(name, total_assets * share) for name, share in ASSET_MIX]
    liabilities_equity = [item(name, total_liabilities * share) for name, share in LIABILITY_MIX]
    liabilities_equity.append(item("Tier 2 Capital", tier2_capital))
    liabilities_equity.append(item("CET1 / Tier 1 Capital", cet1_capital))

    return BalanceSheetEstimate(
        total_assets=total_assets,
        assets=assets,
        liabilities_equity=liabilities_equity,
        capital_breakdown=CapitalBreakdown(
            cet1_capital=cet1_capital,
            at1_capital=at1_capital,
            tier2_capital=tier2_capital,
            total_capital=total_capital,
            tier1_capital=tier1_capital,
            cet1_ratio=cet1_ratio * 100,
            tier1_ratio=tier1_ratio * 100,
            total_capital_ratio=total_capital_ratio * 100,
        ),
    )
