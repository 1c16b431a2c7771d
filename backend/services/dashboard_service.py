"""
Dashboard Service - loads analyzed reports and feeds them to the aggregation functions.
"""

from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional
from fastapi import Depends
import logging

from models import IngestedReport, ReportStatus
from schemas.dashboard import (
    AggregatedMetrics,
    BalanceSheetEstimate,
    ExecutiveInsightsResponse,
    MetricCardsResponse,
    MetricHistory,
    PeerComparisonRequest,
    PeerComparisonResponse,
)
from database import get_async_db
from services import aggregation_service as aggregation
from services.report_service import ReportService

logger = logging.getLogger(__name__)


class DashboardService:
    """Read-only dashboard views over analyzed reports."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.reports = ReportService(db)

    async def analyzed_reports(self) -> List[IngestedReport]:
        """Analyzed reports with insights, newest first."""
        return await self.reports.list(status=ReportStatus.ANALYZED, with_insights=True)

    async def get_metrics(self) -> AggregatedMetrics:
        return aggregation.aggregate_report_metrics(await self.analyzed_reports())

    async def get_metric_cards(self) -> MetricCardsResponse:
        return aggregation.build_metric_cards_response(await self.analyzed_reports())

    async def get_executive_insights(self) -> ExecutiveInsightsResponse:
        reports = await self.analyzed_reports()
        return aggregation.build_executive_insights(reports[0] if reports else None)

    async def get_metric_history(self, metric_key: str) -> MetricHistory:
        return aggregation.build_metric_history(await self.analyzed_reports(), metric_key)

    async def get_balance_sheet(self) -> Optional[BalanceSheetEstimate]:
        merged = await self.get_metrics()
        return aggregation.estimate_balance_sheet(merged.metrics)

    async def get_peer_comparison(self, request: PeerComparisonRequest) -> PeerComparisonResponse:
        """Subject bank vs. selected peers, using report metrics for the subject when available."""
        subject_values = {}
        if request.use_report_metrics:
            merged = await self.get_metrics()
            subject_values = aggregation.subject_metrics_from_reports(merged.metrics)

        metrics = aggregation.build_peer_comparison(
            request.peer_ids,
            subject_values=subject_values,
            live_peer_metrics=request.live_peer_metrics,
        )
        logger.info(f"Peer comparison: {len(request.peer_ids)} peers, {len(subject_values)} subject metrics from reports")
        return PeerComparisonResponse(
            metrics=metrics,
            subject_source="reports" if subject_values else "reference",
        )


async def get_dashboard_service(db: AsyncSession = Depends(get_async_db)) -> DashboardService:
    """Dependency injection provider."""
    return DashboardService(db)
