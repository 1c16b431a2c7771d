"""
Dashboard Router - aggregated views over analyzed reports.
"""

from fastapi import APIRouter, Depends
from typing import Optional
import logging

from schemas.dashboard import (
    AggregatedMetrics,
    BalanceSheetEstimate,
    ExecutiveInsightsResponse,
    MetricCardsResponse,
    MetricHistory,
    PeerComparisonRequest,
    PeerComparisonResponse,
)
from services.dashboard_service import DashboardService, get_dashboard_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/dashboard", tags=["dashboard"])


@router.get("/metrics", response_model=AggregatedMetrics)
async def get_metrics(dashboard_service: DashboardService = Depends(get_dashboard_service)):
    """Metrics merged across analyzed reports, with the report each value came from."""
    return await dashboard_service.get_metrics()


@router.get("/metric-cards", response_model=MetricCardsResponse)
async def get_metric_cards(dashboard_service: DashboardService = Depends(get_dashboard_service)):
    return await dashboard_service.get_metric_cards()


@router.get("/executive-insights", response_model=ExecutiveInsightsResponse)
async def get_executive_insights(dashboard_service: DashboardService = Depends(get_dashboard_service)):
    return await dashboard_service.get_executive_insights()


@router.get("/metric-history/{metric_key}", response_model=MetricHistory)
async def get_metric_history(
    metric_key: str,
    dashboard_service: DashboardService = Depends(get_dashboard_service),
):
    return await dashboard_service.get_metric_history(metric_key)


@router.get("/balance-sheet", response_model=Optional[BalanceSheetEstimate])
async def get_balance_sheet(dashboard_service: DashboardService = Depends(get_dashboard_service)):
    """Estimated balance sheet; null until a report provides total assets."""
    return await dashboard_service.get_balance_sheet()


@router.post("/peer-comparison", response_model=PeerComparisonResponse)
async def peer_comparison(
    request: PeerComparisonRequest,
    dashboard_service: DashboardService = Depends(get_dashboard_service),
):
    return await dashboard_service.get_peer_comparison(request)
