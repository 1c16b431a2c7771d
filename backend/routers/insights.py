"""
Insights Router - list, save and review report insights.
"""

from fastapi import APIRouter, Depends, Query
from typing import Optional, List
import logging

from models import InsightStatus
from schemas.insight import InsightsBulkCreate, InsightStatusUpdate, InsightSchema, InsightsListResponse
from services.insight_service import InsightService, get_insight_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/insights", tags=["insights"])


@router.get("", response_model=InsightsListResponse)
async def list_insights(
    report_id: Optional[str] = Query(None),
    insight_type: Optional[str] = Query(None),
    status: Optional[InsightStatus] = Query(None),
    substantive_only: bool = Query(False, description="Hide placeholder insights"),
    insight_service: InsightService = Depends(get_insight_service),
):
    insights, filtered = await insight_service.list(
        report_id=report_id,
        insight_type=insight_type,
        status=status,
        substantive_only=substantive_only,
    )
    return InsightsListResponse(insights=insights, total=len(insights), filtered_count=filtered)


@router.post("/bulk", response_model=List[InsightSchema], status_code=201)
async def save_insights(
    data: InsightsBulkCreate,
    insight_service: InsightService = Depends(get_insight_service),
):
    """Save analysis output for a report and mark it analyzed."""
    return await insight_service.save_bulk(data.report_id, data.insights)


@router.patch("/{insight_id}/status", response_model=InsightSchema)
async def update_insight_status(
    insight_id: str,
    data: InsightStatusUpdate,
    insight_service: InsightService = Depends(get_insight_service),
):
    """Accept or reject an insight."""
    return await insight_service.update_status(insight_id, data.status)


@router.delete("/{insight_id}")
async def delete_insight(
    insight_id: str,
    insight_service: InsightService = Depends(get_insight_service),
):
    await insight_service.delete(insight_id)
    return {"ok": True}
