"""
Insight Pydantic schemas.
"""

from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Any
from datetime import datetime

from models import InsightStatus


class InsightCreate(BaseModel):
    """An insight as produced by the analysis adapter, ready to persist."""
    type: str = Field(description="summary | metric_extraction | risk_assessment | trend_analysis | recommendation")
    category: Optional[str] = Field(default="general")
    title: str
    content: str
    confidence: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    metrics: Optional[Dict[str, Any]] = None
    sources: Optional[Any] = None


class InsightsBulkCreate(BaseModel):
    """Request schema for saving analysis output against a report."""
    report_id: str
    insights: List[InsightCreate]


class InsightStatusUpdate(BaseModel):
    status: InsightStatus


class InsightSchema(BaseModel):
    """Response schema for a stored insight."""
    id: str
    report_id: str
    insight_type: str
    category: Optional[str] = None
    title: str
    content: str
    confidence_score: Optional[float] = None
    metrics: Optional[Dict[str, Any]] = None
    sources: Optional[Any] = None
    status: str
    created_at: datetime

    model_config = {"from_attributes": True}


class InsightsListResponse(BaseModel):
    insights: List[InsightSchema]
    total: int
    filtered_count: int = Field(default=0, description="Insights hidden as non-substantive")
