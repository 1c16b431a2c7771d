"""
Analysis adapter request/response schemas.
"""

from pydantic import Field
from typing import Optional, List

from schemas.ingestion import CamelModel
from schemas.insight import InsightCreate


class AnalyzeRequest(CamelModel):
    report_id: str
    content: str
    report_type: str
    institution_name: Optional[str] = None
    reporting_period: Optional[str] = None


class AnalyzeResult(CamelModel):
    success: bool
    report_id: str
    insights: List[InsightCreate] = Field(default_factory=list)
    analyzed_at: str
    error: Optional[str] = None
