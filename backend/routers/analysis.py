"""
Analysis Router - stateless report analysis.
"""

from fastapi import APIRouter

from schemas.analysis import AnalyzeRequest, AnalyzeResult
from services.analysis_service import analyze_report

router = APIRouter(prefix="/api/analysis", tags=["analysis"])


@router.post("/analyze-report", response_model=AnalyzeResult)
async def analyze_report_endpoint(request: AnalyzeRequest):
    """Generate insights for report content without storing anything."""
    return await analyze_report(request)
