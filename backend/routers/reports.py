"""
Reports Router - ingested report CRUD, upload and analysis.
"""

from fastapi import APIRouter, Depends, Query, UploadFile, File, Form
from typing import Optional
import logging

from exceptions import AppError
from models import ReportStatus, ReportType
from schemas.analysis import AnalyzeResult
from schemas.report import (
    ReportCreate, ReportUpdate, UploadMetadata,
    ReportSchema, ReportDetail, ReportsListResponse,
)
from services.analysis_service import AnalysisService, get_analysis_service
from services.report_service import ReportService, get_report_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/reports", tags=["reports"])


@router.get("", response_model=ReportsListResponse)
async def list_reports(
    dedupe: bool = Query(False, description="Show only the latest version of each logical report"),
    status: Optional[ReportStatus] = Query(None),
    source: Optional[str] = Query(None),
    report_service: ReportService = Depends(get_report_service),
):
    """List reports, newest first."""
    if dedupe:
        reports = await report_service.list_latest(status=status, source=source)
    else:
        reports = [ReportSchema.model_validate(r) for r in await report_service.list(status=status, source=source)]
    return ReportsListResponse(reports=reports, total=len(reports), deduplicated=dedupe)


@router.post("", response_model=ReportDetail, status_code=201)
async def create_report(
    data: ReportCreate,
    report_service: ReportService = Depends(get_report_service),
):
    """Create a report record from already-extracted content."""
    return await report_service.create(data)


@router.post("/upload", response_model=ReportDetail, status_code=201)
async def upload_report(
    file: UploadFile = File(...),
    report_type: ReportType = Form(ReportType.CALL_REPORT),
    institution_name: Optional[str] = Form(None),
    rssd_id: Optional[str] = Form(None),
    reporting_period: Optional[str] = Form(None),
    analyze: bool = Form(True),
    report_service: ReportService = Depends(get_report_service),
    analysis_service: AnalysisService = Depends(get_analysis_service),
):
    """Upload a report file; analysis starts immediately unless analyze is false."""
    content = await file.read()
    metadata = UploadMetadata(
        report_type=report_type,
        institution_name=institution_name,
        rssd_id=rssd_id,
        reporting_period=reporting_period,
    )
    report = await report_service.upload(file.filename, content, metadata)

    if analyze:
        try:
            await analysis_service.run_report_analysis(report.id)
        except AppError as e:
            logger.warning(f"Analysis failed for uploaded report {report.id}: {e.message}", extra={"report_id": report.id})
        report = await report_service.get(report.id)

    return report


@router.get("/{report_id}", response_model=ReportDetail)
async def get_report(
    report_id: str,
    report_service: ReportService = Depends(get_report_service),
):
    return await report_service.get(report_id)


@router.patch("/{report_id}", response_model=ReportDetail)
async def update_report(
    report_id: str,
    data: ReportUpdate,
    report_service: ReportService = Depends(get_report_service),
):
    """Update report metadata."""
    return await report_service.update(report_id, data)


@router.delete("/{report_id}")
async def delete_report(
    report_id: str,
    report_service: ReportService = Depends(get_report_service),
):
    """Delete a report and its insights."""
    await report_service.delete(report_id)
    return {"ok": True}


@router.post("/{report_id}/analyze", response_model=AnalyzeResult)
async def analyze_stored_report(
    report_id: str,
    analysis_service: AnalysisService = Depends(get_analysis_service),
):
    """Run (or re-run) AI analysis for a stored report."""
    return await analysis_service.run_report_analysis(report_id)
