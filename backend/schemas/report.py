"""
Report Pydantic schemas for request/response validation.
"""

from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime

from models import ReportType, ReportSource, ReportStatus


class ReportCreate(BaseModel):
    """Request schema for creating a report record directly."""
    name: str = Field(min_length=1, max_length=500, description="Report name, usually the file name")
    report_type: ReportType = Field(default=ReportType.CUSTOM)
    source: ReportSource = Field(default=ReportSource.UPLOAD)
    source_url: Optional[str] = None
    file_path: Optional[str] = None
    rssd_id: Optional[str] = Field(default=None, max_length=20)
    institution_name: Optional[str] = None
    reporting_period: Optional[str] = Field(default=None, description="e.g. 'Q4 2025'")
    raw_content: Optional[str] = None


class ReportUpdate(BaseModel):
    """Request schema for updating report metadata."""
    name: Optional[str] = Field(default=None, min_length=1, max_length=500)
    report_type: Optional[ReportType] = None
    rssd_id: Optional[str] = None
    institution_name: Optional[str] = None
    reporting_period: Optional[str] = None
    raw_content: Optional[str] = None


class UploadMetadata(BaseModel):
    """Form fields sent alongside an uploaded report file."""
    report_type: ReportType = ReportType.CALL_REPORT
    institution_name: Optional[str] = None
    rssd_id: Optional[str] = None
    reporting_period: Optional[str] = None


class ReportSchema(BaseModel):
    """Response schema for an ingested report."""
    id: str
    name: str
    report_type: str
    source: str
    source_url: Optional[str] = None
    file_path: Optional[str] = None
    rssd_id: Optional[str] = None
    institution_name: Optional[str] = None
    reporting_period: Optional[str] = None
    status: ReportStatus
    error_message: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    has_older_version: bool = False

    model_config = {"from_attributes": True}


class ReportDetail(ReportSchema):
    """Report including the stored text content."""
    raw_content: Optional[str] = None


class ReportsListResponse(BaseModel):
    """Report list, optionally deduplicated by logical identity."""
    reports: List[ReportSchema]
    total: int
    deduplicated: bool = False
