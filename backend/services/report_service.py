"""
Report Service

CRUD and lifecycle for ingested regulatory reports. This service is the only
place that writes to the ingested_reports table.
"""

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from sqlalchemy.orm import selectinload
from typing import Optional, List
from pathlib import Path
from fastapi import Depends
import json
import logging
import time

from models import IngestedReport, ReportStatus, ReportSource
from schemas.report import ReportCreate, ReportUpdate, UploadMetadata, ReportSchema
from config.settings import settings
from database import get_async_db
from exceptions import ReportNotFoundError, ValidationError
from services.aggregation_service import dedupe_reports
from services.regulatory_page_service import html_to_text

logger = logging.getLogger(__name__)

TEXT_EXTENSIONS = {".txt", ".csv", ".md", ".tsv", ".xml"}
HTML_EXTENSIONS = {".html", ".htm"}


def extract_upload_text(filename: str, content: bytes) -> Optional[str]:
    """
    Text content of an uploaded file, or None for binary formats (PDF, Excel).

    JSON is pretty-printed; HTML is reduced to visible text.
    """
    suffix = Path(filename).suffix.lower()
    if suffix in TEXT_EXTENSIONS:
        return content.decode("utf-8", errors="ignore")
    if suffix == ".json":
        text = content.decode("utf-8", errors="ignore")
        try:
            return json.dumps(json.loads(text), indent=2)
        except ValueError:
            return text
    if suffix in HTML_EXTENSIONS:
        return html_to_text(content.decode("utf-8", errors="ignore"))
    return None


def analysis_content(report: IngestedReport) -> str:
    """Text sent to the analysis adapter; reports without content get a placeholder."""
    return report.raw_content or f"Financial report: {report.name}"


class ReportService:
    """Service for ingested report operations."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create(self, data: ReportCreate) -> IngestedReport:
        """Create a report record in pending state."""
        report = IngestedReport(
            name=data.name,
            report_type=data.report_type.value,
            source=data.source.value,
            source_url=data.source_url,
            file_path=data.file_path,
            rssd_id=data.rssd_id,
            institution_name=data.institution_name,
            reporting_period=data.reporting_period,
            raw_content=data.raw_content,
            status=ReportStatus.PENDING.value,
        )
        self.db.add(report)
        await self.db.commit()
        await self.db.refresh(report)
        logger.info(f"Created report {report.id} ({report.name}, source={report.source})", extra={"report_id": report.id})
        return report

    async def upload(self, filename: str, content: bytes, metadata: UploadMetadata) -> IngestedReport:
        """
        Store an uploaded file and register it as a pending report.

        The file lands in UPLOAD_DIR as {timestamp}_{filename}.
        """
        if not filename:
            raise ValidationError("No file selected")

        upload_dir = Path(settings.UPLOAD_DIR)
        upload_dir.mkdir(parents=True, exist_ok=True)
        stored_name = f"{int(time.time() * 1000)}_{Path(filename).name}"
        path = upload_dir / stored_name
        path.write_bytes(content)

        return await self.create(ReportCreate(
            name=filename,
            report_type=metadata.report_type,
            source=ReportSource.UPLOAD,
            file_path=str(path),
            rssd_id=metadata.rssd_id,
            institution_name=metadata.institution_name,
            reporting_period=metadata.reporting_period,
            raw_content=extract_upload_text(filename, content),
        ))

    async def get(self, report_id: str, with_insights: bool = False) -> IngestedReport:
        """Get a report by ID."""
        stmt = select(IngestedReport).where(IngestedReport.id == report_id)
        if with_insights:
            stmt = stmt.options(selectinload(IngestedReport.insights))
        result = await self.db.execute(stmt)
        report = result.scalars().first()
        if not report:
            raise ReportNotFoundError(report_id)
        return report

    async def list(
        self,
        status: Optional[ReportStatus] = None,
        source: Optional[str] = None,
        with_insights: bool = False,
    ) -> List[IngestedReport]:
        """All reports, newest first."""
        stmt = select(IngestedReport).order_by(IngestedReport.created_at.desc())
        if status:
            stmt = stmt.where(IngestedReport.status == status.value)
        if source:
            stmt = stmt.where(IngestedReport.source == source)
        if with_insights:
            stmt = stmt.options(selectinload(IngestedReport.insights))
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def list_latest(self, status: Optional[ReportStatus] = None, source: Optional[str] = None) -> List[ReportSchema]:
        """Reports deduplicated by (name, source, report_type, reporting_period)."""
        return dedupe_reports(await self.list(status=status, source=source))

    async def update(self, report_id: str, data: ReportUpdate) -> IngestedReport:
        """Update report metadata."""
        report = await self.get(report_id)

        for field, value in data.model_dump(exclude_unset=True).items():
            if field == "report_type" and value is not None:
                value = value.value if hasattr(value, "value") else value
            setattr(report, field, value)

        await self.db.commit()
        await self.db.refresh(report)
        return report

    async def set_status(self, report_id: str, status: ReportStatus, error_message: Optional[str] = None) -> IngestedReport:
        """Move a report through its lifecycle. error_message is cleared unless the new status is error."""
        report = await self.get(report_id)
        report.status = status.value
        report.error_message = error_message if status == ReportStatus.ERROR else None
        await self.db.commit()
        await self.db.refresh(report)
        logger.info(f"Report {report_id} -> {status.value}", extra={"report_id": report_id})
        return report

    async def delete(self, report_id: str) -> bool:
        """Delete a report and its insights (cascade)."""
        report = await self.get(report_id, with_insights=True)
        await self.db.delete(report)
        await self.db.commit()
        return True


async def get_report_service(db: AsyncSession = Depends(get_async_db)) -> ReportService:
    """Dependency injection provider."""
    return ReportService(db)
