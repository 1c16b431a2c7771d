"""
API Connection Service

Saved portal configurations and manual syncs. A sync fetches through the
ingestion service, stores the payload as a pending report and hands it to
analysis.
"""

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from typing import Optional, List
from datetime import datetime
from fastapi import Depends
import base64
import logging

from models import ApiConnection, ConnectionStatus, ReportType, ReportSource, ReportStatus
from schemas.api_connection import ApiConnectionCreate, Portal, SyncResult
from schemas.ingestion import FetchApiRequest
from schemas.report import ReportCreate
from database import get_async_db
from exceptions import AppError, ConnectionNotFoundError, ValidationError
from services.analysis_service import AnalysisService
from services.ingestion_service import IngestionService, PORTAL_CONFIGS, serialize_payload
from services.report_service import ReportService

logger = logging.getLogger(__name__)

PORTAL_LABELS = {
    "ffiec": "FFIEC CDR",
    "fred": "FRED",
    "sec": "SEC EDGAR",
    "fdic": "FDIC BankFind",
    "custom": "Custom API",
}


def encode_credentials(api_key: Optional[str]) -> Optional[str]:
    """Obfuscate an API key for storage. Not encryption; keep the database private."""
    if not api_key:
        return None
    return base64.b64encode(api_key.encode("utf-8")).decode("ascii")


def decode_credentials(stored: Optional[str]) -> Optional[str]:
    if not stored:
        return None
    return base64.b64decode(stored.encode("ascii")).decode("utf-8")


class ApiConnectionService:
    """Service for saved API connections."""

    def __init__(self, db: AsyncSession, ingestion: Optional[IngestionService] = None):
        self.db = db
        self.ingestion = ingestion or IngestionService()

    async def create(self, data: ApiConnectionCreate) -> ApiConnection:
        """Save a connection. Name and base URL default from the portal."""
        portal = data.portal.value
        if data.portal == Portal.CUSTOM:
            if not data.base_url:
                raise ValidationError("Base URL required for custom API")
            base_url = data.base_url
        else:
            base_url = data.base_url or PORTAL_CONFIGS[portal]["base_url"]

        connection = ApiConnection(
            name=data.name or f"{PORTAL_LABELS[portal]} Connection",
            portal=portal,
            base_url=base_url,
            auth_type=data.auth_type.value,
            credentials_encrypted=encode_credentials(data.api_key),
            headers=data.headers,
            query_params=data.query_params,
            rssd_id=data.rssd_id,
            schedule=data.schedule,
            status=data.status.value,
        )
        self.db.add(connection)
        await self.db.commit()
        await self.db.refresh(connection)
        logger.info(f"Created API connection {connection.id} ({connection.portal})", extra={"portal": portal})
        return connection

    async def get(self, connection_id: str) -> ApiConnection:
        result = await self.db.execute(
            select(ApiConnection).where(ApiConnection.id == connection_id)
        )
        connection = result.scalars().first()
        if not connection:
            raise ConnectionNotFoundError(connection_id)
        return connection

    async def list(self) -> List[ApiConnection]:
        """All connections, newest first."""
        result = await self.db.execute(
            select(ApiConnection).order_by(ApiConnection.created_at.desc())
        )
        return list(result.scalars().all())

    async def delete(self, connection_id: str) -> bool:
        connection = await self.get(connection_id)
        await self.db.delete(connection)
        await self.db.commit()
        return True

    async def sync(self, connection_id: str, analyze: bool = True) -> SyncResult:
        """
        Pull data through a saved connection.

        On success a pending report named "{connection name} - {date}" is
        created and, when analyze is set, analyzed. On failure the connection
        is flagged error and an error report records the message.
        """
        connection = await self.get(connection_id)
        reports = ReportService(self.db)
        report_type = ReportType.CALL_REPORT if connection.portal == Portal.FFIEC.value else ReportType.CUSTOM
        report_name = f"{connection.name} - {datetime.utcnow().strftime('%m/%d/%Y')}"

        logger.info(f"Syncing connection {connection.id} ({connection.portal})", extra={"portal": connection.portal})
        try:
            envelope = await self.ingestion.fetch_api_data(FetchApiRequest(
                portal=connection.portal,
                base_url=connection.base_url,
                rssd_id=connection.rssd_id,
                api_key=decode_credentials(connection.credentials_encrypted),
                headers=connection.headers,
                query_params=connection.query_params,
            ))
        except AppError as e:
            logger.error(f"Sync failed for connection {connection.id}: {e.message}", extra={"portal": connection.portal})
            connection.status = ConnectionStatus.ERROR.value
            await self.db.commit()
            report = await reports.create(ReportCreate(
                name=report_name,
                report_type=report_type,
                source=ReportSource(connection.portal),
                source_url=connection.base_url,
                rssd_id=connection.rssd_id,
            ))
            await reports.set_status(report.id, ReportStatus.ERROR, error_message=e.message)
            return SyncResult(success=False, connection_id=connection.id, report_id=report.id, error=e.message)

        report = await reports.create(ReportCreate(
            name=report_name,
            report_type=report_type,
            source=ReportSource(connection.portal),
            source_url=connection.base_url,
            rssd_id=connection.rssd_id,
            raw_content=serialize_payload(envelope),
        ))

        connection.last_sync_at = datetime.utcnow()
        connection.status = ConnectionStatus.ACTIVE.value
        await self.db.commit()

        if analyze:
            try:
                await AnalysisService(self.db).run_report_analysis(report.id)
            except AppError as e:
                # The report already carries status=error; the sync itself succeeded
                logger.warning(f"Analysis failed for synced report {report.id}: {e.message}", extra={"report_id": report.id})

        return SyncResult(success=True, connection_id=connection.id, report_id=report.id)


async def get_api_connection_service(db: AsyncSession = Depends(get_async_db)) -> ApiConnectionService:
    """Dependency injection provider."""
    return ApiConnectionService(db)
