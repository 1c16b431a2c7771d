"""
Insight Service - persistence and review of AI-generated report insights.
"""

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from typing import Optional, List, Tuple
from fastapi import Depends
import logging

from models import ReportInsight, IngestedReport, InsightStatus, ReportStatus
from schemas.insight import InsightCreate
from database import get_async_db
from exceptions import InsightNotFoundError, ReportNotFoundError
from services.aggregation_service import is_substantive

logger = logging.getLogger(__name__)


class InsightService:
    """Service for report insight operations."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def list(
        self,
        report_id: Optional[str] = None,
        insight_type: Optional[str] = None,
        status: Optional[InsightStatus] = None,
        substantive_only: bool = False,
    ) -> Tuple[List[ReportInsight], int]:
        """
        Insights, newest first.

        Returns:
            (insights, filtered_count) where filtered_count is the number of
            non-substantive insights hidden when substantive_only is set
        """
        stmt = select(ReportInsight).order_by(ReportInsight.created_at.desc())
        if report_id:
            stmt = stmt.where(ReportInsight.report_id == report_id)
        if insight_type:
            stmt = stmt.where(ReportInsight.insight_type == insight_type)
        if status:
            stmt = stmt.where(ReportInsight.status == status.value)

        result = await self.db.execute(stmt)
        insights = list(result.scalars().all())

        if not substantive_only:
            return insights, 0
        kept = [i for i in insights if is_substantive(i.content)]
        return kept, len(insights) - len(kept)

    async def get(self, insight_id: str) -> ReportInsight:
        result = await self.db.execute(
            select(ReportInsight).where(ReportInsight.id == insight_id)
        )
        insight = result.scalars().first()
        if not insight:
            raise InsightNotFoundError(insight_id)
        return insight

    async def save_bulk(self, report_id: str, insights: List[InsightCreate], mark_analyzed: bool = True) -> List[ReportInsight]:
        """
        Persist analysis output for a report.

        Insights start as pending review. The report is marked analyzed unless
        mark_analyzed is False.
        """
        result = await self.db.execute(
            select(IngestedReport).where(IngestedReport.id == report_id)
        )
        report = result.scalars().first()
        if not report:
            raise ReportNotFoundError(report_id)

        rows = [
            ReportInsight(
                report_id=report_id,
                insight_type=item.type,
                category=item.category,
                title=item.title,
                content=item.content,
                confidence_score=item.confidence,
                metrics=item.metrics,
                sources=item.sources,
                status=InsightStatus.PENDING.value,
            )
            for item in insights
        ]
        self.db.add_all(rows)
        if mark_analyzed:
            report.status = ReportStatus.ANALYZED.value
            report.error_message = None

        await self.db.commit()
        for row in rows:
            await self.db.refresh(row)

        logger.info(f"Saved {len(rows)} insights for report {report_id}", extra={"report_id": report_id})
        return rows

    async def update_status(self, insight_id: str, status: InsightStatus) -> ReportInsight:
        """Accept or reject an insight."""
        insight = await self.get(insight_id)
        insight.status = status.value
        await self.db.commit()
        await self.db.refresh(insight)
        return insight

    async def delete(self, insight_id: str) -> bool:
        insight = await self.get(insight_id)
        await self.db.delete(insight)
        await self.db.commit()
        return True


async def get_insight_service(db: AsyncSession = Depends(get_async_db)) -> InsightService:
    """Dependency injection provider."""
    return InsightService(db)
