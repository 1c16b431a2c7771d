"""
Analysis Service

Sends report content to the LLM and turns the reply into structured insights.

analyze_report is stateless (content in, insights out). run_report_analysis
drives a stored report through processing -> analyzed | error and persists
the insights.
"""

from typing import Any, Dict, List, Optional
from fastapi import Depends
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.ext.asyncio import AsyncSession
import json
import logging
import re

from agents.prompts.llm import call_llm
from agents.prompts.report_analysis import REPORT_ANALYSIS_SYSTEM_PROMPT, build_analysis_user_prompt
from database import get_async_db
from exceptions import AppError, LLMGatewayError, ReportNotFoundError
from models import ReportStatus
from schemas.analysis import AnalyzeRequest, AnalyzeResult
from schemas.insight import InsightCreate
from services.insight_service import InsightService
from services.report_service import ReportService, analysis_content
from utils.date_utils import utc_now_iso

logger = logging.getLogger(__name__)

FENCED_JSON = re.compile(r"```json\n?([\s\S]*?)\n?```")
OUTER_OBJECT = re.compile(r"\{[\s\S]*\}")
FALLBACK_CONTENT_LIMIT = 2000
ANALYSIS_FAILED = "AI analysis failed"


def extract_json_text(reply: str) -> str:
    """JSON payload of a model reply: fenced ```json block, else outermost {...}, else the whole reply."""
    fenced = FENCED_JSON.search(reply)
    if fenced:
        return fenced.group(1)
    outer = OUTER_OBJECT.search(reply)
    if outer:
        return outer.group(0)
    return reply


def _to_insight(item: Any) -> Optional[InsightCreate]:
    if not isinstance(item, dict):
        return None
    confidence = item.get("confidence")
    if isinstance(confidence, (int, float)) and not isinstance(confidence, bool):
        confidence = min(max(float(confidence), 0.0), 1.0)
    else:
        confidence = None
    try:
        return InsightCreate(
            type=item.get("type") or "summary",
            category=item.get("category") or "general",
            title=item.get("title") or "Insight",
            content=str(item.get("content") or ""),
            confidence=confidence,
            metrics=item.get("metrics") if isinstance(item.get("metrics"), dict) else None,
            sources=item.get("sources"),
        )
    except PydanticValidationError:
        logger.warning(f"Dropping malformed insight: {item}")
        return None


def parse_insights(reply: str) -> List[InsightCreate]:
    """
    Insights from a model reply.

    Unparseable replies become a single summary insight holding the first
    2000 characters of the reply.
    """
    try:
        parsed = json.loads(extract_json_text(reply))
        items = parsed.get("insights") or [] if isinstance(parsed, dict) else []
    except ValueError as e:
        logger.error(f"Failed to parse AI response: {e}")
        return [InsightCreate(
            type="summary",
            category="general",
            title="AI Analysis",
            content=reply[:FALLBACK_CONTENT_LIMIT],
            confidence=0.7,
        )]

    return [insight for insight in (_to_insight(item) for item in items) if insight is not None]


async def analyze_report(request: AnalyzeRequest) -> AnalyzeResult:
    """
    Analyze report content with the LLM.

    Raises:
        LLMGatewayError: 500 when not configured, 429/402 passed through,
            anything else as 500 "AI analysis failed"
    """
    logger.info(f"Analyzing report {request.report_id} of type {request.report_type}", extra={"report_id": request.report_id})

    result = await call_llm(
        system_message=REPORT_ANALYSIS_SYSTEM_PROMPT,
        user_message=build_analysis_user_prompt(
            request.content,
            request.report_type,
            request.institution_name,
            request.reporting_period,
        ),
        task="report_analysis",
    )

    if not result.ok:
        if result.error == LLMGatewayError.NOT_CONFIGURED:
            raise LLMGatewayError(LLMGatewayError.NOT_CONFIGURED)
        raise LLMGatewayError.from_status(result.status_code or 500, ANALYSIS_FAILED)

    insights = parse_insights(result.data or "")
    logger.info(f"Generated {len(insights)} insights for report {request.report_id}", extra={"report_id": request.report_id})

    return AnalyzeResult(
        success=True,
        report_id=request.report_id,
        insights=insights,
        analyzed_at=utc_now_iso(),
    )


class AnalysisService:
    """Runs analysis for stored reports."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.reports = ReportService(db)
        self.insights = InsightService(db)

    async def run_report_analysis(self, report_id: str) -> AnalyzeResult:
        """
        Analyze a stored report and persist its insights.

        The report moves to processing, then analyzed on success or error
        (with the message recorded) on any failure. The failure is re-raised
        after the report is marked.
        """
        report = await self.reports.get(report_id)
        await self.reports.set_status(report_id, ReportStatus.PROCESSING)

        request = AnalyzeRequest(
            report_id=report.id,
            content=analysis_content(report),
            report_type=report.report_type,
            institution_name=report.institution_name,
            reporting_period=report.reporting_period,
        )

        try:
            result = await analyze_report(request)
            if result.insights:
                await self.insights.save_bulk(report_id, result.insights)
            else:
                await self.reports.set_status(report_id, ReportStatus.ANALYZED)
        except AppError as e:
            await self._mark_failed(report_id, e.message)
            raise
        except Exception as e:
            logger.exception(f"Analysis of report {report_id} failed")
            await self._mark_failed(report_id, f"AI analysis failed: {type(e).__name__}")
            raise
        return result

    async def _mark_failed(self, report_id: str, message: str):
        await self.db.rollback()
        try:
            await self.reports.set_status(report_id, ReportStatus.ERROR, error_message=message)
        except ReportNotFoundError:
            logger.warning(f"Report {report_id} was deleted during analysis")


async def get_analysis_service(db: AsyncSession = Depends(get_async_db)) -> AnalysisService:
    """Dependency injection provider."""
    return AnalysisService(db)
