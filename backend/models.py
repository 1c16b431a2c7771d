from sqlalchemy import Column, String, Text, ForeignKey, DateTime, JSON, Float
from sqlalchemy.orm import declarative_base, relationship
from datetime import datetime
from enum import Enum as PyEnum
import uuid

Base = declarative_base()


def _uuid() -> str:
    return str(uuid.uuid4())


# Enums
class ReportStatus(str, PyEnum):
    """
    Lifecycle of an ingested report.

    PENDING -> PROCESSING -> ANALYZED | ERROR. Re-analysis moves an
    ANALYZED or ERROR report back to PROCESSING.
    """
    PENDING = "pending"
    PROCESSING = "processing"
    ANALYZED = "analyzed"
    ERROR = "error"


class ReportType(str, PyEnum):
    """Regulatory filing types"""
    CALL_REPORT = "call_report"
    UBPR = "ubpr"
    FR_Y9C = "fr_y9c"
    SUMMARY_OF_DEPOSITS = "summary_of_deposits"
    SEC_FILING = "sec_filing"
    CUSTOM = "custom"


class ReportSource(str, PyEnum):
    """Where a report came from"""
    UPLOAD = "upload"
    FFIEC = "ffiec"
    FRED = "fred"
    SEC = "sec"
    FDIC = "fdic"
    CUSTOM = "custom"


class InsightType(str, PyEnum):
    SUMMARY = "summary"
    METRIC_EXTRACTION = "metric_extraction"
    RISK_ASSESSMENT = "risk_assessment"
    TREND_ANALYSIS = "trend_analysis"
    RECOMMENDATION = "recommendation"


class InsightStatus(str, PyEnum):
    """Review state set by accept/reject actions"""
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class ConnectionStatus(str, PyEnum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    ERROR = "error"


# === REPORT STORE ===

class IngestedReport(Base):
    """A regulatory report that was uploaded or fetched from a portal"""
    __tablename__ = "ingested_reports"

    id = Column(String(36), primary_key=True, default=_uuid)
    name = Column(String(500), nullable=False)
    report_type = Column(String(50), nullable=False, default=ReportType.CUSTOM.value)
    source = Column(String(50), nullable=False, default=ReportSource.UPLOAD.value)
    source_url = Column(Text, nullable=True)
    file_path = Column(Text, nullable=True)
    rssd_id = Column(String(20), nullable=True, index=True)
    institution_name = Column(String(255), nullable=True)
    reporting_period = Column(String(50), nullable=True)
    raw_content = Column(Text, nullable=True)
    status = Column(String(20), nullable=False, default=ReportStatus.PENDING.value, index=True)
    error_message = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    insights = relationship(
        "ReportInsight",
        back_populates="report",
        cascade="all, delete-orphan",
        order_by="ReportInsight.created_at",
    )


class ReportInsight(Base):
    """AI-generated insight attached to a report"""
    __tablename__ = "report_insights"

    id = Column(String(36), primary_key=True, default=_uuid)
    report_id = Column(String(36), ForeignKey("ingested_reports.id", ondelete="CASCADE"), nullable=False, index=True)
    insight_type = Column(String(50), nullable=False)
    category = Column(String(50), nullable=True)
    title = Column(String(500), nullable=False)
    content = Column(Text, nullable=False)
    confidence_score = Column(Float, nullable=True)
    metrics = Column(JSON, nullable=True)  # {tier1_capital_ratio: 12.5, total_assets: 4.6e11, ...}
    sources = Column(JSON, nullable=True)
    status = Column(String(20), nullable=False, default=InsightStatus.PENDING.value)
    created_at = Column(DateTime, default=datetime.utcnow)

    # Relationships
    report = relationship("IngestedReport", back_populates="insights")


class ApiConnection(Base):
    """Saved configuration for pulling data from a regulatory portal"""
    __tablename__ = "api_connections"

    id = Column(String(36), primary_key=True, default=_uuid)
    name = Column(String(255), nullable=False)
    portal = Column(String(50), nullable=False)
    base_url = Column(Text, nullable=False)
    auth_type = Column(String(50), nullable=False, default="none")
    credentials_encrypted = Column(Text, nullable=True)
    headers = Column(JSON, nullable=True)
    query_params = Column(JSON, nullable=True)
    rssd_id = Column(String(20), nullable=True)
    schedule = Column(String(100), nullable=True)  # Stored for the UI; syncs are triggered manually
    last_sync_at = Column(DateTime, nullable=True)
    status = Column(String(20), nullable=False, default=ConnectionStatus.ACTIVE.value)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class DataChatMessage(Base):
    """One turn of the data chat"""
    __tablename__ = "data_chat_messages"

    id = Column(String(36), primary_key=True, default=_uuid)
    role = Column(String(20), nullable=False)  # 'user', 'assistant'
    content = Column(Text, nullable=False)
    report_ids = Column(JSON, nullable=True)  # report context used for this turn
    # "metadata" is reserved on declarative classes
    message_metadata = Column("metadata", JSON, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, index=True)
