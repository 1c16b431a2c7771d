"""
Schemas package for the regintel API.

Report store rows are in report.py, insight.py and api_connection.py;
adapter envelopes in ingestion.py and analysis.py; derived views in dashboard.py.
"""

# Report store schemas
from .report import (
    ReportCreate,
    ReportUpdate,
    ReportSchema,
    ReportDetail,
    ReportsListResponse,
)
from .insight import (
    InsightCreate,
    InsightSchema,
    InsightsListResponse,
)
from .api_connection import (
    Portal,
    AuthType,
    ApiConnectionCreate,
    ApiConnectionSchema,
)

# Adapter envelopes
from .ingestion import (
    CamelModel,
    IngestionEnvelope,
    PeerMetrics,
)
from .analysis import AnalyzeRequest, AnalyzeResult

# Chat schemas
from .chat import ChatRequest, ChatMessageSchema


__all__ = [
    # Report store schemas
    'ReportCreate',
    'ReportUpdate',
    'ReportSchema',
    'ReportDetail',
    'ReportsListResponse',
    'InsightCreate',
    'InsightSchema',
    'InsightsListResponse',
    'Portal',
    'AuthType',
    'ApiConnectionCreate',
    'ApiConnectionSchema',

    # Adapter envelopes
    'CamelModel',
    'IngestionEnvelope',
    'PeerMetrics',
    'AnalyzeRequest',
    'AnalyzeResult',

    # Chat schemas
    'ChatRequest',
    'ChatMessageSchema',
]
