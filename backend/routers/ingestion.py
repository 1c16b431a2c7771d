"""
Ingestion Router - pulls data from regulatory portals.

Failures come back as {"success": false, "error": ...} with the upstream
status code (see the AppError handler in main.py).
"""

from fastapi import APIRouter, Depends
import logging

from schemas.ingestion import (
    FetchApiRequest, IngestionEnvelope,
    ScrapeRequest, ScrapeResponse,
    MetricRequest, MetricResponse,
    PeerMetricsRequest, PeerMetricsResponse,
)
from services.ingestion_service import IngestionService, get_ingestion_service
from services.peer_metrics_service import PeerMetricsService, get_peer_metrics_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/ingestion", tags=["ingestion"])


@router.post("/fetch-api-data", response_model=IngestionEnvelope)
async def fetch_api_data(
    request: FetchApiRequest,
    ingestion_service: IngestionService = Depends(get_ingestion_service),
):
    """Fetch from FFIEC, FRED, SEC, FDIC or a custom API."""
    return await ingestion_service.fetch_api_data(request)


@router.post("/scrape-regulatory-data", response_model=ScrapeResponse)
async def scrape_regulatory_data(
    request: ScrapeRequest,
    ingestion_service: IngestionService = Depends(get_ingestion_service),
):
    """Scrape a public portal page with structured extraction."""
    return await ingestion_service.scrape_regulatory_data(request)


@router.post("/fetch-metric-data", response_model=MetricResponse)
async def fetch_metric_data(
    request: MetricRequest,
    ingestion_service: IngestionService = Depends(get_ingestion_service),
):
    """Quarterly and yearly history for one dashboard metric."""
    return await ingestion_service.fetch_metric_data(request)


@router.post("/fetch-peer-metrics", response_model=PeerMetricsResponse)
async def fetch_peer_metrics(
    request: PeerMetricsRequest,
    peer_metrics_service: PeerMetricsService = Depends(get_peer_metrics_service),
):
    """Latest FDIC financials for up to 12 peer banks."""
    return await peer_metrics_service.fetch_peer_metrics(request.peers)
