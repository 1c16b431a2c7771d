from .ingestion_service import IngestionService
from .peer_metrics_service import PeerMetricsService

__all__ = [
    'IngestionService',
    'PeerMetricsService',
]
