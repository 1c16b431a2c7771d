"""
Peer Metrics Service

Fetches the latest FDIC financials for a set of peer banks in parallel.
"""

from typing import List, Optional
import asyncio
import logging

from config.timeout_settings import PEER_FETCH_CONFIG
from exceptions import ValidationError
from schemas.ingestion import PeerRef, PeerMetrics, PeerMetricsResponse
from services.fdic_service import FdicService
from utils.date_utils import utc_now_iso

logger = logging.getLogger(__name__)


class PeerMetricsService:
    """Fan-out over FdicService for peer benchmarking."""

    def __init__(self, fdic: Optional[FdicService] = None):
        self.fdic = fdic or FdicService()

    async def fetch_peer(self, peer: PeerRef) -> PeerMetrics:
        metrics, period, error = await self.fdic.fetch_latest_financials(peer.rssd_id, peer.cert_number)
        if error:
            logger.warning(f"Peer {peer.name} ({peer.rssd_id}): {error}")
        return PeerMetrics(
            rssd_id=peer.rssd_id,
            name=peer.name,
            cert_number=peer.cert_number,
            period=period,
            metrics=metrics,
            fetched_at=utc_now_iso(),
            error=error,
        )

    async def fetch_peer_metrics(self, peers: List[PeerRef]) -> PeerMetricsResponse:
        """
        Latest metrics for up to 12 peers.

        One failed peer does not affect the others; its result carries an error.

        Raises:
            ValidationError: empty peer list
        """
        if not peers:
            raise ValidationError("peers array is required")

        limited = peers[:PEER_FETCH_CONFIG["max_peers"]]
        logger.info(f"Fetching metrics for {len(limited)} peers")

        results = await asyncio.gather(*(self.fetch_peer(p) for p in limited))
        success_count = sum(1 for r in results if not r.error and r.metrics.has_any())

        logger.info(f"Successfully fetched {success_count}/{len(limited)} peers")
        return PeerMetricsResponse(
            success=True,
            results=list(results),
            fetched_at=utc_now_iso(),
            success_count=success_count,
            total_requested=len(limited),
        )


def get_peer_metrics_service() -> PeerMetricsService:
    return PeerMetricsService()
