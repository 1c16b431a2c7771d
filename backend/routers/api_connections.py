"""
API Connections Router - saved portal connections and manual sync.
"""

from fastapi import APIRouter, Depends
from typing import List
import logging

from schemas.api_connection import ApiConnectionCreate, ApiConnectionSchema, SyncResult
from services.api_connection_service import ApiConnectionService, get_api_connection_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/connections", tags=["api-connections"])


@router.get("", response_model=List[ApiConnectionSchema])
async def list_connections(
    connection_service: ApiConnectionService = Depends(get_api_connection_service),
):
    return await connection_service.list()


@router.post("", response_model=ApiConnectionSchema, status_code=201)
async def create_connection(
    data: ApiConnectionCreate,
    connection_service: ApiConnectionService = Depends(get_api_connection_service),
):
    """Save a portal connection. The API key is stored but never returned."""
    return await connection_service.create(data)


@router.delete("/{connection_id}")
async def delete_connection(
    connection_id: str,
    connection_service: ApiConnectionService = Depends(get_api_connection_service),
):
    await connection_service.delete(connection_id)
    return {"ok": True}


@router.post("/{connection_id}/sync", response_model=SyncResult)
async def sync_connection(
    connection_id: str,
    analyze: bool = True,
    connection_service: ApiConnectionService = Depends(get_api_connection_service),
):
    """Fetch data through the connection and store it as a report."""
    return await connection_service.sync(connection_id, analyze=analyze)
