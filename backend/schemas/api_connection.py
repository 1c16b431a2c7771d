"""
API connection Pydantic schemas.
"""

from pydantic import BaseModel, Field
from typing import Optional, Dict, Any
from datetime import datetime
from enum import Enum

from models import ConnectionStatus


class Portal(str, Enum):
    FFIEC = "ffiec"
    FRED = "fred"
    SEC = "sec"
    FDIC = "fdic"
    CUSTOM = "custom"


class AuthType(str, Enum):
    NONE = "none"
    API_KEY = "api_key"
    BEARER = "bearer"
    BASIC = "basic"


class ApiConnectionCreate(BaseModel):
    """Request schema for saving a portal connection."""
    name: Optional[str] = Field(default=None, max_length=255, description="Defaults to '<Portal> Connection'")
    portal: Portal
    base_url: Optional[str] = Field(default=None, description="Required for custom portals")
    auth_type: AuthType = AuthType.NONE
    api_key: Optional[str] = Field(default=None, description="Stored obfuscated, never returned")
    headers: Optional[Dict[str, Any]] = None
    query_params: Optional[Dict[str, Any]] = None
    rssd_id: Optional[str] = None
    schedule: Optional[str] = None
    status: ConnectionStatus = ConnectionStatus.ACTIVE


class ApiConnectionSchema(BaseModel):
    """Response schema for a portal connection. Credentials are omitted."""
    id: str
    name: str
    portal: str
    base_url: str
    auth_type: str
    headers: Optional[Dict[str, Any]] = None
    query_params: Optional[Dict[str, Any]] = None
    rssd_id: Optional[str] = None
    schedule: Optional[str] = None
    last_sync_at: Optional[datetime] = None
    status: str
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class SyncResult(BaseModel):
    """Outcome of pulling data through a saved connection."""
    success: bool
    connection_id: str
    report_id: Optional[str] = None
    error: Optional[str] = None
