"""Pydantic models for health endpoints."""

from typing import Optional
from pydantic import BaseModel


class HealthCheckResponse(BaseModel):
    """Response model for service health checks."""

    status: str = "healthy"
    environment: str
    database: bool = True
    chain_id: int
    contract_address: str
    error: Optional[str] = None
