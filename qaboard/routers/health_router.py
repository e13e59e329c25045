import logging

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.orm import Session

from qaboard.config import settings
from qaboard.database.session import get_db
from qaboard.schemas.health import HealthCheckResponse

router = APIRouter(tags=["health"])
logger = logging.getLogger(__name__)


@router.get("/health", response_model=HealthCheckResponse)
def health_check(db: Session = Depends(get_db)) -> HealthCheckResponse:
    """Health check endpoint. Does not call the RPC node."""

    response = HealthCheckResponse(
        environment=settings.ENVIRONMENT,
        chain_id=settings.CHAIN_ID,
        contract_address=settings.CONTRACT_ADDRESS,
    )
    try:
        db.execute(text("SELECT 1"))
    except Exception as e:
        logger.error(f"Health check database failure: {e}")
        response.status = "degraded"
        response.database = False
        response.error = str(e)
    return response
