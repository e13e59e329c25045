import logging

from fastapi import APIRouter, Depends, Query

from qaboard.deps import get_user_service
from qaboard.schemas.points import PointsLedgerResponse
from qaboard.schemas.user import UserPointsResponse
from qaboard.services.user_service import UserService

router = APIRouter(prefix="/users", tags=["users"])
logger = logging.getLogger(__name__)


@router.get("/{wallet_address}/points", response_model=UserPointsResponse)
def get_user_points(
    wallet_address: str,
    include_on_chain: bool = Query(True, description="컨트랙트 getUserPoints와 비교"),
    user_service: UserService = Depends(get_user_service),
) -> UserPointsResponse:
    """사용자 누적 포인트 (DB / 온체인)"""
    return user_service.get_points(wallet_address, include_on_chain=include_on_chain)


@router.get("/{wallet_address}/points/ledger", response_model=PointsLedgerResponse)
def get_user_points_ledger(
    wallet_address: str,
    limit: int = Query(50, ge=1, le=100, description="페이지 크기"),
    offset: int = Query(0, ge=0, description="오프셋"),
    user_service: UserService = Depends(get_user_service),
) -> PointsLedgerResponse:
    """포인트 적립 내역 (최신순)"""
    return user_service.get_points_ledger(wallet_address, limit=limit, offset=offset)
