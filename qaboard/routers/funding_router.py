"""
지원금 API 라우터

- POST /funding: 신규 지갑 1회 지원금 요청
- GET /funding/{wallet_address}: 지원금 수령 여부 조회

전송 컨펌까지 블로킹하므로 동기 핸들러(스레드풀)로 정의한다.
"""

import logging

from fastapi import APIRouter, Depends, Path, Request

from qaboard.deps import get_client_ip, get_funding_service
from qaboard.schemas.funding import FundingRequest, FundingResponse, FundingStatusResponse
from qaboard.services.funding_service import FundingService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/funding", tags=["funding"])


@router.post("", response_model=FundingResponse)
def request_funding(
    body: FundingRequest,
    request: Request,
    funding_service: FundingService = Depends(get_funding_service),
) -> FundingResponse:
    """
    지원금 요청

    HTTP Status:
        200: 전송 컨펌 및 기록 완료
        400: 잘못된 지갑 주소
        409: 이미 지원금을 받은 지갑
        502: 전송 실패 (자금 이동 없음, 재시도 가능)
        503: 트레저리 잔액 부족 / 노드 연결 불가
        504: 브로드캐스트 후 컨펌 미확인 (재시도 금지, 상태 조회)
        500: 전송은 되었으나 기록 실패
    """
    return funding_service.request_funding(body.wallet_address, ip_address=get_client_ip(request))


@router.get("/{wallet_address}", response_model=FundingStatusResponse)
def get_funding_status(
    wallet_address: str = Path(..., description="지갑 주소"),
    funding_service: FundingService = Depends(get_funding_service),
) -> FundingStatusResponse:
    """지원금 수령 여부 조회"""
    return funding_service.get_funding_status(wallet_address)
