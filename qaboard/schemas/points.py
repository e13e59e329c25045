from pydantic import BaseModel, Field
from typing import List, Optional


class PointsLedgerEntry(BaseModel):
    """포인트 원장 항목"""

    id: int = Field(..., description="원장 항목 ID")
    delta_points: int = Field(..., description="포인트 변화량")
    balance_after: int = Field(..., description="적립 후 총 포인트")
    reason: str = Field(..., description="적립 사유")
    ref_id: str = Field(..., description="참조 ID")
    created_at: str = Field(..., description="생성 시간")

    class Config:
        from_attributes = True


class PointsLedgerResponse(BaseModel):
    """포인트 원장 조회 응답"""

    wallet_address: str = Field(..., description="지갑 주소")
    balance: int = Field(..., description="현재 포인트")
    entries: List[PointsLedgerEntry] = Field(..., description="원장 항목 목록")
    total_count: int = Field(..., description="전체 항목 수")
    has_next: bool = Field(..., description="다음 페이지 존재 여부")

    class Config:
        from_attributes = True


class PointsTransactionResponse(BaseModel):
    """포인트 적립 결과"""

    success: bool = Field(..., description="성공 여부")
    transaction_id: Optional[int] = Field(None, description="원장 항목 ID")
    delta_points: int = Field(..., description="이번 호출로 반영된 포인트 (중복이면 0)")
    balance_after: int = Field(..., description="적립 후 총 포인트")
    message: str = Field(..., description="응답 메시지")
    duplicate: bool = Field(False, description="이미 처리된 ref_id 여부")

    class Config:
        from_attributes = True
