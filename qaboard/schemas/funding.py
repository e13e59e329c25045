from typing import Optional

from pydantic import BaseModel, Field


class FundingRequest(BaseModel):
    """지원금 요청"""

    wallet_address: Optional[str] = Field(None, description="지원금을 받을 지갑 주소")


class FundingResponse(BaseModel):
    """지원금 지급 성공 응답"""

    success: bool = True
    transaction_hash: str
    amount: str = Field(..., description="예: '0.12 CELO'")
    explorer_url: str


class FundingStatusResponse(BaseModel):
    wallet_address: str
    funded: bool
    status: Optional[str] = None
    transaction_hash: Optional[str] = None
