from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class User(BaseModel):
    """사용자"""

    id: int
    wallet_address: str
    username: Optional[str] = None
    total_points: int = Field(0, ge=0)
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class UserPointsResponse(BaseModel):
    """오프체인/온체인 포인트 비교 응답"""

    wallet_address: str
    total_points: int = Field(..., description="DB 기준 누적 포인트")
    on_chain_points: Optional[int] = Field(None, description="컨트랙트 getUserPoints 결과")
    in_sync: Optional[bool] = Field(None, description="두 값이 일치하는지 여부")
