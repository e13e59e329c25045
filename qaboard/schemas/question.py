from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class Question(BaseModel):
    """질문"""

    id: str = Field(..., description="클라이언트 생성 식별자 (컨트랙트 questionId)")
    user_id: int
    wallet_address: str
    title: str
    content: str
    category: str
    best_answer_id: Optional[str] = None
    best_answer_tx_hash: Optional[str] = None
    tx_hash: str
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class Answer(BaseModel):
    """답변"""

    id: str = Field(..., description="클라이언트 생성 식별자 (컨트랙트 answerId)")
    question_id: str
    user_id: int
    wallet_address: str
    content: str
    is_best_answer: bool = False
    tx_hash: str
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
