"""
질문/답변 데이터 모델

질문과 답변의 id는 클라이언트가 트랜잭션 전송 전에 생성한 식별자이며,
컨트랙트 호출 인자와 동일한 문자열이다. 하나의 식별자는 오프체인 행을
최대 하나만 가진다 (primary key).
"""

from typing import Optional

from sqlalchemy import BigInteger, Boolean, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from qaboard.models.base import BaseModel


class Question(BaseModel):
    __tablename__ = "questions"
    __table_args__ = (Index("idx_questions_category", "category"),)

    id: Mapped[str] = mapped_column(String(100), primary_key=True)
    user_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("users.id"), nullable=False
    )
    wallet_address: Mapped[str] = mapped_column(String(42), nullable=False, index=True)
    title: Mapped[str] = mapped_column(String(300), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    category: Mapped[str] = mapped_column(String(100), nullable=False)
    # null -> 값으로 단 한 번만 전이 (조건부 UPDATE ... WHERE best_answer_id IS NULL)
    best_answer_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    best_answer_tx_hash: Mapped[Optional[str]] = mapped_column(String(66), nullable=True)
    tx_hash: Mapped[str] = mapped_column(String(66), nullable=False)

    def __repr__(self):
        return f"<Question(id={self.id}, author={self.wallet_address}, best={self.best_answer_id})>"


class Answer(BaseModel):
    __tablename__ = "answers"

    id: Mapped[str] = mapped_column(String(100), primary_key=True)
    question_id: Mapped[str] = mapped_column(
        String(100), ForeignKey("questions.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("users.id"), nullable=False
    )
    wallet_address: Mapped[str] = mapped_column(String(42), nullable=False, index=True)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    is_best_answer: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    tx_hash: Mapped[str] = mapped_column(String(66), nullable=False)

    def __repr__(self):
        return f"<Answer(id={self.id}, question={self.question_id}, best={self.is_best_answer})>"
