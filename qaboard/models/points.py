"""
포인트 원장 데이터 모델

사용자 포인트의 모든 적립 내역을 저장하는 원장(Ledger) 테이블.
ref_id는 "<action_kind>:<identifier>" 형식이며 유니크 제약으로
동일한 온체인 이벤트에 대한 포인트가 두 번 적립되지 않도록 보장한다.
"""

from sqlalchemy import BigInteger, Column, ForeignKey, String, Text
from sqlalchemy.schema import UniqueConstraint

from qaboard.models.base import BaseModel, BigIntPK


class PointsLedger(BaseModel):
    """
    포인트 원장 테이블

    1. 불변성(Immutable): 한번 생성된 레코드는 수정되지 않음
    2. 멱등성(Idempotent): ref_id를 통해 중복 적립 방지
    3. 정합성(Integrity): balance_after 필드로 잔액 추적
    """

    __tablename__ = "points_ledger"
    __table_args__ = (UniqueConstraint("ref_id", name="uq_points_ledger_ref_id"),)

    id = Column(BigIntPK, primary_key=True, autoincrement=True)

    user_id = Column(BigInteger, ForeignKey("users.id"), nullable=False, index=True)

    # 포인트 변동량 - 적립만 존재하므로 항상 양수
    delta_points = Column(BigInteger, nullable=False)

    # 적립 사유 (예: "ask_question", "best_answer")
    reason = Column(Text, nullable=False)

    # 중복 적립 방지용 참조 ID (예: "submit_answer:1b4e28ba-2fa1-11d2-883f-0016d3cca427")
    ref_id = Column(String(150), nullable=False)

    # 적립 직후 사용자의 총 포인트
    balance_after = Column(BigInteger, nullable=False)
