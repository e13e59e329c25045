from typing import Optional

from sqlalchemy import BigInteger, CheckConstraint, String
from sqlalchemy.orm import Mapped, mapped_column

from qaboard.models.base import BaseModel, BigIntPK


class User(BaseModel):
    """지갑 주소로 식별되는 사용자

    wallet_address는 항상 소문자로 정규화되어 저장된다.
    total_points는 Action Reconciler만 변경한다.
    """

    __tablename__ = "users"
    __table_args__ = (
        CheckConstraint("total_points >= 0", name="ck_users_total_points_non_negative"),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    wallet_address: Mapped[str] = mapped_column(
        String(42), unique=True, nullable=False, index=True
    )
    username: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    total_points: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)

    def __repr__(self):
        return f"<User(id={self.id}, wallet={self.wallet_address}, points={self.total_points})>"
