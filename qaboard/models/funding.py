from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from sqlalchemy import DateTime, Numeric, String, func
from sqlalchemy.orm import Mapped, mapped_column

from qaboard.models.base import Base


class FundingStatus(str, Enum):
    """지원금 지급 상태"""

    CLAIMED = "claimed"  # 지급 권한 선점, 아직 전송 전
    SUBMITTED = "submitted"  # 전송됨, 컨펌 미확인
    CONFIRMED = "confirmed"  # 컨펌 및 기록 완료


class FundedWallet(Base):
    """지갑별 1회 지원금 기록

    행의 존재 자체가 "이미 지급됨"의 유일한 근거이다.
    wallet_address의 primary key 제약이 동시 요청 경쟁을 판정한다.
    """

    __tablename__ = "funded_wallets"

    wallet_address: Mapped[str] = mapped_column(String(42), primary_key=True)
    transaction_hash: Mapped[Optional[str]] = mapped_column(String(66), nullable=True)
    amount: Mapped[Optional[Decimal]] = mapped_column(Numeric(36, 18), nullable=True)
    status: Mapped[str] = mapped_column(
        String(20), default=FundingStatus.CLAIMED.value, nullable=False
    )
    ip_address: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    requested_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    def __repr__(self):
        return f"<FundedWallet(wallet={self.wallet_address}, status={self.status}, tx={self.transaction_hash})>"
