"""
지원금 기록 리포지토리

claim()이 지갑별 지급 권한을 선점하는 유일한 경로이다. 행이 먼저 커밋된 뒤에만
트레저리 전송이 일어나므로, 동시에 들어온 요청 중 패배한 쪽은 전송 전에 중단된다.
"""

from decimal import Decimal
from typing import Optional

from sqlalchemy import insert
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from qaboard.models.funding import FundedWallet, FundingStatus


class FundingRepository:
    """지갑별 1회 지원금 기록"""

    def __init__(self, db: Session):
        self.db = db

    def get(self, wallet_address: str) -> Optional[FundedWallet]:
        return self.db.get(FundedWallet, wallet_address)

    def claim(self, wallet_address: str, ip_address: Optional[str]) -> bool:
        """지급 권한 선점 (커밋 포함)

        Returns:
            True면 이 요청이 지급 권한을 가짐, False면 이미 다른 요청이 선점
        """
        try:
            self.db.execute(
                insert(FundedWallet).values(
                    wallet_address=wallet_address,
                    status=FundingStatus.CLAIMED.value,
                    ip_address=ip_address,
                )
            )
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            return False
        return True

    def release(self, wallet_address: str) -> None:
        """전송 전에 실패한 선점 해제 (아직 CLAIMED 상태인 행만 삭제)"""
        try:
            (
                self.db.query(FundedWallet)
                .filter(
                    FundedWallet.wallet_address == wallet_address,
                    FundedWallet.status == FundingStatus.CLAIMED.value,
                )
                .delete(synchronize_session=False)
            )
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

    def mark_submitted(self, wallet_address: str, transaction_hash: str) -> None:
        self._update(
            wallet_address,
            transaction_hash=transaction_hash,
            status=FundingStatus.SUBMITTED.value,
        )

    def finalize(
        self,
        wallet_address: str,
        transaction_hash: str,
        amount: Decimal,
        ip_address: Optional[str],
    ) -> None:
        self._update(
            wallet_address,
            transaction_hash=transaction_hash,
            amount=amount,
            ip_address=ip_address,
            status=FundingStatus.CONFIRMED.value,
        )

    def _update(self, wallet_address: str, **values) -> None:
        try:
            updated = (
                self.db.query(FundedWallet)
                .filter(FundedWallet.wallet_address == wallet_address)
                .update(values, synchronize_session=False)
            )
            if updated != 1:
                raise RuntimeError(f"Funding claim for {wallet_address} disappeared")
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        self.db.expire_all()
