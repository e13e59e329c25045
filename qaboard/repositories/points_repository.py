"""
포인트 리포지토리 - 포인트 적립 및 원장 조회

핵심 특징:
- 모든 적립은 ref_id를 통해 중복 처리가 방지됩니다
- 원장 행 삽입과 users.total_points 증가는 같은 savepoint 안에서 처리됩니다
- 증가는 SQL 수준의 원자적 연산(total_points = total_points + n)으로 처리합니다
"""

from sqlalchemy import desc, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from qaboard.models.points import PointsLedger as PointsLedgerModel
from qaboard.models.user import User as UserModel
from qaboard.repositories.base import BaseRepository
from qaboard.schemas.points import (
    PointsLedgerEntry,
    PointsLedgerResponse,
    PointsTransactionResponse,
)


class PointsRepository(BaseRepository[PointsLedgerModel, PointsLedgerEntry]):
    """
    포인트 리포지토리

    주요 기능:
    1. 멱등성 보장 - ref_id를 통한 중복 적립 방지
    2. 원자성 - savepoint 안에서 원장 기록과 잔액 증가를 함께 처리
    3. 완전한 감사 추적 - 모든 포인트 변동 기록
    """

    def __init__(self, db: Session):
        super().__init__(PointsLedgerModel, PointsLedgerEntry, db)

    def _to_ledger_entry(self, model_instance: PointsLedgerModel) -> PointsLedgerEntry:
        return PointsLedgerEntry(
            id=model_instance.id,
            delta_points=model_instance.delta_points,
            balance_after=model_instance.balance_after,
            reason=model_instance.reason,
            ref_id=model_instance.ref_id,
            created_at=(
                model_instance.created_at.strftime("%Y-%m-%d %H:%M:%S")
                if model_instance.created_at
                else ""
            ),
        )

    def get_by_ref_id(self, ref_id: str):
        return (
            self.db.query(self.model_class)
            .filter(self.model_class.ref_id == ref_id)
            .first()
        )

    def award_points(
        self, user_id: int, points: int, reason: str, ref_id: str
    ) -> PointsTransactionResponse:
        """
        포인트 적립 (멱등성 보장, 커밋하지 않음)

        Args:
            user_id: 대상 사용자 ID
            points: 적립할 포인트 (양수)
            reason: 적립 사유
            ref_id: 중복 방지용 고유 참조 ID

        Returns:
            PointsTransactionResponse: 이미 처리된 ref_id면 duplicate=True, delta_points=0

        멱등성:
        - 동일한 ref_id로 여러 번 호출해도 한 번만 적립됨
        - 동시 호출 시 유니크 제약 위반(IntegrityError)으로 패배한 쪽은 아무것도 변경하지 않음
        """
        if points <= 0:
            raise ValueError("points must be positive")

        existing_entry = self.get_by_ref_id(ref_id)
        if existing_entry:
            return self._duplicate_response(existing_entry)

        try:
            with self.db.begin_nested():
                ledger_entry = self.model_class(
                    user_id=user_id,
                    delta_points=points,
                    reason=reason,
                    ref_id=ref_id,
                    balance_after=0,
                )
                self.db.add(ledger_entry)
                self.db.flush()

                self.db.execute(
                    update(UserModel)
                    .where(UserModel.id == user_id)
                    .values(total_points=UserModel.total_points + points)
                    .execution_options(synchronize_session=False)
                )
                new_balance = (
                    self.db.query(UserModel.total_points)
                    .filter(UserModel.id == user_id)
                    .scalar()
                )
                ledger_entry.balance_after = new_balance
                self.db.flush()
                entry_id = ledger_entry.id
        except IntegrityError:
            existing_entry = self.get_by_ref_id(ref_id)
            if existing_entry is None:
                raise
            return self._duplicate_response(existing_entry)

        self.db.expire_all()
        return PointsTransactionResponse(
            success=True,
            transaction_id=entry_id,
            delta_points=points,
            balance_after=new_balance,
            message="Points awarded",
        )

    def _duplicate_response(self, entry: PointsLedgerModel) -> PointsTransactionResponse:
        return PointsTransactionResponse(
            success=True,
            transaction_id=entry.id,
            delta_points=0,
            balance_after=entry.balance_after,
            message="Points already awarded (idempotent)",
            duplicate=True,
        )

    def get_user_ledger(
        self, user_id: int, wallet_address: str, balance: int, limit: int = 50, offset: int = 0
    ) -> PointsLedgerResponse:
        """사용자 포인트 원장 조회 (페이징, 최신순)"""
        total_count = (
            self.db.query(self.model_class)
            .filter(self.model_class.user_id == user_id)
            .count()
        )

        model_instances = (
            self.db.query(self.model_class)
            .filter(self.model_class.user_id == user_id)
            .order_by(desc(self.model_class.id))
            .limit(limit)
            .offset(offset)
            .all()
        )

        return PointsLedgerResponse(
            wallet_address=wallet_address,
            balance=balance,
            entries=[self._to_ledger_entry(instance) for instance in model_instances],
            total_count=total_count,
            has_next=offset + limit < total_count,
        )
