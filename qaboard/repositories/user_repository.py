from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from qaboard.models.user import User as UserModel
from qaboard.repositories.base import BaseRepository
from qaboard.schemas.user import User as UserSchema
from qaboard.utils.wallet import normalize_address


class UserRepository(BaseRepository[UserModel, UserSchema]):
    """사용자 리포지토리 - 지갑 주소 기준"""

    def __init__(self, db: Session):
        super().__init__(UserModel, UserSchema, db)

    def get_by_wallet(self, wallet_address: str) -> Optional[UserSchema]:
        """지갑 주소로 사용자 조회 (대소문자 무시)"""
        return self.get_by_field("wallet_address", normalize_address(wallet_address))

    def get_or_create(self, wallet_address: str) -> UserSchema:
        """사용자 조회, 없으면 생성 (커밋하지 않음)

        동시 생성 경쟁은 wallet_address 유니크 제약으로 판정한다.
        패배한 쪽은 savepoint만 롤백하고 승자의 행을 다시 읽는다.
        """
        wallet = normalize_address(wallet_address)
        existing = self.get_by_wallet(wallet)
        if existing:
            return existing

        try:
            with self.db.begin_nested():
                instance = self.model_class(wallet_address=wallet, total_points=0)
                self.db.add(instance)
                self.db.flush()
        except IntegrityError:
            existing = self.get_by_wallet(wallet)
            if existing is None:
                raise
            return existing

        self.db.refresh(instance)
        return self._to_schema(instance)
