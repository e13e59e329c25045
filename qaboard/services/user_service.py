import logging

from sqlalchemy.orm import Session

from qaboard.config import Settings
from qaboard.core.exceptions import NotFoundError, ValidationError
from qaboard.providers.ledger.base import LedgerClient
from qaboard.repositories.points_repository import PointsRepository
from qaboard.repositories.user_repository import UserRepository
from qaboard.schemas.points import PointsLedgerResponse
from qaboard.schemas.user import User as UserSchema, UserPointsResponse
from qaboard.utils.wallet import is_valid_address, normalize_address

logger = logging.getLogger(__name__)


class UserService:
    """사용자 포인트 조회 서비스"""

    def __init__(self, db: Session, ledger: LedgerClient, settings: Settings):
        self.db = db
        self.ledger = ledger
        self.settings = settings
        self.user_repo = UserRepository(db)
        self.points_repo = PointsRepository(db)

    def get_user_by_wallet(self, wallet_address: str) -> UserSchema:
        if not is_valid_address(wallet_address):
            raise ValidationError("Invalid wallet address", details={"wallet_address": wallet_address})

        user = self.user_repo.get_by_wallet(wallet_address)
        if not user:
            raise NotFoundError(
                "User not found", details={"wallet_address": normalize_address(wallet_address)}
            )
        return user

    def get_points(self, wallet_address: str, include_on_chain: bool = True) -> UserPointsResponse:
        """DB 누적 포인트와 컨트랙트 getUserPoints 비교"""
        user = self.get_user_by_wallet(wallet_address)

        on_chain_points = None
        in_sync = None
        if include_on_chain:
            on_chain_points = self.ledger.get_user_points(user.wallet_address)
            in_sync = on_chain_points == user.total_points
            if not in_sync:
                logger.warning(
                    f"Points drift for {user.wallet_address}: db={user.total_points} chain={on_chain_points}"
                )

        return UserPointsResponse(
            wallet_address=user.wallet_address,
            total_points=user.total_points,
            on_chain_points=on_chain_points,
            in_sync=in_sync,
        )

    def get_points_ledger(
        self, wallet_address: str, limit: int = 50, offset: int = 0
    ) -> PointsLedgerResponse:
        """포인트 원장 조회 (최신순)"""
        user = self.get_user_by_wallet(wallet_address)
        return self.points_repo.get_user_ledger(
            user.id, user.wallet_address, user.total_points, limit=limit, offset=offset
        )
