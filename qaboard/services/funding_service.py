from decimal import Decimal
from typing import Optional
import logging

from sqlalchemy.orm import Session
from web3 import Web3

from qaboard.config import Settings
from qaboard.core.exceptions import (
    AlreadyFundedError,
    ConfigurationError,
    InsufficientTreasuryError,
    InvalidAddressError,
    LedgerError,
    LedgerTimeoutError,
    RecordWriteFailedError,
    TransferFailedError,
)
from qaboard.providers.ledger.base import LedgerClient
from qaboard.repositories.funding_repository import FundingRepository
from qaboard.schemas.funding import FundingResponse, FundingStatusResponse
from qaboard.utils.wallet import is_valid_address, normalize_address

logger = logging.getLogger(__name__)


class FundingService:
    """신규 지갑 1회 지원금(트레저리 → 사용자) 지급 서비스

    처리 순서:
    1. 주소 검증/정규화
    2. funded_wallets 행 삽입으로 지급 권한 선점 (유니크 제약이 경쟁을 판정)
    3. 트레저리 잔액 확인
    4. 전송 후 컨펌 대기
    5. 기록 확정

    2단계 이후 전송 전에 실패하면 선점을 해제한다. 전송이 브로드캐스트된 뒤에는
    어떤 경우에도 선점을 해제하지 않는다 (이중 지급 방지).
    """

    def __init__(self, db: Session, ledger: LedgerClient, settings: Settings):
        self.db = db
        self.ledger = ledger
        self.settings = settings
        self.funding_repo = FundingRepository(db)

    @property
    def amount_wei(self) -> int:
        return Web3.to_wei(self.settings.FUNDING_AMOUNT, "ether")

    def get_funding_status(self, wallet_address: str) -> FundingStatusResponse:
        """지갑의 지원금 수령 여부 조회"""
        if not is_valid_address(wallet_address):
            raise InvalidAddressError(wallet_address)

        wallet = normalize_address(wallet_address)
        record = self.funding_repo.get(wallet)
        return FundingStatusResponse(
            wallet_address=wallet,
            funded=record is not None,
            status=record.status if record else None,
            transaction_hash=record.transaction_hash if record else None,
        )

    def request_funding(
        self, wallet_address: Optional[str], ip_address: Optional[str] = None
    ) -> FundingResponse:
        """지원금 요청

        Args:
            wallet_address: 지원금을 받을 지갑 주소 (대소문자 무관)
            ip_address: 요청자 IP (감사용)

        Returns:
            FundingResponse: 트랜잭션 해시, 금액, 익스플로러 URL

        Raises:
            InvalidAddressError, AlreadyFundedError, InsufficientTreasuryError,
            TransferFailedError, LedgerTimeoutError, RecordWriteFailedError
        """
        if not is_valid_address(wallet_address):
            raise InvalidAddressError(wallet_address)

        wallet = normalize_address(wallet_address)

        if not self.funding_repo.claim(wallet, ip_address):
            logger.info(f"Funding rejected, already claimed: {wallet}")
            raise AlreadyFundedError(wallet)

        amount_wei = self.amount_wei
        try:
            self._ensure_treasury_solvent(amount_wei)
        except Exception:
            self.funding_repo.release(wallet)
            raise

        receipt = self._transfer(wallet, amount_wei)

        try:
            self.funding_repo.finalize(
                wallet,
                transaction_hash=receipt.transaction_hash,
                amount=Decimal(self.settings.FUNDING_AMOUNT),
                ip_address=ip_address,
            )
        except Exception as e:
            # 자금은 이미 전송됨: 재전송 금지, 별도 대사(reconciliation) 필요
            logger.error(
                f"ORPHAN FUNDING: sent {self.settings.funding_amount_label} to {wallet} "
                f"tx={receipt.transaction_hash} but record write failed: {e}"
            )
            raise RecordWriteFailedError(wallet, receipt.transaction_hash)

        logger.info(
            f"Funded {wallet} with {self.settings.funding_amount_label} tx={receipt.transaction_hash}"
        )
        return FundingResponse(
            transaction_hash=receipt.transaction_hash,
            amount=self.settings.funding_amount_label,
            explorer_url=self.settings.explorer_url(receipt.transaction_hash),
        )

    def _ensure_treasury_solvent(self, amount_wei: int) -> None:
        balance = self.ledger.get_balance(self.ledger.treasury_address)
        if balance < amount_wei:
            have = f"{Web3.from_wei(balance, 'ether')} {self.settings.FUNDING_CURRENCY}"
            logger.warning(
                f"Insufficient treasury balance. Have: {have}, Need: {self.settings.funding_amount_label}"
            )
            raise InsufficientTreasuryError(have, self.settings.funding_amount_label)

    def _transfer(self, wallet: str, amount_wei: int):
        try:
            return self.ledger.transfer(wallet, amount_wei)
        except LedgerTimeoutError as e:
            tx_hash = e.details.get("transaction_hash")
            if tx_hash:
                # 브로드캐스트됨: 선점 유지, 해시만 기록
                try:
                    self.funding_repo.mark_submitted(wallet, tx_hash)
                except Exception as write_error:
                    logger.error(
                        f"Failed to record submitted funding tx={tx_hash} for {wallet}: {write_error}"
                    )
            else:
                self.funding_repo.release(wallet)
            raise
        except LedgerError as e:
            self.funding_repo.release(wallet)
            logger.warning(f"Funding transfer to {wallet} failed: {e.message}")
            raise TransferFailedError(
                f"Funding transfer failed: {e.message}",
                details={"wallet_address": wallet, **e.details},
            )
        except ConfigurationError:
            # 서명 전 실패
            self.funding_repo.release(wallet)
            raise
