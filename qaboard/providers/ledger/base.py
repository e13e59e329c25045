from abc import ABC, abstractmethod
from typing import Optional

from qaboard.schemas.actions import ActionKind, ContractCall, OnChainRecord, Receipt


class LedgerClient(ABC):
    """블록체인 네트워크 어댑터

    모든 대기는 설정된 타임아웃으로 제한된다. 실패는 다음 예외로 전달된다:
    LedgerUnavailableError (노드 연결 불가), LedgerRejectedError (revert/거부),
    LedgerTimeoutError (컨펌 미확인).
    """

    @abstractmethod
    def submit(self, call: ContractCall) -> Receipt:
        """트랜잭션을 전송(또는 이미 전송된 트랜잭션을 추적)하고 컨펌까지 대기"""

    @abstractmethod
    def get_receipt(self, transaction_hash: str) -> Optional[Receipt]:
        """이미 컨펌된 트랜잭션 영수증 조회 (없으면 None)"""

    @abstractmethod
    def get_balance(self, address: str) -> int:
        """잔액 (wei)"""

    @abstractmethod
    def get_event(self, kind: ActionKind, identifier: str) -> Optional[OnChainRecord]:
        """식별자에 해당하는 온체인 기록 (없으면 None)"""

    @abstractmethod
    def get_user_points(self, address: str) -> int:
        """컨트랙트에 기록된 사용자 포인트"""

    @abstractmethod
    def transfer(self, to_address: str, amount_wei: int) -> Receipt:
        """트레저리 지갑에서 네이티브 토큰 전송 후 컨펌까지 대기"""

    @property
    @abstractmethod
    def treasury_address(self) -> str:
        """트레저리 지갑 주소"""
