"""
온체인/오프체인 액션 스키마

질문 등록, 답변 제출, 채택(best answer) 세 가지 액션은 모두 같은 흐름을 따른다:
클라이언트가 식별자를 생성 → 트랜잭션 컨펌 → 같은 식별자로 DB 기록.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from qaboard.utils.wallet import is_valid_tx_hash


class ActionKind(str, Enum):
    """액션 종류"""

    ASK_QUESTION = "ask_question"
    SUBMIT_ANSWER = "submit_answer"
    SELECT_BEST_ANSWER = "select_best_answer"

    @property
    def contract_function(self) -> str:
        return {
            ActionKind.ASK_QUESTION: "askQuestion",
            ActionKind.SUBMIT_ANSWER: "submitAnswer",
            ActionKind.SELECT_BEST_ANSWER: "selectBestAnswer",
        }[self]

    @property
    def contract_event(self) -> str:
        return {
            ActionKind.ASK_QUESTION: "QuestionAsked",
            ActionKind.SUBMIT_ANSWER: "AnswerSubmitted",
            ActionKind.SELECT_BEST_ANSWER: "BestAnswerSelected",
        }[self]


class ActionStatus(str, Enum):
    NOT_FOUND = "not_found"
    CONFIRMED_ON_CHAIN = "confirmed_on_chain"
    RECONCILED = "reconciled"


# ---------------------------------------------------------------------------
# Ledger value objects
# ---------------------------------------------------------------------------


class TransactionInput(BaseModel):
    """사용자 지갑이 서명한 트랜잭션

    signed_transaction: 서버가 대신 브로드캐스트할 raw 트랜잭션 (0x hex)
    transaction_hash: 지갑이 이미 브로드캐스트한 트랜잭션 해시
    둘 중 정확히 하나만 지정해야 한다.
    """

    signed_transaction: Optional[str] = Field(None, description="Signed raw transaction")
    transaction_hash: Optional[str] = Field(None, description="Already broadcast tx hash")

    @model_validator(mode="after")
    def check_exactly_one(self):
        if bool(self.signed_transaction) == bool(self.transaction_hash):
            raise ValueError(
                "exactly one of signed_transaction or transaction_hash is required"
            )
        if self.signed_transaction and not self.signed_transaction.startswith("0x"):
            raise ValueError("signed_transaction must start with 0x")
        if self.transaction_hash and not is_valid_tx_hash(self.transaction_hash):
            raise ValueError("transaction_hash must be 0x followed by 64 hex chars")
        return self


class ContractCall(BaseModel):
    """컨트랙트 호출 명세 (Ledger Client 입력)"""

    function: str
    args: List[str]
    sender: str
    signed_transaction: Optional[str] = None
    transaction_hash: Optional[str] = None


class LedgerEvent(BaseModel):
    """영수증 로그에서 디코딩한 컨트랙트 이벤트"""

    name: str
    args: Dict[str, Any] = Field(default_factory=dict)


class Receipt(BaseModel):
    """컨펌된 트랜잭션 결과"""

    transaction_hash: str
    block_number: Optional[int] = None
    confirmed_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    events: List[LedgerEvent] = Field(default_factory=list)

    def find_event(self, name: str, **expected: str) -> Optional[LedgerEvent]:
        """이름과 인자가 일치하는 첫 이벤트 (주소는 대소문자 무시)"""
        for event in self.events:
            if event.name != name:
                continue
            if all(
                str(event.args.get(key, "")).lower() == str(value).lower()
                for key, value in expected.items()
            ):
                return event
        return None


class OnChainRecord(BaseModel):
    """컨트랙트 view 조회 결과 (getQuestion / getAnswer)"""

    identifier: str
    kind: ActionKind
    author: str
    question_id: Optional[str] = None
    category: Optional[str] = None
    timestamp: int = 0
    is_best_answer: bool = False


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------


class ActionRequestBase(BaseModel):
    identifier: str = Field(..., min_length=1, max_length=100, description="Client-generated id")
    author_wallet: str = Field(..., description="Wallet address of the acting user")
    transaction: TransactionInput


class AskQuestionRequest(ActionRequestBase):
    title: str = Field(..., min_length=1, max_length=300)
    content: str = Field(..., min_length=1)
    category: str = Field(..., min_length=1, max_length=100)

    @field_validator("title", "content", "category")
    @classmethod
    def not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("must not be blank")
        return v.strip()


class SubmitAnswerRequest(ActionRequestBase):
    question_id: str = Field(..., min_length=1, max_length=100)
    content: str = Field(..., min_length=1)

    @field_validator("content")
    @classmethod
    def not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("must not be blank")
        return v.strip()


class SelectBestAnswerRequest(ActionRequestBase):
    """identifier는 채택할 답변의 id"""

    question_id: str = Field(..., min_length=1, max_length=100)


class ReconcileRequest(BaseModel):
    """컨펌 이후 DB 기록이 실패한 액션 재시도 (온체인 재전송 없음)"""

    kind: ActionKind
    identifier: str = Field(..., min_length=1, max_length=100)
    author_wallet: str
    transaction_hash: str
    payload: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("transaction_hash")
    @classmethod
    def check_tx_hash(cls, v: str) -> str:
        if not is_valid_tx_hash(v):
            raise ValueError("transaction_hash must be 0x followed by 64 hex chars")
        return v


# ---------------------------------------------------------------------------
# In-memory lifecycle + results
# ---------------------------------------------------------------------------


class PendingAction(BaseModel):
    """제출부터 컨펌/기록 완료까지 호출자가 보유하는 액션 (저장되지 않음)"""

    identifier: str
    kind: ActionKind
    author_wallet: str
    payload: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class ActionResult(BaseModel):
    identifier: str
    kind: ActionKind
    transaction_hash: str
    status: ActionStatus = ActionStatus.RECONCILED
    points_awarded: int = 0
    already_reconciled: bool = False


class ActionStatusResponse(BaseModel):
    identifier: str
    kind: ActionKind
    on_chain: bool
    off_chain: bool
    status: ActionStatus
    transaction_hash: Optional[str] = None
