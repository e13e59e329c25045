"""
Action Reconciler

질문 등록 / 답변 제출 / 답변 채택 액션을 "컨펌 후 기록" 프로토콜로 처리한다.

1. 로컬 검증 (네트워크 호출 전, 부작용 없음)
2. 레저 제출 및 컨펌 대기 - 컨펌 전에는 DB에 아무것도 쓰지 않음
3. 영수증에 해당 식별자의 컨트랙트 이벤트가 있는지 확인
4. 하나의 DB 트랜잭션으로 행 삽입/갱신 + 포인트 적립 (식별자 기준 멱등)

4단계가 실패하면 ReconciliationError에 PendingAction과 트랜잭션 해시를 담아 돌려준다.
호출자는 같은 식별자로 reconcile()을 호출해 기록만 재시도한다 (온체인 재전송 없음).
"""

from typing import Any, Dict
import logging

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.orm import Session

from qaboard.config import Settings
from qaboard.core.exceptions import (
    AlreadyResolvedError,
    BaseAPIException,
    DuplicateIdentifierError,
    LedgerError,
    LedgerRejectedError,
    LedgerTimeoutError,
    NotFoundError,
    NotQuestionAuthorError,
    ReconciliationError,
    SelfAnswerError,
    ValidationError,
)
from qaboard.providers.ledger.base import LedgerClient
from qaboard.repositories.points_repository import PointsRepository
from qaboard.repositories.question_repository import AnswerRepository, QuestionRepository
from qaboard.repositories.user_repository import UserRepository
from qaboard.schemas.actions import (
    ActionKind,
    ActionResult,
    ActionStatus,
    ActionStatusResponse,
    AskQuestionRequest,
    ContractCall,
    PendingAction,
    Receipt,
    ReconcileRequest,
    SelectBestAnswerRequest,
    SubmitAnswerRequest,
    TransactionInput,
)
from qaboard.schemas.question import Question
from qaboard.utils.wallet import is_valid_address, is_valid_identifier, normalize_address

logger = logging.getLogger(__name__)

REQUIRED_PAYLOAD_FIELDS = {
    ActionKind.ASK_QUESTION: ("title", "content", "category"),
    ActionKind.SUBMIT_ANSWER: ("question_id", "content"),
    ActionKind.SELECT_BEST_ANSWER: ("question_id",),
}


def points_ref_id(kind: ActionKind, identifier: str) -> str:
    return f"{kind.value}:{identifier}"


class ActionService:
    """온체인 액션과 오프체인 기록을 맞추는 서비스"""

    def __init__(self, db: Session, ledger: LedgerClient, settings: Settings):
        self.db = db
        self.ledger = ledger
        self.settings = settings
        self.user_repo = UserRepository(db)
        self.question_repo = QuestionRepository(db)
        self.answer_repo = AnswerRepository(db)
        self.points_repo = PointsRepository(db)

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def ask_question(self, request: AskQuestionRequest) -> ActionResult:
        return self.perform(
            ActionKind.ASK_QUESTION,
            request.identifier,
            {"title": request.title, "content": request.content, "category": request.category},
            request.author_wallet,
            request.transaction,
        )

    def submit_answer(self, request: SubmitAnswerRequest) -> ActionResult:
        return self.perform(
            ActionKind.SUBMIT_ANSWER,
            request.identifier,
            {"question_id": request.question_id, "content": request.content},
            request.author_wallet,
            request.transaction,
        )

    def select_best_answer(self, request: SelectBestAnswerRequest) -> ActionResult:
        return self.perform(
            ActionKind.SELECT_BEST_ANSWER,
            request.identifier,
            {"question_id": request.question_id},
            request.author_wallet,
            request.transaction,
        )

    def perform(
        self,
        kind: ActionKind,
        identifier: str,
        payload: Dict[str, Any],
        author_wallet: str,
        transaction: TransactionInput,
    ) -> ActionResult:
        """검증 → 레저 제출 → 컨펌 → 기록

        Raises:
            ValidationError, NotFoundError, InvariantViolationError: 네트워크 호출 전 거부
            LedgerRejectedError, LedgerTimeoutError, LedgerUnavailableError: 레저 실패
            ReconciliationError: 컨펌 이후 기록 실패 (reconcile()로 재시도)
        """
        pending = self._build_pending(kind, identifier, payload, author_wallet)
        self._check_business_rules(pending)

        call = ContractCall(
            function=kind.contract_function,
            args=self._contract_args(pending),
            sender=pending.author_wallet,
            signed_transaction=transaction.signed_transaction,
            transaction_hash=transaction.transaction_hash,
        )
        logger.info(f"Submitting {kind.value} identifier={identifier} author={pending.author_wallet}")

        try:
            receipt = self.ledger.submit(call)
        except LedgerError as e:
            e.details.update({"identifier": identifier, "kind": kind.value})
            logger.warning(f"Ledger failure for {kind.value} identifier={identifier}: {e.message}")
            raise

        self._verify_event(pending, receipt)
        return self._persist(pending, receipt)

    def reconcile(self, request: ReconcileRequest) -> ActionResult:
        """컨펌된 액션의 오프체인 기록 재시도

        트랜잭션을 다시 보내지 않고 기존 영수증을 조회해 이벤트를 재검증한 뒤
        멱등 기록을 다시 수행한다.
        """
        pending = self._build_pending(
            request.kind, request.identifier, request.payload, request.author_wallet
        )

        receipt = self.ledger.get_receipt(request.transaction_hash)
        if receipt is None:
            raise LedgerTimeoutError(
                "Transaction is not confirmed yet",
                details={
                    "identifier": request.identifier,
                    "kind": request.kind.value,
                    "transaction_hash": request.transaction_hash,
                    "confirmed": False,
                },
            )

        self._verify_event(pending, receipt)
        logger.info(
            f"Reconciling {request.kind.value} identifier={request.identifier} tx={receipt.transaction_hash}"
        )
        return self._persist(pending, receipt)

    def get_status(self, kind: ActionKind, identifier: str) -> ActionStatusResponse:
        """식별자 기준 온체인/오프체인 반영 여부 (Unconfirmed 이후 폴링용)"""
        if not is_valid_identifier(identifier):
            raise ValidationError("Invalid identifier", details={"identifier": identifier})

        on_chain = self.ledger.get_event(kind, identifier) is not None

        tx_hash = None
        if kind == ActionKind.ASK_QUESTION:
            question = self.question_repo.get_by_id(identifier)
            off_chain = question is not None
            tx_hash = question.tx_hash if question else None
        else:
            answer = self.answer_repo.get_by_id(identifier)
            if kind == ActionKind.SUBMIT_ANSWER:
                off_chain = answer is not None
                tx_hash = answer.tx_hash if answer else None
            else:
                off_chain = answer is not None and answer.is_best_answer
                if off_chain:
                    question = self.question_repo.get_by_id(answer.question_id)
                    tx_hash = question.best_answer_tx_hash if question else None

        if off_chain:
            status = ActionStatus.RECONCILED
        elif on_chain:
            status = ActionStatus.CONFIRMED_ON_CHAIN
        else:
            status = ActionStatus.NOT_FOUND

        return ActionStatusResponse(
            identifier=identifier,
            kind=kind,
            on_chain=on_chain,
            off_chain=off_chain,
            status=status,
            transaction_hash=tx_hash,
        )

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def _build_pending(
        self, kind: ActionKind, identifier: str, payload: Dict[str, Any], author_wallet: str
    ) -> PendingAction:
        if not is_valid_identifier(identifier):
            raise ValidationError("Invalid identifier", details={"identifier": identifier})
        if not is_valid_address(author_wallet):
            raise ValidationError("Invalid wallet address", details={"author_wallet": author_wallet})

        missing = [
            field
            for field in REQUIRED_PAYLOAD_FIELDS[kind]
            if not str(payload.get(field) or "").strip()
        ]
        if missing:
            raise ValidationError(
                f"Missing fields for {kind.value}", details={"missing": missing}
            )

        try:
            return PendingAction(
                identifier=identifier,
                kind=kind,
                author_wallet=normalize_address(author_wallet),
                payload=payload,
            )
        except PydanticValidationError as e:
            raise ValidationError(details={"errors": e.errors(include_url=False, include_context=False)})

    def _check_business_rules(self, pending: PendingAction) -> None:
        """제출 전 로컬 규칙 검사 (컨트랙트에만 맡기지 않음)"""
        kind = pending.kind
        identifier = pending.identifier

        if kind == ActionKind.ASK_QUESTION:
            if self.question_repo.exists(identifier):
                raise DuplicateIdentifierError(identifier)
            return

        question = self._get_question(pending.payload["question_id"])

        if kind == ActionKind.SUBMIT_ANSWER:
            if normalize_address(question.wallet_address) == pending.author_wallet:
                raise SelfAnswerError(question.id)
            if self.answer_repo.exists(identifier):
                raise DuplicateIdentifierError(identifier)
            return

        # SELECT_BEST_ANSWER
        if normalize_address(question.wallet_address) != pending.author_wallet:
            raise NotQuestionAuthorError(question.id)
        if question.best_answer_id is not None:
            raise AlreadyResolvedError(question.id, question.best_answer_id)
        if self.answer_repo.get_for_question(identifier, question.id) is None:
            raise NotFoundError(
                "Answer not found for this question",
                details={"answer_id": identifier, "question_id": question.id},
            )

    def _get_question(self, question_id: str) -> Question:
        question = self.question_repo.get_by_id(question_id)
        if question is None:
            raise NotFoundError("Question not found", details={"question_id": question_id})
        return question

    def _contract_args(self, pending: PendingAction) -> list[str]:
        if pending.kind == ActionKind.ASK_QUESTION:
            return [pending.identifier, pending.payload["category"]]
        return [pending.identifier, pending.payload["question_id"]]

    def _verify_event(self, pending: PendingAction, receipt: Receipt) -> None:
        """영수증에 이 액션의 이벤트가 있어야 컨펌으로 인정"""
        kind = pending.kind
        if kind == ActionKind.ASK_QUESTION:
            event = receipt.find_event(
                kind.contract_event, questionId=pending.identifier, author=pending.author_wallet
            )
        elif kind == ActionKind.SUBMIT_ANSWER:
            event = receipt.find_event(
                kind.contract_event,
                answerId=pending.identifier,
                questionId=pending.payload["question_id"],
                author=pending.author_wallet,
            )
        else:
            event = receipt.find_event(
                kind.contract_event,
                answerId=pending.identifier,
                questionId=pending.payload["question_id"],
                questionAuthor=pending.author_wallet,
            )

        if event is None:
            logger.warning(
                f"Receipt {receipt.transaction_hash} has no {kind.contract_event} for identifier={pending.identifier}"
            )
            raise LedgerRejectedError(
                "Confirmed transaction does not contain the expected contract event",
                details={
                    "identifier": pending.identifier,
                    "kind": kind.value,
                    "transaction_hash": receipt.transaction_hash,
                    "expected_event": kind.contract_event,
                },
            )

    # ------------------------------------------------------------------
    # Off-chain write
    # ------------------------------------------------------------------

    def _persist(self, pending: PendingAction, receipt: Receipt) -> ActionResult:
        try:
            result = self._write(pending, receipt)
            self.db.commit()
        except BaseAPIException:
            self.db.rollback()
            raise
        except Exception as e:
            self.db.rollback()
            logger.error(
                f"RECONCILIATION FAILED: {pending.kind.value} identifier={pending.identifier} "
                f"tx={receipt.transaction_hash} confirmed on-chain but not persisted: {e}"
            )
            raise ReconciliationError(
                details={
                    "identifier": pending.identifier,
                    "kind": pending.kind.value,
                    "transaction_hash": receipt.transaction_hash,
                    "confirmed": True,
                    "pending_action": pending.model_dump(mode="json"),
                }
            )

        logger.info(
            f"Reconciled {pending.kind.value} identifier={pending.identifier} "
            f"tx={receipt.transaction_hash} points={result.points_awarded}"
        )
        return result

    def _write(self, pending: PendingAction, receipt: Receipt) -> ActionResult:
        if pending.kind == ActionKind.ASK_QUESTION:
            return self._write_question(pending, receipt)
        if pending.kind == ActionKind.SUBMIT_ANSWER:
            return self._write_answer(pending, receipt)
        return self._write_best_answer(pending, receipt)

    def _write_question(self, pending: PendingAction, receipt: Receipt) -> ActionResult:
        user = self.user_repo.get_or_create(pending.author_wallet)
        _, created = self.question_repo.insert_if_absent(
            id=pending.identifier,
            user_id=user.id,
            wallet_address=pending.author_wallet,
            title=pending.payload["title"],
            content=pending.payload["content"],
            category=pending.payload["category"],
            tx_hash=receipt.transaction_hash,
        )
        points = self.points_repo.award_points(
            user.id,
            self.settings.ASK_QUESTION_POINTS,
            reason=ActionKind.ASK_QUESTION.value,
            ref_id=points_ref_id(ActionKind.ASK_QUESTION, pending.identifier),
        )
        return self._result(pending, receipt, points.delta_points, not created)

    def _write_answer(self, pending: PendingAction, receipt: Receipt) -> ActionResult:
        question = self._get_question(pending.payload["question_id"])
        user = self.user_repo.get_or_create(pending.author_wallet)
        _, created = self.answer_repo.insert_if_absent(
            id=pending.identifier,
            question_id=question.id,
            user_id=user.id,
            wallet_address=pending.author_wallet,
            content=pending.payload["content"],
            tx_hash=receipt.transaction_hash,
        )
        points = self.points_repo.award_points(
            user.id,
            self.settings.ANSWER_QUESTION_POINTS,
            reason=ActionKind.SUBMIT_ANSWER.value,
            ref_id=points_ref_id(ActionKind.SUBMIT_ANSWER, pending.identifier),
        )
        return self._result(pending, receipt, points.delta_points, not created)

    def _write_best_answer(self, pending: PendingAction, receipt: Receipt) -> ActionResult:
        question_id = pending.payload["question_id"]
        answer_id = pending.identifier

        answer = self.answer_repo.get_for_question(answer_id, question_id)
        if answer is None:
            raise NotFoundError(
                "Answer not found for this question",
                details={"answer_id": answer_id, "question_id": question_id},
            )

        claimed = self.question_repo.claim_best_answer(
            question_id, answer_id, tx_hash=receipt.transaction_hash
        )
        if not claimed:
            question = self._get_question(question_id)
            if question.best_answer_id != answer_id:
                logger.error(
                    f"Best answer conflict on question={question_id}: stored={question.best_answer_id} "
                    f"confirmed={answer_id} tx={receipt.transaction_hash}"
                )
                raise AlreadyResolvedError(question_id, question.best_answer_id)

        self.answer_repo.mark_best(answer_id, question_id)

        # 채택 포인트는 답변 작성자에게만 (질문자는 추가 포인트 없음)
        answer_author = self.user_repo.get_or_create(answer.wallet_address)
        points = self.points_repo.award_points(
            answer_author.id,
            self.settings.BEST_ANSWER_POINTS,
            reason="best_answer",
            ref_id=points_ref_id(ActionKind.SELECT_BEST_ANSWER, answer_id),
        )
        return self._result(pending, receipt, points.delta_points, not claimed)

    def _result(
        self, pending: PendingAction, receipt: Receipt, points: int, replayed: bool
    ) -> ActionResult:
        return ActionResult(
            identifier=pending.identifier,
            kind=pending.kind,
            transaction_hash=receipt.transaction_hash,
            status=ActionStatus.RECONCILED,
            points_awarded=points,
            already_reconciled=replayed,
        )
