"""
온체인 액션 API 라우터

- POST /actions/questions: 질문 등록 (+5)
- POST /actions/answers: 답변 제출 (+5)
- POST /actions/best-answer: 답변 채택 (답변자 +10)
- POST /actions/reconcile: 컨펌 후 기록 실패 건 재시도 (재전송 없음)
- GET /actions/{kind}/{identifier}: 식별자 기준 온체인/오프체인 반영 상태

트랜잭션 컨펌까지 블로킹하므로 동기 핸들러로 정의한다.
"""

import logging

from fastapi import APIRouter, Depends, Path

from qaboard.deps import get_action_service
from qaboard.schemas.actions import (
    ActionKind,
    ActionResult,
    ActionStatusResponse,
    AskQuestionRequest,
    ReconcileRequest,
    SelectBestAnswerRequest,
    SubmitAnswerRequest,
)
from qaboard.services.action_service import ActionService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/actions", tags=["actions"])


@router.post("/questions", response_model=ActionResult)
def ask_question(
    body: AskQuestionRequest,
    action_service: ActionService = Depends(get_action_service),
) -> ActionResult:
    """질문 등록 - askQuestion 컨펌 후 DB 기록"""
    return action_service.ask_question(body)


@router.post("/answers", response_model=ActionResult)
def submit_answer(
    body: SubmitAnswerRequest,
    action_service: ActionService = Depends(get_action_service),
) -> ActionResult:
    """답변 제출 - 본인 질문에는 답변 불가 (403)"""
    return action_service.submit_answer(body)


@router.post("/best-answer", response_model=ActionResult)
def select_best_answer(
    body: SelectBestAnswerRequest,
    action_service: ActionService = Depends(get_action_service),
) -> ActionResult:
    """
    답변 채택

    HTTP Status:
        403: 질문 작성자가 아님
        409: 이미 채택된 질문
    """
    return action_service.select_best_answer(body)


@router.post("/reconcile", response_model=ActionResult)
def reconcile_action(
    body: ReconcileRequest,
    action_service: ActionService = Depends(get_action_service),
) -> ActionResult:
    """
    기록 재시도

    ReconciliationError(500) 응답의 pending_action/transaction_hash로 호출한다.
    영수증을 다시 조회해 이벤트를 검증한 뒤 멱등 기록을 수행한다.
    """
    return action_service.reconcile(body)


@router.get("/{kind}/{identifier}", response_model=ActionStatusResponse)
def get_action_status(
    kind: ActionKind,
    identifier: str = Path(..., min_length=1, max_length=100),
    action_service: ActionService = Depends(get_action_service),
) -> ActionStatusResponse:
    """Unconfirmed(504) 이후 최종 상태 폴링"""
    return action_service.get_status(kind, identifier)
