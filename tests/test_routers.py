from unittest.mock import Mock

import pytest
from fastapi.testclient import TestClient

from conftest import ALICE, BOB, TX_ASK, TX_FUNDING
from qaboard.core.exceptions import (
    AlreadyFundedError,
    LedgerTimeoutError,
    NotFoundError,
    ReconciliationError,
    SelfAnswerError,
)
from qaboard.database.session import get_db
from qaboard.deps import get_action_service, get_funding_service, get_user_service
from qaboard.main import create_app
from qaboard.schemas.actions import ActionKind, ActionResult, ActionStatus, ActionStatusResponse
from qaboard.schemas.funding import FundingResponse
from qaboard.schemas.points import PointsLedgerResponse
from qaboard.schemas.user import UserPointsResponse


@pytest.fixture
def app():
    return create_app()


@pytest.fixture
def client(app):
    """테스트 클라이언트 픽스처"""
    return TestClient(app)


@pytest.fixture
def funding_service(app):
    service = Mock()
    app.dependency_overrides[get_funding_service] = lambda: service
    yield service
    app.dependency_overrides.pop(get_funding_service, None)


@pytest.fixture
def action_service(app):
    service = Mock()
    app.dependency_overrides[get_action_service] = lambda: service
    yield service
    app.dependency_overrides.pop(get_action_service, None)


@pytest.fixture
def user_service(app):
    service = Mock()
    app.dependency_overrides[get_user_service] = lambda: service
    yield service
    app.dependency_overrides.pop(get_user_service, None)


ASK_BODY = {
    "identifier": "q1",
    "author_wallet": ALICE,
    "title": "How do I bridge?",
    "content": "Cheapest route please",
    "category": "general",
    "transaction": {"transaction_hash": TX_ASK},
}


class TestFundingRoutes:
    """지원금 라우터 테스트"""

    def test_request_funding(self, client, funding_service):
        # Given
        funding_service.request_funding.return_value = FundingResponse(
            transaction_hash=TX_FUNDING,
            amount="0.12 CELO",
            explorer_url=f"https://celoscan.io/tx/{TX_FUNDING}",
        )

        # When
        response = client.post(
            "/funding", json={"wallet_address": BOB}, headers={"x-forwarded-for": "203.0.113.7, 10.0.0.1"}
        )

        # Then
        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["transaction_hash"] == TX_FUNDING
        funding_service.request_funding.assert_called_once_with(BOB, ip_address="203.0.113.7")

    def test_already_funded(self, client, funding_service):
        funding_service.request_funding.side_effect = AlreadyFundedError(BOB)

        response = client.post("/funding", json={"wallet_address": BOB})

        assert response.status_code == 409
        body = response.json()
        assert body["success"] is False
        assert body["error"]["code"] == "ALREADY_FUNDED"
        assert body["error"]["message"] == "Wallet already funded"

    def test_unconfirmed_transfer(self, client, funding_service):
        funding_service.request_funding.side_effect = LedgerTimeoutError(
            details={"transaction_hash": TX_FUNDING, "confirmed": False}
        )

        response = client.post("/funding", json={"wallet_address": BOB})

        assert response.status_code == 504
        assert response.json()["error"]["details"]["transaction_hash"] == TX_FUNDING


class TestActionRoutes:
    """온체인 액션 라우터 테스트"""

    def test_ask_question(self, client, action_service):
        action_service.ask_question.return_value = ActionResult(
            identifier="q1", kind=ActionKind.ASK_QUESTION, transaction_hash=TX_ASK, points_awarded=5
        )

        response = client.post("/actions/questions", json=ASK_BODY)

        assert response.status_code == 200
        assert response.json()["points_awarded"] == 5
        request = action_service.ask_question.call_args.args[0]
        assert request.identifier == "q1"
        assert request.transaction.transaction_hash == TX_ASK

    def test_transaction_is_required(self, client, action_service):
        body = {**ASK_BODY, "transaction": {}}

        response = client.post("/actions/questions", json=body)

        assert response.status_code == 422
        assert response.json()["error"]["code"] == "VALIDATION_001"
        action_service.ask_question.assert_not_called()

    def test_self_answer_forbidden(self, client, action_service):
        action_service.submit_answer.side_effect = SelfAnswerError("q1")

        response = client.post(
            "/actions/answers",
            json={
                "identifier": "a1",
                "author_wallet": ALICE,
                "question_id": "q1",
                "content": "me",
                "transaction": {"transaction_hash": TX_ASK},
            },
        )

        assert response.status_code == 403
        assert response.json()["error"]["code"] == "SELF_ANSWER"

    def test_reconciliation_failure_returns_pending_action(self, client, action_service):
        action_service.ask_question.side_effect = ReconciliationError(
            details={
                "identifier": "q1",
                "transaction_hash": TX_ASK,
                "pending_action": {"identifier": "q1", "kind": "ask_question", "payload": {}},
            }
        )

        response = client.post("/actions/questions", json=ASK_BODY)

        assert response.status_code == 500
        details = response.json()["error"]["details"]
        assert details["pending_action"]["identifier"] == "q1"
        assert details["transaction_hash"] == TX_ASK

    def test_action_status(self, client, action_service):
        action_service.get_status.return_value = ActionStatusResponse(
            identifier="q1",
            kind=ActionKind.ASK_QUESTION,
            on_chain=True,
            off_chain=False,
            status=ActionStatus.CONFIRMED_ON_CHAIN,
        )

        response = client.get("/actions/ask_question/q1")

        assert response.status_code == 200
        assert response.json()["status"] == "confirmed_on_chain"
        action_service.get_status.assert_called_once_with(ActionKind.ASK_QUESTION, "q1")

    def test_unknown_action_kind(self, client, action_service):
        response = client.get("/actions/vote/q1")

        assert response.status_code == 422


class TestUserRoutes:
    def test_points(self, client, user_service):
        user_service.get_points.return_value = UserPointsResponse(
            wallet_address=BOB, total_points=15, on_chain_points=15, in_sync=True
        )

        response = client.get(f"/users/{BOB}/points")

        assert response.status_code == 200
        assert response.json()["total_points"] == 15
        user_service.get_points.assert_called_once_with(BOB, include_on_chain=True)

    def test_points_ledger_paging(self, client, user_service):
        user_service.get_points_ledger.return_value = PointsLedgerResponse(
            wallet_address=BOB, balance=0, entries=[], total_count=0, has_next=False
        )

        response = client.get(f"/users/{BOB}/points/ledger", params={"limit": 10, "offset": 20})

        assert response.status_code == 200
        user_service.get_points_ledger.assert_called_once_with(BOB, limit=10, offset=20)

    def test_unknown_user(self, client, user_service):
        user_service.get_points.side_effect = NotFoundError("User not found")

        response = client.get(f"/users/{BOB}/points")

        assert response.status_code == 404


class TestHealth:
    def test_health(self, app, client):
        app.dependency_overrides[get_db] = lambda: Mock()

        response = client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["chain_id"] == 42220
        app.dependency_overrides.pop(get_db, None)
