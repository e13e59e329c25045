import os
import sys
from pathlib import Path

# Ensure project root is on path for `qaboard` imports
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("ENVIRONMENT", "development")

from unittest.mock import Mock

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from qaboard.config import Settings
from qaboard.database.connection import enable_sqlite_savepoints
from qaboard.models import funding, points, question, user  # noqa: F401
from qaboard.models.base import Base
from qaboard.providers.ledger.base import LedgerClient
from qaboard.schemas.actions import LedgerEvent, Receipt
from qaboard.utils.wallet import to_checksum

ALICE = "0x" + "a1" * 20
BOB = "0x" + "b2" * 20
CAROL = "0x" + "c3" * 20
TREASURY = "0x" + "7e" * 20

TX_ASK = "0x" + "01" * 32
TX_ANSWER = "0x" + "02" * 32
TX_SELECT = "0x" + "03" * 32
TX_FUNDING = "0x" + "0f" * 32


def make_receipt(tx_hash: str, *events: LedgerEvent, block_number: int = 100) -> Receipt:
    return Receipt(transaction_hash=tx_hash, block_number=block_number, events=list(events))


def question_asked(question_id: str, author: str, category: str = "general") -> LedgerEvent:
    return LedgerEvent(
        name="QuestionAsked",
        args={
            "author": to_checksum(author),
            "questionId": question_id,
            "category": category,
            "timestamp": 1700000000,
        },
    )


def answer_submitted(answer_id: str, question_id: str, author: str) -> LedgerEvent:
    return LedgerEvent(
        name="AnswerSubmitted",
        args={
            "author": to_checksum(author),
            "answerId": answer_id,
            "questionId": question_id,
            "timestamp": 1700000100,
        },
    )


def best_answer_selected(
    answer_id: str, question_id: str, question_author: str, answer_author: str
) -> LedgerEvent:
    return LedgerEvent(
        name="BestAnswerSelected",
        args={
            "questionAuthor": to_checksum(question_author),
            "answerAuthor": to_checksum(answer_author),
            "answerId": answer_id,
            "questionId": question_id,
            "timestamp": 1700000200,
        },
    )


@pytest.fixture
def engine():
    test_engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    enable_sqlite_savepoints(test_engine)
    Base.metadata.create_all(bind=test_engine)
    yield test_engine
    Base.metadata.drop_all(bind=test_engine)
    test_engine.dispose()


@pytest.fixture
def db_session(engine):
    TestingSessionLocal = sessionmaker(
        autocommit=False, autoflush=False, bind=engine, expire_on_commit=False
    )
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def test_settings():
    return Settings(
        DATABASE_URL="sqlite://",
        TREASURY_PRIVATE_KEY=None,
        LEDGER_CONFIRMATION_TIMEOUT_SECONDS=1.0,
        LEDGER_POLL_LATENCY_SECONDS=0.01,
    )


@pytest.fixture
def mock_ledger():
    ledger = Mock(spec=LedgerClient)
    ledger.treasury_address = TREASURY
    ledger.get_event.return_value = None
    return ledger
