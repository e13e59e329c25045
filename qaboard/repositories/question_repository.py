from typing import Optional, Tuple

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from qaboard.models.question import Answer as AnswerModel
from qaboard.models.question import Question as QuestionModel
from qaboard.repositories.base import BaseRepository
from qaboard.schemas.question import Answer as AnswerSchema
from qaboard.schemas.question import Question as QuestionSchema


class QuestionRepository(BaseRepository[QuestionModel, QuestionSchema]):
    """질문 리포지토리"""

    def __init__(self, db: Session):
        super().__init__(QuestionModel, QuestionSchema, db)

    def insert_if_absent(self, **fields) -> Tuple[QuestionSchema, bool]:
        """식별자(id) 기준 멱등 삽입 (커밋하지 않음)

        Returns:
            (질문, 새로 생성되었는지 여부)
        """
        existing = self.get_by_id(fields["id"])
        if existing:
            return existing, False

        try:
            with self.db.begin_nested():
                instance = self.model_class(**fields)
                self.db.add(instance)
                self.db.flush()
        except IntegrityError:
            existing = self.get_by_id(fields["id"])
            if existing is None:
                raise
            return existing, False

        self.db.refresh(instance)
        return self._to_schema(instance), True

    def claim_best_answer(
        self, question_id: str, answer_id: str, tx_hash: Optional[str] = None
    ) -> bool:
        """best_answer_id가 비어 있을 때만 설정하는 조건부 업데이트

        Returns:
            이번 호출이 슬롯을 차지했으면 True
        """
        result = self.db.execute(
            update(self.model_class)
            .where(
                self.model_class.id == question_id,
                self.model_class.best_answer_id.is_(None),
            )
            .values(best_answer_id=answer_id, best_answer_tx_hash=tx_hash)
            .execution_options(synchronize_session=False)
        )
        self.db.expire_all()
        return result.rowcount == 1


class AnswerRepository(BaseRepository[AnswerModel, AnswerSchema]):
    """답변 리포지토리"""

    def __init__(self, db: Session):
        super().__init__(AnswerModel, AnswerSchema, db)

    def insert_if_absent(self, **fields) -> Tuple[AnswerSchema, bool]:
        """식별자(id) 기준 멱등 삽입 (커밋하지 않음)"""
        existing = self.get_by_id(fields["id"])
        if existing:
            return existing, False

        try:
            with self.db.begin_nested():
                instance = self.model_class(**fields)
                self.db.add(instance)
                self.db.flush()
        except IntegrityError:
            existing = self.get_by_id(fields["id"])
            if existing is None:
                raise
            return existing, False

        self.db.refresh(instance)
        return self._to_schema(instance), True

    def mark_best(self, answer_id: str, question_id: str) -> bool:
        """답변을 채택 상태로 전환 (false -> true 한 번만)"""
        result = self.db.execute(
            update(self.model_class)
            .where(
                self.model_class.id == answer_id,
                self.model_class.question_id == question_id,
                self.model_class.is_best_answer.is_(False),
            )
            .values(is_best_answer=True)
            .execution_options(synchronize_session=False)
        )
        self.db.expire_all()
        return result.rowcount == 1

    def count_best_for_question(self, question_id: str) -> int:
        return (
            self.db.query(self.model_class)
            .filter(
                self.model_class.question_id == question_id,
                self.model_class.is_best_answer.is_(True),
            )
            .count()
        )

    def get_for_question(self, answer_id: str, question_id: str) -> Optional[AnswerSchema]:
        instance = (
            self.db.query(self.model_class)
            .filter(
                self.model_class.id == answer_id,
                self.model_class.question_id == question_id,
            )
            .first()
        )
        return self._to_schema(instance)
