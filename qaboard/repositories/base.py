from abc import ABC
from typing import TypeVar, Generic, Optional, Any, Type
from sqlalchemy.orm import Session
from pydantic import BaseModel

T = TypeVar("T")
SchemaType = TypeVar("SchemaType", bound=BaseModel)


class BaseRepository(Generic[T, SchemaType], ABC):
    """모든 리포지토리의 베이스 클래스 - Pydantic 응답 보장"""

    def __init__(
        self, model_class: Type[T], schema_class: Type[SchemaType], db: Session
    ):
        self.model_class = model_class
        self.schema_class = schema_class
        self.db = db

    def _to_schema(self, model_instance: Any) -> Optional[SchemaType]:
        """SQLAlchemy 모델을 Pydantic 스키마로 변환"""
        if model_instance is None:
            return None
        # Pydantic v2의 model_validate를 사용하여 from_attributes 활용
        return self.schema_class.model_validate(model_instance)

    def _get_model(self, id: Any) -> Optional[T]:
        return self.db.get(self.model_class, id)

    def get_by_id(self, id: Any) -> Optional[SchemaType]:
        """ID로 조회 - Pydantic 스키마 반환"""
        return self._to_schema(self._get_model(id))

    def get_by_field(self, field_name: str, value: Any) -> Optional[SchemaType]:
        """특정 필드로 조회 - Pydantic 스키마 반환"""
        model_instance = (
            self.db.query(self.model_class)
            .filter(getattr(self.model_class, field_name) == value)
            .first()
        )
        return self._to_schema(model_instance)

    def exists(self, id: Any) -> bool:
        return self._get_model(id) is not None

