from sqlalchemy import BigInteger, Column, DateTime, Integer, func
from sqlalchemy.orm import declarative_base, declared_attr

Base = declarative_base()

# SQLite only autoincrements INTEGER PRIMARY KEY columns
BigIntPK = BigInteger().with_variant(Integer, "sqlite")


class TimestampMixin:
    """타임스탬프 필드를 위한 믹스인"""

    @declared_attr
    def created_at(cls):
        return Column(DateTime(timezone=True), server_default=func.now())

    @declared_attr
    def updated_at(cls):
        return Column(
            DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
        )


class BaseModel(Base, TimestampMixin):
    """모든 모델의 베이스 클래스"""

    __abstract__ = True
