import logging
import os
import sys

sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from qaboard.config import settings
from qaboard.database.connection import engine
from qaboard.logging_config import setup_logging
from qaboard.models import funding, points, question, user  # noqa: F401 (register tables)
from qaboard.models.base import Base

logger = logging.getLogger("qaboard.scripts.init_db")


def init_db():
    """데이터베이스 테이블 생성"""
    try:
        Base.metadata.create_all(bind=engine)
        logger.info(
            f"Database initialized: {', '.join(sorted(Base.metadata.tables))} ({settings.ENVIRONMENT})"
        )
    except Exception as e:
        logger.error(f"Database initialization failed: {str(e)}")
        raise


if __name__ == "__main__":
    setup_logging(settings.LOG_LEVEL, json_logs=False)
    init_db()
