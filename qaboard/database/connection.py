from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker

from qaboard.config import settings


def _engine_kwargs(database_url: str) -> dict:
    if database_url.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False}}
    return {
        "pool_size": settings.DB_POOL_SIZE,
        "max_overflow": settings.DB_MAX_OVERFLOW,
        "pool_pre_ping": True,  # 연결 유효성 검사
        "pool_recycle": 3600,  # 1시간마다 연결 재생성
    }


engine = create_engine(
    settings.DATABASE_URL,
    echo=settings.DEBUG and settings.LOG_LEVEL.upper() == "DEBUG",
    **_engine_kwargs(settings.DATABASE_URL),
)

# Use expire_on_commit=False to avoid DetachedInstanceError when accessing
# attributes after commit within the same request scope (common FastAPI pattern).
SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
    expire_on_commit=False,
)


def enable_sqlite_savepoints(sqlite_engine) -> None:
    """pysqlite의 자체 트랜잭션 처리를 끄고 BEGIN을 직접 발행 (SAVEPOINT 지원)

    로컬 개발/테스트용 SQLite 엔진에서만 사용한다.
    """

    @event.listens_for(sqlite_engine, "connect")
    def _do_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(sqlite_engine, "begin")
    def _do_begin(conn):
        conn.exec_driver_sql("BEGIN")


if settings.DATABASE_URL.startswith("sqlite"):
    enable_sqlite_savepoints(engine)
