import logging

from dotenv import load_dotenv
from fastapi import FastAPI
from mangum import Mangum
from starlette.middleware.cors import CORSMiddleware

from qaboard import containers
from qaboard.config import settings
from qaboard.core.exception_handlers import register_exception_handlers
from qaboard.core.logging_middleware import LoggingMiddleware
from qaboard.logging_config import setup_logging
from qaboard.routers import action_router, funding_router, health_router, user_router

load_dotenv("qaboard/.env")

logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    setup_logging(settings.LOG_LEVEL)

    app = FastAPI(title=settings.APP_NAME, debug=settings.DEBUG)
    app.container = containers.Container()  # type: ignore

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(LoggingMiddleware)

    register_exception_handlers(app)

    @app.get("/")
    def hello() -> dict:
        return {"message": settings.PROJECT_NAME}

    app.include_router(health_router.router)
    app.include_router(funding_router.router)
    app.include_router(action_router.router)
    app.include_router(user_router.router)

    logger.info(f"{settings.APP_NAME} started (environment={settings.ENVIRONMENT})")
    return app


app = create_app()

handler = Mangum(app)
