import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from floneo.api.api import api_router
from floneo.api.endpoints import realtime, status
from floneo.core.config import settings
from floneo.core.error_handlers import register_error_handlers
from floneo.core.logging_config import configure_logging
from floneo.core.websockets import ConnectionManager
from floneo.db.init_db import init_db

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    app.state.broadcaster.loop = asyncio.get_running_loop()
    logger.info(f"{settings.PROJECT_NAME} {settings.APP_VERSION} started")
    yield
    logger.info(f"{settings.PROJECT_NAME} shutting down")


def create_app() -> FastAPI:
    configure_logging()

    app = FastAPI(title=settings.PROJECT_NAME, version=settings.APP_VERSION, lifespan=lifespan)
    app.state.broadcaster = ConnectionManager()
    register_error_handlers(app)

    # CORS
    if settings.BACKEND_CORS_ORIGINS:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=[str(origin).rstrip("/") for origin in settings.BACKEND_CORS_ORIGINS],
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    app.include_router(api_router, prefix=settings.API_V1_STR)
    app.include_router(status.router)
    app.include_router(realtime.router)

    @app.get("/")
    def root():
        return {"message": f"Welcome to {settings.PROJECT_NAME}"}

    return app


app = create_app()
