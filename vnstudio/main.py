import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from vnstudio.config import configure_logging, settings
from vnstudio.modules.session import service as session_service
from vnstudio.modules.session.router import router as session_router
from vnstudio.modules.story.router import router as story_router
from vnstudio.modules.telemetry.router import router as telemetry_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def _lifespan(_app: FastAPI):
    configure_logging()
    logger.info("%s starting (env=%s)", settings.app_name, settings.env)
    yield
    logger.info("shutting down with %d open sessions", session_service.active_session_count())
    session_service.reset_sessions()


app = FastAPI(title="VN Studio Backend", lifespan=_lifespan)


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok"}


app.include_router(story_router)
app.include_router(session_router)
app.include_router(telemetry_router)
