# =============================================================================
# Application Entry Point
# =============================================================================
#
# Run with: uvicorn nursing_rag.main:app --reload
#
# LIFESPAN:
#   startup  → knowledge-base probe (retried) + agent initialisation (retried)
#   shutdown → dispose the database connection pool
# =============================================================================

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from nursing_rag.api.solutions import get_pipeline
from nursing_rag.api.solutions import router as solutions_router
from nursing_rag.config import settings
from nursing_rag.db.engine import dispose_engine
from nursing_rag.models.responses import HealthResponse

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    await get_pipeline().generator.initialize()
    logger.info("%s v%s started", settings.app_name, settings.app_version)
    yield
    await dispose_engine()


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    lifespan=lifespan,
)
app.include_router(solutions_router)


@app.get("/health", response_model=HealthResponse, tags=["Health"])
async def health() -> HealthResponse:
    return HealthResponse(version=settings.app_version, service=settings.app_name)
