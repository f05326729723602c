"""
FastAPI application.

Scene composer HTTP surface: health check, job submission and status polling.
"""

from contextlib import asynccontextmanager
from datetime import datetime, timezone

import uvicorn
from fastapi import FastAPI

from shared.config import settings
from shared.logging import get_logger
from api_gateway.routes import compose, jobs
from modules.composer.job_store import JobStore
from modules.composer.utils import check_ffmpeg_available

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if not check_ffmpeg_available():
        logger.warning("FFmpeg or ffprobe not found on PATH; compositions will fail")
    logger.info("Scene composer started", extra={"environment": settings.environment})
    yield
    logger.info("Scene composer stopped", extra={"jobs_seen": len(app.state.job_store)})


def create_app() -> FastAPI:
    """Build the app with a fresh job ledger."""
    app = FastAPI(title="Scene Composer API", version="1.0.0", lifespan=lifespan)
    app.state.job_store = JobStore()

    @app.get("/health")
    async def health():
        return {"status": "ok", "timestamp": datetime.now(timezone.utc).isoformat()}

    app.include_router(compose.router)
    app.include_router(jobs.router)
    return app


app = create_app()


if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=settings.port)
