"""FastAPI entry point for the project evaluation service."""

import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from config.settings import get_settings
from services.document_store import get_document_store
from services.middleware import RequestIdMiddleware, configure_logging

logger = logging.getLogger(__name__)

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifecycle — open/close the document store."""
    store = get_document_store()
    await store.start()
    logger.info("Document store ready (%s)", settings.document_store_type)

    yield

    await store.close()


app = FastAPI(
    title="Project Evaluation Service",
    description="School project evaluation scoring and progress tracking",
    version="0.1.0",
    lifespan=lifespan,
)

# ── Middleware stack (outermost first) ─────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(RequestIdMiddleware)

# ── Register routers ────────────────────────────────────────
from api.health import router as health_router  # noqa: E402
from api.evaluations import router as evaluations_router  # noqa: E402
from api.projects import router as projects_router  # noqa: E402

app.include_router(health_router)
app.include_router(evaluations_router)
app.include_router(projects_router)


if __name__ == "__main__":
    configure_logging(settings.log_level)
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=settings.service_port,
        reload=settings.debug,
    )
