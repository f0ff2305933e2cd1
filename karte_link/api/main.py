"""FastAPI application serving snapshot imports and linkage reports."""

import logging
from contextlib import asynccontextmanager

from dotenv import load_dotenv

load_dotenv()

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from karte_link import __version__
from karte_link.api.routes import analysis, imports
from karte_link.linkage.config import (
    API_CORS_ORIGINS,
    API_HOST,
    API_PORT,
    LOG_FORMAT,
    SNAPSHOT_DIR,
    TRACE_SESSIONS,
)
from karte_link.linkage.logging import create_session_id, initialize_linkage_trace_logger

logging.basicConfig(level=logging.INFO, format=LOG_FORMAT)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Open the trace session (when enabled) for the lifetime of the server."""
    logger.info(f"Starting karte-link API {__version__} (snapshot: {SNAPSHOT_DIR})")
    if TRACE_SESSIONS:
        session_id = initialize_linkage_trace_logger(create_session_id("api"))
        logger.info(f"Linkage trace session: {session_id}")
    yield
    logger.info("Shutting down karte-link API")


app = FastAPI(
    title="karte-link API",
    description="Clinic record linkage and lifestyle-disease follow-up analytics",
    version=__version__,
    lifespan=lifespan,
)

# Dashboard frontend origins
app.add_middleware(
    CORSMiddleware,
    allow_origins=API_CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "DELETE"],
    allow_headers=["*"],
)

app.include_router(imports.router)
app.include_router(analysis.router)


@app.get("/api/health")
async def health_check():
    """Service health check."""
    return {"status": "healthy", "service": "karte-link-api", "version": __version__}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=API_HOST, port=API_PORT)
