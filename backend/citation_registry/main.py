"""
Municipal Traffic Citation Registry
Main FastAPI Application Entry Point

Initializes FastAPI, the database, configuration and the duplicate
detection / offense history / merge services.
"""

import time
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger

from citation_registry import __version__


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events - startup and shutdown"""
    # Startup
    logger.info("=" * 60)
    logger.info("[STARTUP] Traffic Citation Registry")
    logger.info("=" * 60)

    # Initialize database
    from citation_registry.database.database import init_db
    init_db()

    # Initialize configuration
    from citation_registry.config import get_config
    cfg = get_config()
    logger.info("[OK] Configuration loaded")

    # Initialize services
    from citation_registry.duplicates import (
        init_duplicate_service,
        init_intake_service,
        init_merge_service,
        init_offense_resolver,
    )

    init_offense_resolver()
    init_duplicate_service(config=cfg.get_matching_config())
    init_merge_service()
    init_intake_service()
    logger.info("[OK] Duplicate detection, offense history and merge services initialized")

    logger.info("=" * 60)
    logger.info("[SERVER] Ready at http://localhost:8000")
    logger.info("[DOCS] API docs at http://localhost:8000/docs")
    logger.info("=" * 60)

    yield

    # Shutdown
    logger.info("[SHUTDOWN] Complete")


# Create FastAPI application
app = FastAPI(
    title="Traffic Citation Registry API",
    description="Duplicate driver detection, repeat-offense tracking and driver merge",
    version=__version__,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc"
)

# CORS Configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:5173",  # Vite dev server
        "http://localhost:3000",  # Alternative dev server
        "http://127.0.0.1:5173",
        "http://127.0.0.1:3000",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ============================================
# Include API Routers
# ============================================

from citation_registry.api import driver_router  # noqa: E402

# Driver routes: /api/drivers/*, /api/vehicles/*, /api/offenses/*, /api/citations/*
app.include_router(driver_router)


# ============================================
# Root Endpoints
# ============================================

@app.get("/", tags=["root"])
async def root():
    """Root endpoint - API information"""
    return {
        "name": "Traffic Citation Registry",
        "version": __version__,
        "status": "operational",
        "documentation": "/docs",
        "endpoints": {
            "duplicates": "/api/drivers/duplicates/check",
            "search": "/api/drivers/search",
            "driver_history": "/api/drivers/{driver_id}/history",
            "vehicle_history": "/api/vehicles/{plate_number}/history",
            "offense_count": "/api/offenses/count",
            "offense_counts": "/api/offenses/counts",
            "merge": "/api/drivers/merge",
            "citations": "/api/citations"
        }
    }


@app.get("/health", tags=["health"])
async def health_check():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "timestamp": time.time()
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("citation_registry.main:app", host="0.0.0.0", port=8000, reload=True)
