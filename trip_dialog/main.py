"""
FastAPI application entry point.

Assembles the FastAPI app with the trip dialog router.
"""

import logging
import os
import sys

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from trip_dialog.conversation.api import get_service, router as trips_router
from trip_dialog.shared.logging.config import setup_logging


# ============================================================================
# Logging configuration (single source of truth for the service)
# ============================================================================
LOG_FORMAT = (
    "%(asctime)s | %(levelname)-8s | %(name)-35s | %(message)s"
)

logging.basicConfig(
    level=logging.INFO,
    format=LOG_FORMAT,
    datefmt="%Y-%m-%d %H:%M:%S",
    handlers=[logging.StreamHandler(sys.stdout)],
    force=True,  # Override any prior basicConfig calls
)

# TRIP_DIALOG_LOG_FORMAT=json switches the package loggers to structured output
if os.environ.get("TRIP_DIALOG_LOG_FORMAT", "").lower() == "json":
    setup_logging(level=logging.INFO, log_file=os.environ.get("TRIP_DIALOG_LOG_FILE"))

# Quiet noisy third-party loggers
logging.getLogger("httpcore").setLevel(logging.WARNING)
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("openai").setLevel(logging.WARNING)


# Create FastAPI app
app = FastAPI(
    title="Trip Dialog",
    description="Multi-turn trip request parsing and modification",
    version="0.1.0",
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(trips_router)


@app.get("/")
async def root():
    """Root endpoint with API information."""
    return {
        "name": "Trip Dialog",
        "version": "0.1.0",
        "endpoints": "/api/trips",
    }


@app.get("/health")
async def health():
    """Global health check endpoint."""
    ai_available = get_service().parser.ai.is_available()
    return {"status": "healthy", "ai_available": ai_available}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
