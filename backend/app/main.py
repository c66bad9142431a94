"""
Air Safety Reporting - FastAPI Application

Main entry point for the Air Safety Reporting backend.

Architecture:
- Report Type Registry → Writer (ingestion) / Reader (canonical reports)
- Status State Machine → conditional status updates
- Notification Outbox → Fan-out → notifications + audit log
"""
import logging
import os
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .routers import (
    admin_router, auth_router, comments_router,
    notifications_router, reports_router, scheduler_router,
)
from .database import init_db

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

# Comma separated list, "*" allows any origin
CORS_ALLOW_ORIGINS = [o.strip() for o in os.getenv("CORS_ALLOW_ORIGINS", "*").split(",") if o.strip()]


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize database on startup."""
    init_db()
    yield

# Create FastAPI app
app = FastAPI(
    lifespan=lifespan,
    title="Air Safety Reporting",
    description="""
    Air Safety Reporting - Crew Safety Report Management

    Flight crew submit safety reports of several kinds; the safety office
    reviews them and every party is kept informed through notifications.

    ## Report kinds
    asr (Air Safety), or (Occurrence), rir (Ramp Incident), ncr
    (Nonconformity), cdf (Commander's Discretion), chr (Confidential Hazard),
    captain (Captain's Report)

    ## Review workflow
    submitted → in_review → closed, with rejected reachable from either
    open state. Closed and rejected are terminal.
    """,
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc"
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ALLOW_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(auth_router)
app.include_router(reports_router)
app.include_router(comments_router)
app.include_router(notifications_router)
app.include_router(admin_router)
app.include_router(scheduler_router)


@app.get("/")
async def root():
    """Root endpoint - API information."""
    return {
        "name": "Air Safety Reporting",
        "version": "1.0.0",
        "docs": "/docs",
    }


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "version": "1.0.0"}


# For running with: python -m app.main
if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8001)
