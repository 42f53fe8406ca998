"""
FastAPI application initialization
"""

from fastapi import FastAPI
from api.routes import health, stats
from core.config import settings
from core.logging import setup_logging
from ingestion.scheduler import IngestionScheduler
import logging

setup_logging()

logger = logging.getLogger(__name__)

app = FastAPI(
    title="Package Registry Ingestion API",
    description="Operational endpoints for package metadata ingestion",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc"
)

scheduler = IngestionScheduler() if settings.SCHEDULER_ENABLED else None


app.include_router(health.router)
app.include_router(stats.router)


@app.on_event("startup")
async def startup_event():
    """Application startup event"""
    logger.info("Starting Package Registry Ingestion API")
    logger.info(f"Environment: {settings.ENVIRONMENT}")
    logger.info(f"Database: {settings.DATABASE_URL.split('@')[1] if '@' in settings.DATABASE_URL else 'configured'}")
    
    if scheduler is not None:
        scheduler.start()


@app.on_event("shutdown")
async def shutdown_event():
    """Application shutdown event"""
    logger.info("Shutting down Package Registry Ingestion API")
    if scheduler is not None:
        scheduler.stop()


@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "message": "Package Registry Ingestion API",
        "version": "1.0.0",
        "docs": "/docs",
        "endpoints": {
            "health": "/health",
            "stats": "/stats"
        }
    }
