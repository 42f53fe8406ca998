"""
Health check endpoint with database and ingestion status
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, text
from api.dependencies import get_db
from schemas.api import HealthCheckResponse, health_status
from models.package import Package
from models.base import PackageStatus
from datetime import datetime
import logging

logger = logging.getLogger(__name__)
router = APIRouter(tags=["Health"])

FAILED_STATUSES = (
    PackageStatus.METADATA_REQUEST_FAILED,
    PackageStatus.NOT_FOUND,
    PackageStatus.INGESTION_FAILED,
)


@router.get("/health", response_model=HealthCheckResponse)
async def health_check(db: AsyncSession = Depends(get_db)):
    """
    Health check endpoint.
    
    Returns:
    - Database connectivity status
    - Package counts by ingestion outcome
    """
    db_connected = False
    total_packages = 0
    ok_packages = 0
    failed_packages = 0
    
    try:
        await db.execute(text("SELECT 1"))
        db_connected = True
        
        result = await db.execute(
            select(Package.status, func.count()).group_by(Package.status)
        )
        for status, count in result.all():
            total_packages += count
            if status == PackageStatus.OK:
                ok_packages += count
            elif status in FAILED_STATUSES:
                failed_packages += count
    except Exception as e:
        logger.error(f"Health check query failed: {str(e)}")
    
    return HealthCheckResponse(
        status=health_status(db_connected, total_packages, failed_packages),
        timestamp=datetime.utcnow(),
        database_connected=db_connected,
        total_packages=total_packages,
        ok_packages=ok_packages,
        failed_packages=failed_packages
    )
