"""
Ingestion statistics endpoint
"""
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func
from api.dependencies import get_db
from schemas.api import StatsResponse
from schemas.repository import load_readme_cache
from models.package import Package
from models.repository import Repository
from models.base import PackageStatus, ProcessingStage
import logging

logger = logging.getLogger(__name__)
router = APIRouter(tags=["Statistics"])


@router.get("/stats", response_model=StatsResponse)
async def get_stats(db: AsyncSession = Depends(get_db)):
    """
    Get ingestion statistics.
    
    Returns:
    - Package counts per status
    - Repository count and README cache states
    - Time of the most recent successful ingestion
    """
    logger.info("GET /stats")
    
    packages_by_status = {status.value: 0 for status in PackageStatus}
    result = await db.execute(
        select(Package.status, func.count()).group_by(Package.status)
    )
    for status, count in result.all():
        packages_by_status[PackageStatus(status).value] = count
    
    total_repositories = (
        await db.execute(select(func.count()).select_from(Repository))
    ).scalar()
    
    readme_cache_by_state = {"cached": 0, "error": 0, "absent": 0}
    caches = (await db.execute(select(Repository.readme_cache))).scalars().all()
    for value in caches:
        state = load_readme_cache(value)
        readme_cache_by_state[state.kind if state else "absent"] += 1
    
    last_ingested_at = (
        await db.execute(
            select(func.max(Package.updated_at)).where(
                Package.status == PackageStatus.OK,
                Package.processing_stage == ProcessingStage.INGESTION
            )
        )
    ).scalar()
    
    return StatsResponse(
        total_packages=sum(packages_by_status.values()),
        total_repositories=total_repositories,
        packages_by_status=packages_by_status,
        readme_cache_by_state=readme_cache_by_state,
        last_ingested_at=last_ingested_at
    )
