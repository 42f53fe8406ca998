"""
Candidate selection for ingestion
"""

from datetime import datetime, timedelta
from typing import List, Optional, Tuple
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, case, or_
from models.package import Package
from models.repository import Repository
from models.base import PackageStatus
from core.config import settings
from core.exceptions import NotFoundError

Candidate = Tuple[Package, Optional[Repository]]


def _candidate_query():
    return select(Package, Repository).outerjoin(Repository, Repository.package_id == Package.id)


async def fetch_candidate(session: AsyncSession, package_id: int) -> Candidate:
    """
    Fetch exactly one (Package, Repository) pair by package id.

    Raises:
        NotFoundError: If no package has this id
    """
    result = await session.execute(_candidate_query().where(Package.id == package_id))
    row = result.first()
    if row is None:
        raise NotFoundError(
            f"Package {package_id} not found",
            context={"package_id": package_id}
        )
    return row[0], row[1]


async def fetch_candidates(
    session: AsyncSession,
    limit: int,
    now: Optional[datetime] = None,
    deadtime: Optional[timedelta] = None
) -> List[Candidate]:
    """
    Fetch up to `limit` packages eligible for ingestion.

    Eligible: any package not in `ok` status, plus `ok` packages last updated
    before the re-ingestion dead time. Ordered new-first, then by oldest
    updated_at, then by id.
    """
    if limit < 1:
        raise ValueError(f"limit must be positive, got {limit}")

    now = now or datetime.utcnow()
    if deadtime is None:
        deadtime = timedelta(minutes=settings.REINGESTION_DEADTIME_MINUTES)
    cutoff = now - deadtime

    is_new_first = case((Package.status == PackageStatus.NEW, 0), else_=1)

    result = await session.execute(
        _candidate_query()
        .where(or_(Package.status != PackageStatus.OK, Package.updated_at < cutoff))
        .order_by(is_new_first, Package.updated_at, Package.id)
        .limit(limit)
    )
    return [(row[0], row[1]) for row in result.all()]
