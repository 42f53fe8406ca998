"""
SQLAlchemy ORM models for database tables.

Models:
    base: Base declarative class, JSON column type and shared enums
          (PackageStatus, ProcessingStage)
    package: Tracked packages and their ingestion status
    repository: Hosting metadata merged from the latest successful ingestion

Usage:
    from models.package import Package
    from models.repository import Repository
    from models.base import PackageStatus

Example:
    package = Package(url="https://github.com/owner/repo.git")
    session.add(package)
    await session.commit()

Relationships:
    - Package → Repository (one-to-one, keyed by package_id)
"""

__all__ = [
    "Base",
    "JSONType",
    "PackageStatus",
    "ProcessingStage",
    "Package",
    "Repository",
]

# Both sides of the Package ↔ Repository relationship must be registered
# before the mappers are configured.
from models.base import Base, JSONType, PackageStatus, ProcessingStage  # noqa: E402
from models.package import Package  # noqa: E402
from models.repository import Repository  # noqa: E402
