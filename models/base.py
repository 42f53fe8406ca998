from sqlalchemy import JSON
from sqlalchemy.orm import declarative_base
from sqlalchemy.dialects.postgresql import JSONB
import enum

Base = declarative_base()

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests)
JSONType = JSONB().with_variant(JSON(), "sqlite")


# ============================================================================
# ENUMS
# ============================================================================

class PackageStatus(str, enum.Enum):
    """Outcome of the most recent processing attempt for a package"""
    NEW = "new"
    OK = "ok"
    METADATA_REQUEST_FAILED = "metadata_request_failed"
    NOT_FOUND = "not_found"
    INGESTION_FAILED = "ingestion_failed"


class ProcessingStage(str, enum.Enum):
    """Last pipeline stage a package completed"""
    RECONCILIATION = "reconciliation"
    INGESTION = "ingestion"
