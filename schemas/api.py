"""
Pydantic schemas for API request/response models
"""

from pydantic import BaseModel, Field
from typing import Optional, Dict
from datetime import datetime


# ============================================================================
# Health Check Schemas
# ============================================================================

class HealthCheckResponse(BaseModel):
    """Health check response model"""
    status: str = Field(..., description="Overall system status: healthy, degraded, unhealthy")
    timestamp: datetime = Field(default_factory=datetime.utcnow)
    database_connected: bool
    total_packages: int = 0
    ok_packages: int = 0
    failed_packages: int = 0
    
    class Config:
        json_schema_extra = {
            "example": {
                "status": "healthy",
                "timestamp": "2024-01-15T10:30:00Z",
                "database_connected": True,
                "total_packages": 1200,
                "ok_packages": 1180,
                "failed_packages": 4
            }
        }


def health_status(database_connected: bool, total: int, failed: int) -> str:
    """Overall health: unhealthy without a database or when every package failed"""
    if not database_connected:
        return "unhealthy"
    if total == 0 or failed == 0:
        return "healthy"
    if failed < total:
        return "degraded"
    return "unhealthy"


# ============================================================================
# Statistics Schemas
# ============================================================================

class StatsResponse(BaseModel):
    """Statistics response model"""
    timestamp: datetime = Field(default_factory=datetime.utcnow)
    
    total_packages: int
    total_repositories: int
    packages_by_status: Dict[str, int]
    readme_cache_by_state: Dict[str, int]
    last_ingested_at: Optional[datetime] = None
    
    class Config:
        json_schema_extra = {
            "example": {
                "timestamp": "2024-01-15T10:30:00Z",
                "total_packages": 1200,
                "total_repositories": 1190,
                "packages_by_status": {
                    "new": 10,
                    "ok": 1180,
                    "metadata_request_failed": 3,
                    "not_found": 1,
                    "ingestion_failed": 6
                },
                "readme_cache_by_state": {
                    "cached": 1100,
                    "error": 12,
                    "absent": 78
                },
                "last_ingested_at": "2024-01-15T10:00:00Z"
            }
        }


# ============================================================================
# Error Response Schema
# ============================================================================

class ErrorResponse(BaseModel):
    """Standard error response"""
    error: str
    detail: Optional[str] = None
    timestamp: datetime = Field(default_factory=datetime.utcnow)
