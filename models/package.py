from sqlalchemy import Column, Integer, String, Enum, DateTime, Index
from sqlalchemy.orm import relationship
from datetime import datetime
from models.base import Base, PackageStatus, ProcessingStage


class Package(Base):
    """
    A tracked source repository in the package registry.
    
    Packages are created by discovery (reconciliation) and only mutated by
    ingestion after a processing attempt: status, processing stage and
    updated_at.
    """
    __tablename__ = "packages"
    
    id = Column(Integer, primary_key=True, autoincrement=True)
    url = Column(String(2048), nullable=False, unique=True)
    
    status = Column(Enum(PackageStatus), default=PackageStatus.NEW, nullable=False, index=True)
    processing_stage = Column(Enum(ProcessingStage), nullable=True)
    
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)
    
    repository = relationship("Repository", back_populates="package", uselist=False)
    
    __table_args__ = (
        Index("idx_package_status_updated", "status", "updated_at"),
    )
    
    def __repr__(self) -> str:
        return f"<Package id={self.id} url={self.url} status={self.status}>"
