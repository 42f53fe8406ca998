from sqlalchemy import Column, Integer, String, Boolean, DateTime, Text, ForeignKey
from sqlalchemy.orm import relationship
from datetime import datetime
from models.base import Base, JSONType


class Repository(Base):
    """
    Hosting metadata for a package, one-to-one with Package.
    
    Every column below package_id is overwritten from the latest successful
    fetch; the row never holds a mix of two ingestions.
    
    JSON columns:
    - keywords: sorted, unique, lower-cased topics
    - releases: list of release dicts in fetch order
    - readme_cache: {"kind": "cached", "object_url", "etag"} |
      {"kind": "error", "message"} | NULL
    """
    __tablename__ = "repositories"
    
    id = Column(Integer, primary_key=True, autoincrement=True)
    package_id = Column(Integer, ForeignKey("packages.id"), nullable=False, unique=True, index=True)
    
    # Repository
    name = Column(String(255), nullable=True)
    summary = Column(Text, nullable=True)
    default_branch = Column(String(255), nullable=True)
    homepage_url = Column(String(2048), nullable=True)
    is_archived = Column(Boolean, nullable=True)
    is_in_organization = Column(Boolean, nullable=True)
    keywords = Column(JSONType, nullable=True)
    
    # Owner
    owner = Column(String(255), nullable=True)
    owner_name = Column(String(255), nullable=True)
    owner_avatar_url = Column(String(2048), nullable=True)
    
    # Activity
    forks = Column(Integer, nullable=True)
    stars = Column(Integer, nullable=True)
    open_issues = Column(Integer, nullable=True)
    open_pull_requests = Column(Integer, nullable=True)
    last_issue_closed_at = Column(DateTime(timezone=True), nullable=True)
    last_pull_request_closed_at = Column(DateTime(timezone=True), nullable=True)
    
    # License
    license = Column(String(100), nullable=True)
    license_url = Column(String(2048), nullable=True)
    
    # README
    readme_html_url = Column(String(2048), nullable=True)
    readme_cache = Column(JSONType, nullable=True)
    
    releases = Column(JSONType, nullable=True)
    
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)
    
    package = relationship("Package", back_populates="repository")
    
    def __repr__(self) -> str:
        return f"<Repository package_id={self.package_id} {self.owner}/{self.name}>"
