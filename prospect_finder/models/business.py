from sqlalchemy import Column, Integer, String, DateTime, Float, JSON, Boolean, UniqueConstraint
from sqlalchemy.sql import func

from prospect_finder.database import Base


class Business(Base):
    __tablename__ = "businesses"
    __table_args__ = (UniqueConstraint("name", "address", name="uq_business_name_address"),)

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(300), nullable=False)
    address = Column(String(500), nullable=True)
    phone = Column(String(50), nullable=True)
    rating = Column(Float, nullable=True)
    review_count = Column(Integer, nullable=True)
    category = Column(String(200), nullable=True)
    google_maps_url = Column(String(2000), nullable=True)
    has_website = Column(Boolean, default=False)
    website_url = Column(String(1000), nullable=True)
    website_score = Column(Integer, nullable=True)
    website_issues = Column(JSON, nullable=True)
    location_query = Column(String(300), nullable=True, index=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, onupdate=func.now())
