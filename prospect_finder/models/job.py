from sqlalchemy import Column, Integer, String, Text, DateTime, JSON
from sqlalchemy.sql import func

from prospect_finder.database import Base


class Job(Base):
    __tablename__ = "jobs"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(500), nullable=False)
    company = Column(String(300), nullable=True)
    location = Column(String(300), nullable=True)
    salary = Column(String(200), nullable=True)
    description = Column(Text, nullable=True)
    url = Column(String(1000), nullable=False, unique=True, index=True)
    source = Column(String(50), nullable=False)
    keywords_matched = Column(JSON, nullable=True)
    posted_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now(), index=True)
