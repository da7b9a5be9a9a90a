import enum

from sqlalchemy import Column, Integer, String, Text, DateTime, Enum as SAEnum

from prospect_finder.database import Base


class ScrapeStatus(str, enum.Enum):
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class ScrapeLog(Base):
    __tablename__ = "scrape_logs"

    id = Column(Integer, primary_key=True, index=True)
    type = Column(String(20), nullable=False)  # "businesses" or "jobs"
    source = Column(String(300), nullable=True)
    status = Column(SAEnum(ScrapeStatus), default=ScrapeStatus.RUNNING)
    items_found = Column(Integer, default=0)
    error_message = Column(Text, nullable=True)
    started_at = Column(DateTime, nullable=False)
    completed_at = Column(DateTime, nullable=True)
