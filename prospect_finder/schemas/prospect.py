from pydantic import BaseModel
from typing import Optional
from datetime import datetime


class JobPostingResponse(BaseModel):
    title: str
    company: Optional[str] = None
    location: Optional[str] = None
    salary: Optional[str] = None
    description: Optional[str] = None
    url: str
    source: str
    keywords_matched: list[str] = []
    posted_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class BusinessResponse(BaseModel):
    name: str
    address: Optional[str] = None
    phone: Optional[str] = None
    rating: Optional[float] = None
    review_count: Optional[int] = None
    category: Optional[str] = None
    maps_url: Optional[str] = None
    website_url: Optional[str] = None
    has_website: bool = False
    website_score: Optional[int] = None
    website_issues: list[str] = []
    location_query: Optional[str] = None

    model_config = {"from_attributes": True}


class ScrapeResponse(BaseModel):
    success: bool
    message: str
    items_found: int = 0
    total_found: int = 0
    errors: list[str] = []
    error: Optional[str] = None


class JobScrapeResponse(ScrapeResponse):
    jobs: list[JobPostingResponse] = []


class BusinessScrapeResponse(ScrapeResponse):
    businesses: list[BusinessResponse] = []
