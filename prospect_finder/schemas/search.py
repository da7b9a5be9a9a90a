from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from prospect_finder.config import settings

MAX_KEYWORDS = 20
MAX_KEYWORD_LENGTH = 100


class JobPlatform(str, Enum):
    LINKEDIN = "linkedin"
    INDEED = "indeed"
    ICTJOB = "ictjob"
    JOBAT = "jobat"
    ACTIRIS = "actiris"
    JOBSORA = "jobsora"


class ExistingBusiness(BaseModel):
    name: str
    address: Optional[str] = None


class JobDiscoveryConfig(BaseModel):
    platforms: list[JobPlatform]
    keywords: list[str]
    location: Optional[str] = None
    max_results: int = Field(default_factory=lambda: settings.max_job_results)

    @field_validator("platforms")
    @classmethod
    def _require_platforms(cls, value: list[JobPlatform]) -> list[JobPlatform]:
        if not value:
            raise ValueError("No platforms specified")
        # Keep the caller's order, drop repeats
        return list(dict.fromkeys(value))

    @field_validator("keywords")
    @classmethod
    def _check_keywords(cls, value: list[str]) -> list[str]:
        if len(value) > MAX_KEYWORDS:
            raise ValueError(f"Maximum {MAX_KEYWORDS} keywords allowed")
        if any(len(k) > MAX_KEYWORD_LENGTH for k in value):
            raise ValueError(f"Each keyword must be at most {MAX_KEYWORD_LENGTH} characters")
        cleaned = [k.strip() for k in value if k and k.strip()]
        if not cleaned:
            raise ValueError("No keywords specified")
        return cleaned

    @field_validator("location")
    @classmethod
    def _blank_location(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        return value.strip() or None

    @field_validator("max_results")
    @classmethod
    def _clamp_max_results(cls, value: int) -> int:
        return min(max(1, value), settings.max_job_results_cap)


class BusinessDiscoveryConfig(BaseModel):
    location_query: str
    radius_km: float = 10.0
    min_rating: float = Field(default=0.0, ge=0.0, le=5.0)
    categories: list[str] = Field(default_factory=list)
    max_results: int = Field(default_factory=lambda: settings.max_business_results)
    exclude_existing: list[ExistingBusiness] = Field(default_factory=list)

    @field_validator("location_query")
    @classmethod
    def _require_location(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Location is required")
        return value

    @field_validator("categories")
    @classmethod
    def _clean_categories(cls, value: list[str]) -> list[str]:
        return [c.strip() for c in value if c and c.strip()]

    @field_validator("max_results")
    @classmethod
    def _clamp_max_results(cls, value: int) -> int:
        return min(max(1, value), settings.max_job_results_cap)
