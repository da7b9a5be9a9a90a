"""Persistence collaborators for the discovery pipeline.

The pipeline only depends on the small protocols below. ``SqlAlchemyProspectStore``
is the implementation the HTTP layer wires in.
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, Optional, Protocol

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from prospect_finder.database import SessionLocal
from prospect_finder.models import Business, Job, ScrapeLog, ScrapeStatus
from prospect_finder.services.records import JobPosting, ProspectBusiness, business_key

logger = logging.getLogger(__name__)


class RunLog(Protocol):
    def start_log(self, type: str, source: Optional[str] = None) -> int: ...

    def finish_log(
        self,
        log_id: int,
        status: ScrapeStatus,
        items_found: int = 0,
        error_message: Optional[str] = None,
    ) -> None: ...


class JobSink(RunLog, Protocol):
    def existing_job_urls(self, since: datetime) -> set[str]: ...

    def upsert_jobs(self, jobs: list[JobPosting]) -> int: ...


class BusinessSink(RunLog, Protocol):
    def existing_business_keys(self, location_query: Optional[str] = None) -> set[str]: ...

    def upsert_businesses(self, businesses: list[ProspectBusiness]) -> int: ...


class SqlAlchemyProspectStore:
    """Upserts keyed by URL (jobs) and by name + address (businesses), one transaction per batch."""

    def __init__(self, session_factory: Callable[[], Session] = SessionLocal):
        self.session_factory = session_factory

    def existing_job_urls(self, since: datetime) -> set[str]:
        with self.session_factory() as db:
            rows = db.execute(select(Job.url).where(Job.created_at >= since)).scalars()
            return set(rows)

    def existing_business_keys(self, location_query: Optional[str] = None) -> set[str]:
        with self.session_factory() as db:
            query = select(Business.name, Business.address)
            if location_query:
                query = query.where(func.lower(Business.location_query) == location_query.lower())
            return {business_key(name, address) for name, address in db.execute(query)}

    def upsert_jobs(self, jobs: list[JobPosting]) -> int:
        """Insert new postings and refresh known ones; returns the number inserted."""
        rows = [job.to_row() for job in jobs if job.is_persistable]
        if not rows:
            return 0
        inserted = 0
        with self.session_factory() as db:
            urls = [row["url"] for row in rows]
            existing = {job.url: job for job in db.execute(select(Job).where(Job.url.in_(urls))).scalars()}
            for row in rows:
                job = existing.get(row["url"])
                if job is None:
                    job = Job(**row)
                    db.add(job)
                    existing[row["url"]] = job
                    inserted += 1
                    continue
                for column, value in row.items():
                    if value is not None:
                        setattr(job, column, value)
            db.commit()
        logger.info("Saved %d jobs (%d new)", len(rows), inserted)
        return inserted

    def upsert_businesses(self, businesses: list[ProspectBusiness]) -> int:
        """Insert new businesses and refresh known ones; returns the number inserted."""
        if not businesses:
            return 0
        inserted = 0
        with self.session_factory() as db:
            # Identity is the trimmed, case-folded name + address, not the stored spelling
            names = {b.name.strip().lower() for b in businesses}
            query = select(Business).where(func.lower(func.trim(Business.name)).in_(names))
            existing = {business_key(b.name, b.address): b for b in db.execute(query).scalars()}
            for business in businesses:
                row = business.to_row()
                record = existing.get(business.key)
                if record is None:
                    record = Business(**row)
                    db.add(record)
                    existing[business.key] = record
                    inserted += 1
                    continue
                for column, value in row.items():
                    if column not in ("name", "address"):
                        setattr(record, column, value)
            db.commit()
        logger.info("Saved %d businesses (%d new)", len(businesses), inserted)
        return inserted

    def start_log(self, type: str, source: Optional[str] = None) -> int:
        with self.session_factory() as db:
            log = ScrapeLog(type=type, source=source, status=ScrapeStatus.RUNNING, started_at=datetime.now())
            db.add(log)
            db.commit()
            return log.id

    def finish_log(
        self,
        log_id: int,
        status: ScrapeStatus,
        items_found: int = 0,
        error_message: Optional[str] = None,
    ) -> None:
        with self.session_factory() as db:
            log = db.get(ScrapeLog, log_id)
            if log is None:
                logger.warning("Scrape log %s disappeared before it was closed", log_id)
                return
            log.status = status
            log.items_found = items_found
            log.error_message = error_message
            log.completed_at = datetime.now()
            db.commit()
