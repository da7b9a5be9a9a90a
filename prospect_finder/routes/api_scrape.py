from __future__ import annotations

import asyncio
import logging
from typing import AsyncIterator, Awaitable, Callable

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse, StreamingResponse

from prospect_finder.config import settings
from prospect_finder.schemas.progress import ProgressEvent, ProgressPhase
from prospect_finder.schemas.prospect import (
    BusinessResponse,
    BusinessScrapeResponse,
    JobPostingResponse,
    JobScrapeResponse,
)
from prospect_finder.schemas.search import BusinessDiscoveryConfig, JobDiscoveryConfig
from prospect_finder.services.discovery import DiscoveryResult, discover_businesses, discover_jobs
from prospect_finder.services.progress import ProgressReporter
from prospect_finder.services.rate_limit import RateLimiter, client_identifier, rate_limiter
from prospect_finder.services.store import SqlAlchemyProspectStore

logger = logging.getLogger(__name__)

router = APIRouter()

RunFactory = Callable[[ProgressReporter], Awaitable[DiscoveryResult]]


def get_store() -> SqlAlchemyProspectStore:
    return SqlAlchemyProspectStore()


def get_rate_limiter() -> RateLimiter:
    return rate_limiter


def _check_rate_limit(request: Request, limiter: RateLimiter, key: str) -> None:
    peer = request.client.host if request.client else None
    if limiter.is_limited(key, identifier=client_identifier(request.headers, peer)):
        raise HTTPException(status_code=429, detail="Too many requests. Please wait a minute.")


def _source_gate(limiter: RateLimiter, key: str):
    return limiter.gate(key, max_requests=settings.source_rate_limit_max_requests)


def _budget_message() -> str:
    return f"Run exceeded the {settings.run_budget_seconds:.0f}s time budget"


def format_sse(event: ProgressEvent) -> str:
    return f"event: {event.kind}\ndata: {event.model_dump_json()}\n\n"


async def stream_run(run: RunFactory) -> AsyncIterator[str]:
    """Run a discovery in the background and relay its progress events as SSE frames.

    The stream always ends with exactly one ``complete`` or ``error`` frame, even
    when the run overruns its budget or dies without reporting.
    """
    queue: asyncio.Queue[ProgressEvent] = asyncio.Queue()
    reporter = ProgressReporter(sink=queue.put)
    task = asyncio.create_task(asyncio.wait_for(run(reporter), timeout=settings.run_budget_seconds))

    try:
        while True:
            getter = asyncio.ensure_future(queue.get())
            done, _ = await asyncio.wait({getter, task}, return_when=asyncio.FIRST_COMPLETED)
            if getter in done:
                event = getter.result()
                yield format_sse(event)
                if event.is_terminal:
                    return
                continue

            getter.cancel()
            while not queue.empty():
                event = queue.get_nowait()
                yield format_sse(event)
                if event.is_terminal:
                    return

            if task.cancelled():
                message = "Run was cancelled"
            elif isinstance(task.exception(), asyncio.TimeoutError):
                message = _budget_message()
            elif task.exception() is not None:
                logger.error("Discovery run crashed: %s", task.exception())
                message = str(task.exception()) or "Run failed"
            else:
                message = "Run ended without a result"
            yield format_sse(ProgressEvent(phase=ProgressPhase.ERROR, message=message))
            return
    finally:
        if not task.done():
            task.cancel()


def _sse_response(run: RunFactory) -> StreamingResponse:
    return StreamingResponse(
        stream_run(run),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "X-Accel-Buffering": "no",
        },
    )


@router.post("/jobs", response_model=JobScrapeResponse)
async def scrape_jobs(
    body: JobDiscoveryConfig,
    request: Request,
    store: SqlAlchemyProspectStore = Depends(get_store),
    limiter: RateLimiter = Depends(get_rate_limiter),
):
    """Run a job discovery and answer once it is finished."""
    _check_rate_limit(request, limiter, "scrape-jobs")
    try:
        result = await asyncio.wait_for(
            discover_jobs(body, store=store, gate=_source_gate(limiter, "job-platform")),
            timeout=settings.run_budget_seconds,
        )
    except asyncio.TimeoutError:
        payload = JobScrapeResponse(success=False, message=_budget_message(), error=_budget_message())
        return JSONResponse(status_code=504, content=payload.model_dump(mode="json"))

    payload = JobScrapeResponse(
        success=result.success,
        message=result.error or f"{result.items_found} new job(s) found",
        items_found=result.items_found,
        total_found=result.total_found,
        errors=result.errors,
        error=result.error,
        jobs=[JobPostingResponse.model_validate(job) for job in result.items],
    )
    if not result.success:
        return JSONResponse(status_code=500, content=payload.model_dump(mode="json"))
    return payload


@router.post("/jobs/stream")
async def scrape_jobs_stream(
    body: JobDiscoveryConfig,
    request: Request,
    store: SqlAlchemyProspectStore = Depends(get_store),
    limiter: RateLimiter = Depends(get_rate_limiter),
):
    """Same as ``/jobs`` but streams progress as Server-Sent Events."""
    _check_rate_limit(request, limiter, "scrape-jobs")
    gate = _source_gate(limiter, "job-platform")
    return _sse_response(lambda reporter: discover_jobs(body, reporter=reporter, store=store, gate=gate))


@router.post("/businesses", response_model=BusinessScrapeResponse)
async def scrape_businesses(
    body: BusinessDiscoveryConfig,
    request: Request,
    store: SqlAlchemyProspectStore = Depends(get_store),
    limiter: RateLimiter = Depends(get_rate_limiter),
):
    """Run a business discovery and answer once it is finished."""
    _check_rate_limit(request, limiter, "scrape-businesses")
    try:
        result = await asyncio.wait_for(
            discover_businesses(body, store=store, gate=_source_gate(limiter, "maps-category")),
            timeout=settings.run_budget_seconds,
        )
    except asyncio.TimeoutError:
        payload = BusinessScrapeResponse(success=False, message=_budget_message(), error=_budget_message())
        return JSONResponse(status_code=504, content=payload.model_dump(mode="json"))

    payload = BusinessScrapeResponse(
        success=result.success,
        message=result.error or f"{result.items_found} business(es) found",
        items_found=result.items_found,
        total_found=result.total_found,
        errors=result.errors,
        error=result.error,
        businesses=[BusinessResponse.model_validate(business) for business in result.items],
    )
    if not result.success:
        return JSONResponse(status_code=500, content=payload.model_dump(mode="json"))
    return payload


@router.post("/businesses/stream")
async def scrape_businesses_stream(
    body: BusinessDiscoveryConfig,
    request: Request,
    store: SqlAlchemyProspectStore = Depends(get_store),
    limiter: RateLimiter = Depends(get_rate_limiter),
):
    """Same as ``/businesses`` but streams progress as Server-Sent Events."""
    _check_rate_limit(request, limiter, "scrape-businesses")
    gate = _source_gate(limiter, "maps-category")
    return _sse_response(lambda reporter: discover_businesses(body, reporter=reporter, store=store, gate=gate))
