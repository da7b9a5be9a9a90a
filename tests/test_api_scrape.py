import asyncio
import json

import pytest
from fastapi.testclient import TestClient

from prospect_finder.app import create_app
from prospect_finder.config import settings
from prospect_finder.routes import api_scrape
from prospect_finder.schemas.progress import ProgressEvent, ProgressPhase
from prospect_finder.services.discovery import DiscoveryResult
from prospect_finder.services.rate_limit import RateLimiter
from prospect_finder.services.records import JobPosting, ProspectBusiness


JOB_BODY = {"platforms": ["ictjob"], "keywords": ["web developer"], "max_results": 5}
BUSINESS_BODY = {"location_query": "Namur", "categories": ["boulangerie"]}


@pytest.fixture
def client(store):
    app = create_app()
    limiter = RateLimiter()
    app.dependency_overrides[api_scrape.get_store] = lambda: store
    app.dependency_overrides[api_scrape.get_rate_limiter] = lambda: limiter
    return TestClient(app)


def _parse_sse(text):
    frames = []
    for block in text.strip().split("\n\n"):
        lines = dict(line.split(": ", 1) for line in block.splitlines())
        frames.append((lines["event"], json.loads(lines["data"])))
    return frames


async def fake_discover_jobs(config, *, reporter=None, store=None, gate=None):
    assert await gate("ictjob")
    jobs = [
        JobPosting(
            title=f"Web developer {i}",
            url=f"https://www.ictjob.be/en/it-job/{i}",
            source="ictjob",
            keywords_matched=["web developer"],
        )
        for i in range(config.max_results)
    ]
    if reporter is not None:
        await reporter.emit(ProgressPhase.INIT, 0, "Searching 1 platform(s)")
        await reporter.emit(ProgressPhase.SCRAPING, 80, "ICTJob: 5 new job(s)", current=5, total=5)
        await reporter.complete(len(jobs), len(jobs), [])
    return DiscoveryResult(items=jobs, items_found=len(jobs), total_found=len(jobs))


async def fake_discover_businesses(config, *, reporter=None, store=None, gate=None):
    businesses = [
        ProspectBusiness(name="Boulangerie Dupont", review_count=12, location_query=config.location_query),
        ProspectBusiness(name="Pâtisserie Leroy", website_url="http://leroy.be", website_score=75),
    ]
    if reporter is not None:
        await reporter.emit(ProgressPhase.INIT, 5, "Launching browser...")
        await reporter.complete(2, 2, ["macaron: too many requests"])
    return DiscoveryResult(items=businesses, items_found=2, total_found=2, errors=["macaron: too many requests"])


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_scrape_jobs_returns_postings(client, monkeypatch):
    monkeypatch.setattr(api_scrape, "discover_jobs", fake_discover_jobs)

    response = client.post("/api/scrape/jobs", json=JOB_BODY)

    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    assert data["items_found"] == 5
    assert len(data["jobs"]) == 5
    assert data["jobs"][0]["keywords_matched"] == ["web developer"]
    assert response.headers["cache-control"].startswith("no-store")


def test_scrape_businesses_returns_prospects(client, monkeypatch):
    monkeypatch.setattr(api_scrape, "discover_businesses", fake_discover_businesses)

    response = client.post("/api/scrape/businesses", json=BUSINESS_BODY)

    assert response.status_code == 200
    data = response.json()
    assert [b["name"] for b in data["businesses"]] == ["Boulangerie Dupont", "Pâtisserie Leroy"]
    assert data["businesses"][0]["has_website"] is False
    assert data["businesses"][1]["has_website"] is True
    assert data["errors"] == ["macaron: too many requests"]


@pytest.mark.parametrize(
    "body",
    [
        {"platforms": [], "keywords": ["web developer"]},
        {"platforms": ["ictjob"], "keywords": []},
        {"platforms": ["ictjob"], "keywords": ["k"] * 21},
        {"platforms": ["ictjob"], "keywords": ["x" * 101]},
        {"platforms": ["monster"], "keywords": ["web developer"]},
    ],
)
def test_invalid_job_config_is_rejected(client, monkeypatch, body):
    called = []

    async def never(*args, **kwargs):
        called.append(True)

    monkeypatch.setattr(api_scrape, "discover_jobs", never)

    response = client.post("/api/scrape/jobs", json=body)

    assert response.status_code == 422
    assert called == []


def test_missing_location_is_rejected(client):
    response = client.post("/api/scrape/businesses", json={"location_query": "  "})
    assert response.status_code == 422


def test_rate_limit_returns_429(client, monkeypatch):
    monkeypatch.setattr(api_scrape, "discover_jobs", fake_discover_jobs)

    statuses = [client.post("/api/scrape/jobs", json=JOB_BODY).status_code for _ in range(settings.rate_limit_max_requests + 1)]

    assert statuses[:-1] == [200] * settings.rate_limit_max_requests
    assert statuses[-1] == 429
    assert client.post("/api/scrape/jobs", json=JOB_BODY).json()["detail"] == "Too many requests. Please wait a minute."


def test_fatal_run_error_returns_500(client, monkeypatch):
    async def failing(config, **kwargs):
        return DiscoveryResult(error="browser engine missing")

    monkeypatch.setattr(api_scrape, "discover_jobs", failing)

    response = client.post("/api/scrape/jobs", json=JOB_BODY)

    assert response.status_code == 500
    assert response.json()["success"] is False
    assert response.json()["error"] == "browser engine missing"


def test_run_over_budget_returns_504(client, monkeypatch):
    async def slow(config, **kwargs):
        await asyncio.sleep(5)

    monkeypatch.setattr(api_scrape, "discover_jobs", slow)
    monkeypatch.setattr(settings, "run_budget_seconds", 0.05)

    response = client.post("/api/scrape/jobs", json=JOB_BODY)

    assert response.status_code == 504
    assert "time budget" in response.json()["error"]


def test_job_stream_relays_progress_then_complete(client, monkeypatch):
    monkeypatch.setattr(api_scrape, "discover_jobs", fake_discover_jobs)

    response = client.post("/api/scrape/jobs/stream", json=JOB_BODY)

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/event-stream")
    frames = _parse_sse(response.text)
    assert [event for event, _ in frames] == ["progress", "progress", "complete"]
    assert frames[0][1]["phase"] == "init"
    assert frames[-1][1]["items_found"] == 5


def test_business_stream_ends_with_complete(client, monkeypatch):
    monkeypatch.setattr(api_scrape, "discover_businesses", fake_discover_businesses)

    frames = _parse_sse(client.post("/api/scrape/businesses/stream", json=BUSINESS_BODY).text)

    assert frames[-1][0] == "complete"
    assert frames[-1][1]["errors"] == ["macaron: too many requests"]


def test_stream_reports_crash_as_error_frame(client, monkeypatch):
    async def crashing(config, *, reporter=None, **kwargs):
        await reporter.emit(ProgressPhase.INIT, 0, "Starting")
        raise RuntimeError("unexpected failure")

    monkeypatch.setattr(api_scrape, "discover_jobs", crashing)

    frames = _parse_sse(client.post("/api/scrape/jobs/stream", json=JOB_BODY).text)

    assert [event for event, _ in frames] == ["progress", "error"]
    assert frames[-1][1]["message"] == "unexpected failure"


def test_stream_over_budget_ends_with_error_frame(client, monkeypatch):
    async def slow(config, *, reporter=None, **kwargs):
        await reporter.emit(ProgressPhase.INIT, 0, "Starting")
        await asyncio.sleep(5)

    monkeypatch.setattr(api_scrape, "discover_jobs", slow)
    monkeypatch.setattr(settings, "run_budget_seconds", 0.05)

    frames = _parse_sse(client.post("/api/scrape/jobs/stream", json=JOB_BODY).text)

    assert frames[-1][0] == "error"
    assert "time budget" in frames[-1][1]["message"]
    assert sum(1 for event, _ in frames if event in ("complete", "error")) == 1


def test_format_sse():
    frame = api_scrape.format_sse(ProgressEvent(phase=ProgressPhase.DONE, progress=100, items_found=3))
    assert frame.startswith("event: complete\ndata: {")
    assert frame.endswith("}\n\n")
    assert json.loads(frame.split("data: ", 1)[1])["items_found"] == 3
