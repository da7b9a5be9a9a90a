from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request

from prospect_finder.config import settings
from prospect_finder.database import init_db
from prospect_finder.utils.logging_config import setup_logging

# Initialize Logging
setup_logging()


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: create tables and ensure the data directory exists
    Path("data").mkdir(exist_ok=True)
    init_db()
    yield


def create_app() -> FastAPI:
    app = FastAPI(
        title=settings.app_name,
        debug=settings.debug,
        lifespan=lifespan,
    )

    # Register routes
    from prospect_finder.routes.api_scrape import router as scrape_router

    app.include_router(scrape_router, prefix="/api/scrape", tags=["scrape"])

    @app.get("/health")
    async def health():
        return {"status": "ok", "app": settings.app_name}

    @app.middleware("http")
    async def add_cache_headers(request: Request, call_next):
        response = await call_next(request)
        # Discovery results are never cacheable
        if request.url.path.startswith("/api/"):
            response.headers["Cache-Control"] = "no-store, no-cache, must-revalidate, max-age=0"
            response.headers["Pragma"] = "no-cache"
        return response

    return app
