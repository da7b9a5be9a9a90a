import uvicorn

from prospect_finder.config import settings

if __name__ == "__main__":
    uvicorn.run(
        "prospect_finder.app:create_app",
        factory=True,
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )
