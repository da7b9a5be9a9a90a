"""Shared fixtures: an isolated SQLite store, fake DNS and a scripted browser session."""

from typing import Any, Optional

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

import prospect_finder.models  # noqa: F401 register tables on Base.metadata
from prospect_finder.database import Base
from prospect_finder.services import url_guard
from prospect_finder.services.maps_crawler import PLACE_DETAILS_SCRIPT, PLACE_LINKS_SCRIPT
from prospect_finder.services.store import SqlAlchemyProspectStore


PUBLIC_IP = "93.184.216.34"


@pytest.fixture
def session_factory(tmp_path):
    engine = create_engine(f"sqlite:///{tmp_path / 'test_prospects.db'}", connect_args={"check_same_thread": False})
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    engine.dispose()


@pytest.fixture
def store(session_factory):
    return SqlAlchemyProspectStore(session_factory)


@pytest.fixture
def public_dns(monkeypatch):
    """Every host name resolves to a public address."""
    lookups = []

    async def resolve(host):
        lookups.append(host)
        return [PUBLIC_IP]

    monkeypatch.setattr(url_guard, "resolve_host", resolve)
    return lookups


@pytest.fixture
def dns_map(monkeypatch):
    """Resolve host names from a dict the test fills in; unknown hosts are public."""
    table: dict[str, list[str]] = {}

    async def resolve(host):
        return table.get(host, [PUBLIC_IP])

    monkeypatch.setattr(url_guard, "resolve_host", resolve)
    return table


class FakeBrowserSession:
    """Scripted stand-in for a browser page.

    ``pages`` maps a URL to what the page shows: a list of place links for
    search pages (revealed ``links_per_scroll`` at a time), a details dict for
    place pages, or raw HTML for ``content()``.
    """

    def __init__(
        self,
        pages: Optional[dict[str, Any]] = None,
        links_per_scroll: int = 3,
        failing_urls: Optional[set[str]] = None,
        consent: bool = False,
    ):
        self.pages = pages or {}
        self.links_per_scroll = links_per_scroll
        self.failing_urls = failing_urls or set()
        self.consent = consent
        self.visited: list[str] = []
        self.clicked: list[str] = []
        self.scrolls = 0
        self.closed = False
        self._url = "about:blank"
        self._revealed = 0

    @property
    def url(self) -> str:
        return self._url

    async def navigate(self, url, timeout_ms=None, wait_until="domcontentloaded"):
        self.visited.append(url)
        if url in self.failing_urls:
            raise TimeoutError(f"Navigation timeout of {timeout_ms} ms exceeded")
        self._url = url
        self._revealed = self.links_per_scroll

    async def wait_for(self, selector, timeout_ms=10000):
        return self._url in self.pages

    async def evaluate(self, script, arg=None):
        page = self.pages.get(self._url)
        if script == PLACE_LINKS_SCRIPT:
            links = page if isinstance(page, list) else []
            return links[: self._revealed]
        if script == PLACE_DETAILS_SCRIPT:
            return page if isinstance(page, dict) else None
        return None

    async def scroll(self, selector):
        self.scrolls += 1
        self._revealed += self.links_per_scroll

    async def click(self, selector):
        if self.consent and "Accept all" in selector:
            self.clicked.append(selector)
            self.consent = False
            return True
        return False

    async def content(self):
        page = self.pages.get(self._url)
        return page if isinstance(page, str) else "<html><body></body></html>"

    async def close(self):
        self.closed = True


@pytest.fixture
def fake_browser():
    """Factory fixture: ``session, factory = fake_browser(pages=...)``."""

    def make(**kwargs):
        session = FakeBrowserSession(**kwargs)
        launches = []

        async def factory():
            launches.append(session)
            return session

        factory.launches = launches
        return session, factory

    return make
