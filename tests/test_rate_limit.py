import pytest

from prospect_finder.services.rate_limit import RateLimiter, client_identifier


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


def test_limit_applies_after_max_requests():
    limiter = RateLimiter(clock=FakeClock())
    results = [limiter.is_limited("scrape-jobs", max_requests=3, window_seconds=60, identifier="1.2.3.4") for _ in range(5)]
    assert results == [False, False, False, True, True]


def test_window_resets():
    clock = FakeClock()
    limiter = RateLimiter(clock=clock)
    for _ in range(3):
        limiter.is_limited("scrape-jobs", max_requests=2, window_seconds=60)
    assert limiter.is_limited("scrape-jobs", max_requests=2, window_seconds=60)

    clock.now += 61
    assert not limiter.is_limited("scrape-jobs", max_requests=2, window_seconds=60)


def test_identifiers_are_counted_separately():
    limiter = RateLimiter(clock=FakeClock())
    assert not limiter.is_limited("scrape-jobs", max_requests=1, identifier="1.1.1.1")
    assert limiter.is_limited("scrape-jobs", max_requests=1, identifier="1.1.1.1")
    assert not limiter.is_limited("scrape-jobs", max_requests=1, identifier="2.2.2.2")
    assert not limiter.is_limited("scrape-businesses", max_requests=1, identifier="1.1.1.1")


@pytest.mark.asyncio
async def test_gate_is_scoped_per_source():
    limiter = RateLimiter(clock=FakeClock())
    gate = limiter.gate("job-platform", max_requests=2, window_seconds=60)

    assert await gate("linkedin")
    assert await gate("linkedin")
    assert not await gate("linkedin")
    assert await gate("indeed")


def test_client_identifier_prefers_proxy_headers():
    assert client_identifier({"x-forwarded-for": "203.0.113.7, 10.0.0.1"}, "10.0.0.1") == "203.0.113.7"
    assert client_identifier({"x-real-ip": "203.0.113.9"}, "10.0.0.1") == "203.0.113.9"
    assert client_identifier({}, "198.51.100.4") == "198.51.100.4"
    assert client_identifier({}) == "unknown"
