"""Exception types raised inside the discovery pipeline."""


class ProspectFinderError(Exception):
    """Base class for pipeline errors."""


class BlockedUrlError(ProspectFinderError):
    """A URL points at a loopback, private, link-local or internal address."""

    def __init__(self, url: str, reason: str = "address not allowed"):
        super().__init__(f"Blocked URL {url}: {reason}")
        self.url = url
        self.reason = reason


class FetchError(ProspectFinderError):
    """An HTTP fetch did not produce a usable 2xx response."""

    def __init__(self, url: str, message: str, status_code: int | None = None):
        super().__init__(message)
        self.url = url
        self.status_code = status_code


class BrowserLaunchError(ProspectFinderError):
    """The headless browser could not be started."""
