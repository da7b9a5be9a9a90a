"""SSRF guard: only public http(s) hosts may be fetched on behalf of a caller."""
from __future__ import annotations

import asyncio
import ipaddress
import logging
import socket
from urllib.parse import urlparse

from prospect_finder.exceptions import BlockedUrlError

logger = logging.getLogger(__name__)

BLOCKED_HOSTNAMES = {"localhost", "localhost.localdomain", "metadata.google.internal"}
BLOCKED_SUFFIXES = (".localhost", ".local", ".internal", ".lan", ".home.arpa")


def _is_public_ip(ip: ipaddress.IPv4Address | ipaddress.IPv6Address) -> bool:
    if isinstance(ip, ipaddress.IPv6Address) and ip.ipv4_mapped:
        ip = ip.ipv4_mapped
    if ip.is_loopback or ip.is_private or ip.is_link_local or ip.is_unspecified:
        return False
    if ip.is_multicast or ip.is_reserved:
        return False
    return ip.is_global


def is_allowed_url(url: str) -> bool:
    """Syntactic check: http(s) scheme and a host that is not obviously internal.

    IP literals are judged directly; host names still need :func:`ensure_public_url`
    to check what they resolve to.
    """
    try:
        parsed = urlparse(url)
    except ValueError:
        return False
    if parsed.scheme not in ("http", "https"):
        return False
    host = (parsed.hostname or "").rstrip(".").lower()
    if not host:
        return False
    if host in BLOCKED_HOSTNAMES or host.endswith(BLOCKED_SUFFIXES):
        return False
    try:
        ip = ipaddress.ip_address(host)
    except ValueError:
        return True
    return _is_public_ip(ip)


async def resolve_host(host: str) -> list[str]:
    """Return every address *host* resolves to."""
    loop = asyncio.get_running_loop()
    infos = await loop.getaddrinfo(host, None, type=socket.SOCK_STREAM)
    return list({info[4][0] for info in infos})


async def ensure_public_url(url: str) -> None:
    """Raise :class:`BlockedUrlError` unless every address behind *url* is public."""
    if not is_allowed_url(url):
        raise BlockedUrlError(url)

    host = urlparse(url).hostname or ""
    try:
        ipaddress.ip_address(host)
        return
    except ValueError:
        pass

    try:
        addresses = await resolve_host(host)
    except (OSError, UnicodeError) as e:
        raise BlockedUrlError(url, f"could not resolve host: {e}") from e

    if not addresses:
        raise BlockedUrlError(url, "host has no addresses")
    for address in addresses:
        # Strip an IPv6 zone id such as fe80::1%eth0
        ip = ipaddress.ip_address(address.split("%", 1)[0])
        if not _is_public_ip(ip):
            logger.warning("Blocked %s: %s resolves to %s", url, host, address)
            raise BlockedUrlError(url, f"{host} resolves to non-public address {address}")
