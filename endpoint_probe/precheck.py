"""Maintenance precheck issued before a probe connects."""

import logging

import aiohttp
from yarl import URL

log = logging.getLogger(__name__)

PRECHECK_HEADERS = {"X-Endpoint-Probe": "precheck"}
MAINTENANCE_STATUS = 503
MAINTENANCE_MARKER = "under maintenance"
PRECHECK_TIMEOUT_SECONDS = 5.0

WS_SCHEMES = {"ws": "http", "wss": "https"}


def precheck_url(endpoint: str) -> URL:
    """Map an endpoint address to the HTTP URL used for the precheck."""
    if "://" not in endpoint:
        endpoint = f"https://{endpoint}"
    url = URL(endpoint)
    if url.scheme in WS_SCHEMES:
        return url.with_scheme(WS_SCHEMES[url.scheme])
    return url


async def is_under_maintenance(endpoint: str) -> bool:
    """Return True if the backend self-reports maintenance.

    Only a 503 response whose body carries the maintenance marker counts.
    Any transport failure is treated as "available" so the probe itself
    reports the real connection error.
    """
    url = precheck_url(endpoint)
    timeout = aiohttp.ClientTimeout(total=PRECHECK_TIMEOUT_SECONDS)

    try:
        async with aiohttp.ClientSession(timeout=timeout) as session:
            async with session.get(url, headers=PRECHECK_HEADERS) as response:
                if response.status != MAINTENANCE_STATUS:
                    return False
                body = await response.text()
    except (aiohttp.ClientError, TimeoutError, ValueError) as e:
        log.debug("Maintenance precheck failed for %s: %s", url, e)
        return False

    if MAINTENANCE_MARKER in body.lower():
        log.warning("Endpoint %s reports maintenance", url)
        return True
    return False
