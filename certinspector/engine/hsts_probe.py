from __future__ import annotations

import logging
from typing import Optional

import httpx

from .models import HstsStatus
from .validator import parse_ip_literal

logger = logging.getLogger("certinspector")

DEFAULT_TIMEOUT = 5.0
HSTS_HEADER = "Strict-Transport-Security"


def hsts_url(hostname: str) -> str:
    host = hostname.strip("[]")
    address = parse_ip_literal(host)
    if address is not None and address.version == 6:
        host = f"[{host}]"
    return f"https://{host}/"


async def probe_hsts(
    hostname: str,
    client: Optional[httpx.AsyncClient] = None,
    timeout: float = DEFAULT_TIMEOUT,
    verify: bool = True,
) -> HstsStatus:
    """HEAD the HTTPS root of `hostname` and report its HSTS header.

    Uses its own connection, separate from the certificate handshake.
    Redirects are not followed: only the host's own answer counts. Every
    failure reads as "not enabled".
    """
    url = hsts_url(hostname)
    try:
        if client is None:
            async with httpx.AsyncClient(verify=verify, timeout=timeout) as own_client:
                response = await own_client.head(url, follow_redirects=False)
        else:
            response = await client.head(url, follow_redirects=False, timeout=timeout)
    except Exception as exc:
        message = str(exc).strip()
        logger.debug("HSTS probe for %s failed: %s%s", hostname, exc.__class__.__name__, f": {message}" if message else "")
        return HstsStatus(enabled=False)

    value = response.headers.get(HSTS_HEADER)
    if not value:
        return HstsStatus(enabled=False)
    return HstsStatus(enabled=True, value=value)
