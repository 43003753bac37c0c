from __future__ import annotations

"""Hostname discovery by loading the target page in a headless browser.

Every HTTP(S) request the page issues, including script-injected ones, is
recorded from both request and response events. After the network settles
the collector waits a little longer to catch lazily triggered resources.
"""

import logging
from typing import Callable, Iterable, Optional, Set
from urllib.parse import urlsplit

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import async_playwright

from .errors import CollectorError

logger = logging.getLogger("certinspector")

HostnameCallback = Callable[[str], None]
LoadedCallback = Callable[[], None]


def hostname_of(url: str) -> Optional[str]:
    try:
        parts = urlsplit(url)
    except ValueError:
        return None
    if parts.scheme not in ("http", "https"):
        return None
    return parts.hostname or None


class BrowserCollector:
    """Collect the hostnames contacted while a page loads in Chromium."""

    def __init__(self, navigation_timeout: float = 30.0, settle_time: float = 2.0, headless: bool = True):
        self.navigation_timeout = navigation_timeout
        self.settle_time = settle_time
        self.headless = headless

    async def collect(
        self,
        url: str,
        on_hostname: Optional[HostnameCallback] = None,
        on_page_loaded: Optional[LoadedCallback] = None,
    ) -> Set[str]:
        hostnames: Set[str] = set()

        def record(raw_url: str) -> None:
            host = hostname_of(raw_url)
            if not host or host in hostnames:
                return
            hostnames.add(host)
            if on_hostname:
                on_hostname(host)

        try:
            async with async_playwright() as playwright:
                browser = await playwright.chromium.launch(headless=self.headless)
                try:
                    context = await browser.new_context(ignore_https_errors=True)
                    page = await context.new_page()
                    page.on("request", lambda request: record(request.url))
                    page.on("response", lambda response: record(response.url))
                    logger.debug("Navigating to %s", url)
                    await page.goto(url, wait_until="networkidle", timeout=self.navigation_timeout * 1000)
                    if on_page_loaded:
                        on_page_loaded()
                    await page.wait_for_timeout(self.settle_time * 1000)
                finally:
                    await browser.close()
        except PlaywrightError as exc:
            message = str(exc).strip().splitlines()[0] if str(exc).strip() else exc.__class__.__name__
            raise CollectorError(message) from exc

        logger.debug("Collected %d hostnames from %s", len(hostnames), url)
        return hostnames


class StaticCollector:
    """Yield a fixed hostname set; used when the caller already knows the hosts."""

    def __init__(self, hostnames: Iterable[str]):
        self.hostnames = [host.strip() for host in hostnames if host and host.strip()]

    async def collect(
        self,
        url: str,
        on_hostname: Optional[HostnameCallback] = None,
        on_page_loaded: Optional[LoadedCallback] = None,
    ) -> Set[str]:
        seen: Set[str] = set()
        for host in self.hostnames:
            if host in seen:
                continue
            seen.add(host)
            if on_hostname:
                on_hostname(host)
        if on_page_loaded:
            on_page_loaded()
        return seen
