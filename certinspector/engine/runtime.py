from __future__ import annotations

"""Inspection orchestrator for certinspector.

This module is used by both the HTTP server and the CLI:
- per-hostname fan-out/fan-in over DNS, certificate and HSTS probes
  (`inspect_domain`)
- bulk and streaming execution modes (`InspectionOrchestrator`)
- sync bridges for callers without an event loop (`_run_coro_sync`,
  `_iterate_async_sync`, `INSPECT`)

Hostnames are visited one after another in lexicographic order; only the three
probes of a single hostname run concurrently. Bulk mode can opt into a bounded
worker pool through `Settings.workers`.
"""

import asyncio
import logging
import sys
import threading
import time
from concurrent.futures import Executor, ThreadPoolExecutor
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, Iterable, Iterator, List, Optional

import httpx

from ..config import Settings
from . import dns_probe, hsts_probe, tls_probe
from .collector import BrowserCollector
from .errors import CollectorError
from .health import classify
from .models import DnsRecord, DomainResult, HstsStatus, InspectionRun
from .validator import validate

logger = logging.getLogger("certinspector")
logger.setLevel(logging.INFO)
if not logger.handlers:
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(message)s", "%H:%M:%S"))
    logger.addHandler(handler)


def set_log_level(level_name: str, debug: bool = False) -> None:
    """Apply a level name such as "INFO"; unknown names fall back to INFO."""
    level = logging.DEBUG if debug else getattr(logging, (level_name or "INFO").upper(), logging.INFO)
    if not isinstance(level, int):
        level = logging.INFO
    logger.setLevel(level)


InspectFn = Callable[[str], Awaitable[DomainResult]]
ProgressCallback = Callable[[int, int], None]

# Threads per hostname pipeline: A/AAAA lookup, CNAME lookup, TLS handshake.
THREADS_PER_PIPELINE = 3


def _settle(outcome: Any, fallback: Any, probe: str, hostname: str) -> Any:
    if isinstance(outcome, BaseException):
        if not isinstance(outcome, Exception):
            raise outcome
        logger.debug("%s probe for %s raised %s: %s", probe, hostname, outcome.__class__.__name__, outcome)
        return fallback
    return outcome


async def inspect_domain(
    hostname: str,
    settings: Settings,
    client: Optional[httpx.AsyncClient] = None,
    io_executor: Optional[Executor] = None,
) -> DomainResult:
    """Run the three probes for one hostname concurrently and join them.

    Always returns a DomainResult, even if a probe raises.
    """
    dns_outcome, cert_outcome, hsts_outcome = await asyncio.gather(
        dns_probe.resolve(hostname, io_executor=io_executor),
        tls_probe.inspect_certificate(
            hostname,
            timeout=settings.tls_timeout,
            verify_trust=settings.verify_trust,
            io_executor=io_executor,
        ),
        hsts_probe.probe_hsts(
            hostname,
            client=client,
            timeout=settings.hsts_timeout,
            verify=settings.hsts_verify_tls,
        ),
        return_exceptions=True,
    )
    return DomainResult(
        hostname=hostname,
        dns=_settle(dns_outcome, DnsRecord.unresolved(hostname), "DNS", hostname),
        certificate=_settle(cert_outcome, None, "TLS", hostname),
        hsts=_settle(hsts_outcome, HstsStatus(enabled=False), "HSTS", hostname),
    )


class InspectionOrchestrator:
    """Drive one inspection run per call, in bulk or streaming mode.

    `collector` provides the hostname set for a URL; `inspect_fn` replaces the
    per-hostname unit of work (tests and embedding callers use it).
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        collector: Optional[Any] = None,
        inspect_fn: Optional[InspectFn] = None,
    ):
        self.settings = settings or Settings()
        self.collector = collector or BrowserCollector(
            navigation_timeout=self.settings.navigation_timeout,
            settle_time=self.settings.settle_time,
        )
        self.inspect_fn = inspect_fn

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[InspectFn]:
        if self.inspect_fn is not None:
            yield self.inspect_fn
            return

        io_workers = max(4, max(1, self.settings.workers) * THREADS_PER_PIPELINE)
        with ThreadPoolExecutor(max_workers=io_workers, thread_name_prefix="certinspector") as io_executor:
            async with httpx.AsyncClient(
                verify=self.settings.hsts_verify_tls,
                timeout=httpx.Timeout(self.settings.hsts_timeout),
                headers={"User-Agent": self.settings.user_agent},
            ) as client:

                async def bound(hostname: str) -> DomainResult:
                    return await inspect_domain(hostname, self.settings, client=client, io_executor=io_executor)

                yield bound

    async def collect_hostnames(
        self,
        url: str,
        on_hostname: Optional[Callable[[str], None]] = None,
        on_page_loaded: Optional[Callable[[], None]] = None,
    ) -> List[str]:
        """Run the collector and return its hostnames deduplicated and sorted."""
        try:
            found = await self.collector.collect(url, on_hostname=on_hostname, on_page_loaded=on_page_loaded)
        except CollectorError:
            raise
        except Exception as exc:
            raise CollectorError(f"{exc.__class__.__name__}: {exc}") from exc
        return sorted(set(found or ()))

    async def run_bulk(self, url: str, progress_callback: Optional[ProgressCallback] = None) -> InspectionRun:
        """Collect and inspect every hostname; return only once all are done."""
        try:
            hostnames = await self.collect_hostnames(url)
        except CollectorError as exc:
            logger.error("Resource collection failed for %s: %s", url, exc)
            raise
        return await self.inspect_hostnames(url, hostnames, progress_callback=progress_callback)

    async def inspect_hostnames(
        self,
        url: str,
        hostnames: Iterable[str],
        progress_callback: Optional[ProgressCallback] = None,
    ) -> InspectionRun:
        ordered = sorted(set(hostnames))
        run = InspectionRun(url=url, hostnames=tuple(ordered))
        started = time.perf_counter()
        logger.info("Inspecting %d domains for %s", len(ordered), url)

        async with self._session() as inspect:
            if self.settings.workers <= 1 or len(ordered) <= 1:
                for hostname in ordered:
                    run.record(await inspect(hostname))
                    if progress_callback:
                        progress_callback(run.checked, len(ordered))
            else:
                await self._inspect_pooled(ordered, inspect, run, progress_callback)

        run.finish(time.perf_counter() - started)
        logger.info("Finished inspecting %d domains for %s in %.1fs", run.checked, url, run.elapsed_seconds)
        return run

    async def _inspect_pooled(
        self,
        ordered: List[str],
        inspect: InspectFn,
        run: InspectionRun,
        progress_callback: Optional[ProgressCallback],
    ) -> None:
        queue: "asyncio.Queue[Optional[str]]" = asyncio.Queue()
        for hostname in ordered:
            queue.put_nowait(hostname)

        worker_count = max(1, min(self.settings.workers, len(ordered)))
        for _ in range(worker_count):
            queue.put_nowait(None)

        async def worker() -> None:
            while True:
                hostname = await queue.get()
                try:
                    if hostname is None:
                        return
                    run.record(await inspect(hostname))
                    if progress_callback:
                        progress_callback(run.checked, len(ordered))
                finally:
                    queue.task_done()

        workers = [asyncio.create_task(worker()) for _ in range(worker_count)]
        await queue.join()
        await asyncio.gather(*workers)

    async def run_stream(self, url: str) -> AsyncIterator[Dict[str, Any]]:
        """Yield progress events for one run, ending with exactly one terminal event.

        The terminal event is `{"phase", "log", "done": True}` on success or
        `{"error"}` on a run-level failure. Closing the generator stops
        emission; probes already in flight finish on their own deadlines.
        """
        started = time.perf_counter()
        yield {"phase": "Launching browser..."}
        yield {"phase": "Loading page...", "log": f"Navigating to {url}"}

        events: "asyncio.Queue[Dict[str, Any]]" = asyncio.Queue()
        discovered = 0

        def on_hostname(hostname: str) -> None:
            nonlocal discovered
            discovered += 1
            events.put_nowait({"log": f"Found: {hostname}", "type": "domain", "domainCount": discovered})

        def on_page_loaded() -> None:
            events.put_nowait(
                {"phase": "Waiting for additional requests...", "log": "Page loaded, waiting for lazy resources..."}
            )

        collect_task = asyncio.ensure_future(
            self.collect_hostnames(url, on_hostname=on_hostname, on_page_loaded=on_page_loaded)
        )
        try:
            while True:
                getter = asyncio.ensure_future(events.get())
                done, _ = await asyncio.wait({getter, collect_task}, return_when=asyncio.FIRST_COMPLETED)
                if getter in done:
                    yield getter.result()
                    continue
                getter.cancel()
                break
            while not events.empty():
                yield events.get_nowait()
            hostnames = collect_task.result()
        except CollectorError as exc:
            logger.error("Resource collection failed for %s: %s", url, exc)
            yield {"error": str(exc)}
            return
        finally:
            if not collect_task.done():
                collect_task.cancel()
                await asyncio.gather(collect_task, return_exceptions=True)

        total = len(hostnames)
        yield {"phase": f"Inspecting {total} domains...", "domainCount": total}
        logger.info("Streaming inspection of %d domains for %s", total, url)

        checked = 0
        try:
            async with self._session() as inspect:
                for hostname in hostnames:
                    yield {"log": f"Checking {hostname}...", "type": "info", "checked": checked}
                    result = await inspect(hostname)
                    checked += 1
                    verdict = classify(result.certificate)
                    yield {"log": f"{hostname}: {verdict.message}", "type": verdict.event_type, "checked": checked}
        except Exception as exc:
            logger.exception("Inspection run for %s failed", url)
            yield {"error": f"{exc.__class__.__name__}: {exc}"}
            return

        logger.info("Finished inspecting %d domains for %s in %.1fs", checked, url, time.perf_counter() - started)
        yield {"phase": "Complete!", "log": f"Finished inspecting {total} domains", "done": True}


def _run_coro_sync(coro: Any) -> Any:
    """Run async code from sync callers (CLI, Flask views, public API).

    If already inside an event loop, execute in a helper thread to avoid
    `RuntimeError: asyncio.run() cannot be called from a running event loop`.
    """
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.run(coro)

    outcome: Dict[str, Any] = {}

    def target() -> None:
        try:
            outcome["result"] = asyncio.run(coro)
        except Exception as exc:
            outcome["error"] = exc

    thread = threading.Thread(target=target, daemon=True)
    thread.start()
    thread.join()

    if "error" in outcome:
        raise outcome["error"]
    return outcome.get("result")


def _iterate_async_sync(agen: AsyncIterator[Any]) -> Iterator[Any]:
    """Drive an async generator from a plain generator on a private loop.

    Closing the returned generator closes `agen` as well, so consumers that
    disconnect stop further emission.
    """
    loop = asyncio.new_event_loop()
    try:
        while True:
            try:
                item = loop.run_until_complete(agen.__anext__())
            except StopAsyncIteration:
                break
            yield item
    finally:
        try:
            loop.run_until_complete(agen.aclose())
            loop.run_until_complete(loop.shutdown_asyncgens())
        finally:
            loop.close()


def INSPECT(
    url: str,
    hostnames: Optional[Iterable[str]] = None,
    settings: Optional[Settings] = None,
    collector: Optional[Any] = None,
) -> Dict[str, Any]:
    """Public synchronous Python API entrypoint.

    Example:
    `INSPECT("example.com")` loads the page and inspects every host it
    contacts; `INSPECT("example.com", hostnames=["example.com"])` skips the
    browser.
    """
    target = validate(url)
    orchestrator = InspectionOrchestrator(settings=settings, collector=collector)
    if hostnames is None:
        run = _run_coro_sync(orchestrator.run_bulk(target))
    else:
        run = _run_coro_sync(orchestrator.inspect_hostnames(target, hostnames))
    return run.to_dict()
