from __future__ import annotations

import asyncio

import httpx

from certinspector.engine import hsts_probe


async def _probe(handler, hostname: str = "example.com"):
    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        return await hsts_probe.probe_hsts(hostname, client=client)


def test_header_present_enables_hsts():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, headers={"Strict-Transport-Security": "max-age=31536000; includeSubDomains"})

    status = asyncio.run(_probe(handler))

    assert status.enabled is True
    assert status.value == "max-age=31536000; includeSubDomains"
    assert seen[0].method == "HEAD"
    assert str(seen[0].url) == "https://example.com/"


def test_missing_or_empty_header_is_disabled():
    assert asyncio.run(_probe(lambda request: httpx.Response(200))).enabled is False
    empty = asyncio.run(_probe(lambda request: httpx.Response(200, headers={"Strict-Transport-Security": ""})))
    assert empty.enabled is False
    assert empty.to_dict() == {"enabled": False}


def test_redirects_are_not_followed():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(str(request.url))
        if request.url.host == "example.com":
            return httpx.Response(301, headers={"Location": "https://www.example.com/"})
        return httpx.Response(200, headers={"Strict-Transport-Security": "max-age=60"})

    status = asyncio.run(_probe(handler))

    assert status.enabled is False
    assert seen == ["https://example.com/"]


def test_error_status_still_reports_header():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503, headers={"strict-transport-security": "max-age=10"})

    status = asyncio.run(_probe(handler))
    assert status.enabled is True
    assert status.value == "max-age=10"


def test_transport_errors_read_as_disabled():
    def refuse(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    def stall(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)

    assert asyncio.run(_probe(refuse)).enabled is False
    assert asyncio.run(_probe(stall)).enabled is False


def test_hsts_url_brackets_ipv6():
    assert hsts_probe.hsts_url("example.com") == "https://example.com/"
    assert hsts_probe.hsts_url("2001:db8::1") == "https://[2001:db8::1]/"
    assert hsts_probe.hsts_url("203.0.113.9") == "https://203.0.113.9/"
