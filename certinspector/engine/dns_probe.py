from __future__ import annotations

"""DNS lookups for one hostname.

Address and CNAME lookups are independent: a missing CNAME never marks the
record as failed. Failures are returned as data, never raised.
"""

import asyncio
import ipaddress
import logging
from concurrent.futures import Executor
from typing import List, Optional

import dns.exception
import dns.resolver

from .models import DnsRecord
from .validator import parse_ip_literal

logger = logging.getLogger("certinspector")

ADDRESS_QTYPES = ("A", "AAAA")


def _make_resolver() -> dns.resolver.Resolver:
    # System configuration and default timeouts; no retries beyond dnspython's own.
    return dns.resolver.Resolver()


def _lookup_addresses(hostname: str) -> List[str]:
    """IPv4 first, IPv6 only when IPv4 gave nothing."""
    try:
        resolver = _make_resolver()
    except dns.exception.DNSException as exc:
        logger.debug("Resolver unavailable for %s: %s", hostname, exc)
        return []

    for qtype in ADDRESS_QTYPES:
        try:
            answers = resolver.resolve(hostname, qtype)
        except dns.exception.DNSException as exc:
            logger.debug("%s lookup failed for %s: %s", qtype, hostname, exc.__class__.__name__)
            continue
        addresses: List[str] = []
        for rr in answers:
            text = rr.to_text().strip()
            try:
                ipaddress.ip_address(text)
            except ValueError:
                continue
            if text not in addresses:
                addresses.append(text)
        if addresses:
            return addresses
    return []


def _lookup_cname(hostname: str) -> Optional[str]:
    try:
        answers = _make_resolver().resolve(hostname, "CNAME")
    except dns.exception.DNSException:
        return None
    for rr in answers:
        text = rr.to_text().strip().rstrip(".")
        if text:
            return text
    return None


async def resolve(hostname: str, io_executor: Optional[Executor] = None) -> DnsRecord:
    literal = parse_ip_literal(hostname)
    if literal is not None:
        return DnsRecord(hostname=hostname, addresses=(str(literal),))

    loop = asyncio.get_running_loop()
    addresses, cname = await asyncio.gather(
        loop.run_in_executor(io_executor, _lookup_addresses, hostname),
        loop.run_in_executor(io_executor, _lookup_cname, hostname),
    )
    if not addresses:
        return DnsRecord.unresolved(hostname, cname=cname)
    return DnsRecord(hostname=hostname, addresses=tuple(addresses), cname=cname)
