from __future__ import annotations

"""Target URL normalization and anti-abuse filtering.

Checks run on the literal host string before any network activity. A public
name that resolves into private space is not caught here.
"""

import ipaddress
import re
import socket
from typing import Optional, Union
from urllib.parse import urlsplit

from .errors import ForbiddenTargetError, InvalidInputError

IPAddress = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]

ALLOWED_SCHEMES = ("http", "https")
DEFAULT_SCHEME = "https"
SCHEME_RE = re.compile(r"^([A-Za-z][A-Za-z0-9+.\-]*)://")
# Browsers accept dotted forms with hex/octal/decimal parts ("0x7f.1", "2130706433").
LEGACY_IPV4_RE = re.compile(r"^(0x[0-9a-f]*|[0-9]+)(\.(0x[0-9a-f]*|[0-9]+)){0,3}$", re.IGNORECASE)
INVALID_HOST_CHARS = set("<>\"'`\\^{|}%")
LOOPBACK_NAMES = ("localhost",)

FORBIDDEN_NETWORKS = tuple(
    ipaddress.ip_network(cidr)
    for cidr in (
        "0.0.0.0/8",
        "127.0.0.0/8",
        "10.0.0.0/8",
        "172.16.0.0/12",
        "192.168.0.0/16",
        "169.254.0.0/16",
        "::/128",
        "::1/128",
        "fe80::/10",
        "fc00::/7",
    )
)


def parse_ip_literal(host: str) -> Optional[IPAddress]:
    """Return the address a literal host denotes, or None for DNS names."""
    text = (host or "").strip().strip("[]")
    if not text:
        return None
    try:
        address = ipaddress.ip_address(text)
    except ValueError:
        if not LEGACY_IPV4_RE.match(text):
            return None
        try:
            address = ipaddress.IPv4Address(socket.inet_aton(text))
        except OSError:
            return None
    if isinstance(address, ipaddress.IPv6Address) and address.ipv4_mapped is not None:
        return address.ipv4_mapped
    return address


def is_forbidden_host(host: str) -> bool:
    name = (host or "").strip().lower().rstrip(".")
    if not name:
        return True
    if name in LOOPBACK_NAMES or any(name.endswith("." + loopback) for loopback in LOOPBACK_NAMES):
        return True
    address = parse_ip_literal(name)
    if address is None:
        return False
    return any(address in network for network in FORBIDDEN_NETWORKS)


def validate(raw: Optional[str]) -> str:
    """Normalize a user-supplied target and return it as an absolute URL.

    Raises InvalidInputError for malformed input and ForbiddenTargetError for
    disallowed schemes or hosts.
    """
    text = (raw or "").strip()
    if not text:
        raise InvalidInputError("Invalid URL")

    match = SCHEME_RE.match(text)
    if match:
        scheme = match.group(1).lower()
        if scheme not in ALLOWED_SCHEMES:
            raise ForbiddenTargetError(f"Unsupported URL scheme: {scheme}")
    else:
        text = f"{DEFAULT_SCHEME}://{text}"

    if any(ch.isspace() for ch in text):
        raise InvalidInputError("Invalid URL")

    try:
        parts = urlsplit(text)
        host = parts.hostname
        parts.port  # raises on non-numeric or out-of-range ports
    except ValueError as exc:
        raise InvalidInputError("Invalid URL") from exc

    if not host or any(ch in INVALID_HOST_CHARS for ch in host):
        raise InvalidInputError("Invalid URL")
    if is_forbidden_host(host):
        raise ForbiddenTargetError(f"Target host is not allowed: {host}")
    return text
