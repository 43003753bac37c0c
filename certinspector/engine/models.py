from __future__ import annotations

"""Value objects produced by the inspection pipeline.

Everything here is plain data. Serialization keeps the camelCase keys of the
HTTP payload so API consumers see the same shape as the streaming events.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from .health import classify, sort_results

COULD_NOT_RESOLVE = "Could not resolve"


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


@dataclass(frozen=True)
class DnsRecord:
    hostname: str
    addresses: Tuple[str, ...] = ()
    cname: Optional[str] = None
    error: Optional[str] = None

    @property
    def resolved(self) -> bool:
        return bool(self.addresses) and not self.error

    @classmethod
    def unresolved(cls, hostname: str, cname: Optional[str] = None) -> "DnsRecord":
        return cls(hostname=hostname, addresses=(), cname=cname, error=COULD_NOT_RESOLVE)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "hostname": self.hostname,
            "addresses": list(self.addresses),
            "cname": self.cname,
            "error": self.error,
        }


@dataclass(frozen=True)
class ChainLink:
    subject: Optional[str]
    issuer: Optional[str]

    def to_dict(self) -> Dict[str, Any]:
        return {"subject": self.subject, "issuer": self.issuer}


@dataclass(frozen=True)
class CertificateInfo:
    """Leaf certificate metadata plus handshake facts.

    `chain` is ordered leaf to root and is None when the server presented
    nothing beyond the leaf itself.
    """

    subject: Optional[str]
    issuer: Optional[str]
    valid_from: datetime
    valid_to: datetime
    serial_number: str
    fingerprint: str
    fingerprint256: str
    tls_version: Optional[str]
    response_time_millis: int
    chain: Optional[Tuple[ChainLink, ...]] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "subject": self.subject,
            "issuer": self.issuer,
            "validFrom": _iso(self.valid_from),
            "validTo": _iso(self.valid_to),
            "serialNumber": self.serial_number,
            "fingerprint": self.fingerprint,
            "fingerprint256": self.fingerprint256,
            "tlsVersion": self.tls_version,
            "responseTimeMillis": self.response_time_millis,
            "chain": [link.to_dict() for link in self.chain] if self.chain else None,
        }


@dataclass(frozen=True)
class HstsStatus:
    enabled: bool = False
    value: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        if not self.enabled:
            return {"enabled": False}
        return {"enabled": True, "value": self.value}


@dataclass(frozen=True)
class DomainResult:
    """One inspected hostname. Health is derived on serialization, never stored."""

    hostname: str
    dns: DnsRecord
    certificate: Optional[CertificateInfo]
    hsts: HstsStatus

    def to_dict(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        return {
            "domain": self.hostname,
            "dns": self.dns.to_dict(),
            "certificate": self.certificate.to_dict() if self.certificate else None,
            "hsts": self.hsts.to_dict(),
            "health": classify(self.certificate, now).to_dict(),
        }


@dataclass
class InspectionRun:
    """Transient aggregate for one request; never persisted."""

    url: str
    hostnames: Tuple[str, ...] = ()
    results: List[DomainResult] = field(default_factory=list)
    checked: int = 0
    elapsed_seconds: Optional[float] = None

    def record(self, result: DomainResult) -> None:
        self.results.append(result)
        self.checked += 1

    def finish(self, elapsed_seconds: float, now: Optional[datetime] = None) -> None:
        """Reorder results for display once every hostname has been inspected."""
        by_name = sorted(self.results, key=lambda item: item.hostname)
        self.results = sort_results(by_name, now)
        self.elapsed_seconds = elapsed_seconds

    def to_dict(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        return {
            "url": self.url,
            "domains": [result.to_dict(now) for result in self.results],
        }
