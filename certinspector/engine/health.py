from __future__ import annotations

"""Certificate health classification and display ordering.

`classify` is pure: the same certificate and instant always produce the same
verdict. Verdicts are recomputed on demand because "now" keeps moving.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Optional

if TYPE_CHECKING:
    from .models import CertificateInfo, DomainResult

CRITICAL_DAYS = 7
WARNING_DAYS = 30
ONE_DAY = timedelta(days=1)


class HealthStatus(str, Enum):
    NO_CERTIFICATE = "none"
    NOT_YET_VALID = "not_yet_valid"
    EXPIRED = "expired"
    CRITICAL = "critical"
    WARNING = "warning"
    HEALTHY = "ok"


# Problems first, informational "no HTTPS" entries last.
SEVERITY_RANK: Dict[HealthStatus, int] = {
    HealthStatus.EXPIRED: 0,
    HealthStatus.NOT_YET_VALID: 0,
    HealthStatus.CRITICAL: 0,
    HealthStatus.WARNING: 1,
    HealthStatus.HEALTHY: 2,
    HealthStatus.NO_CERTIFICATE: 3,
}

_CSS_CLASS = {
    HealthStatus.HEALTHY: "ok",
    HealthStatus.WARNING: "warning",
    HealthStatus.NO_CERTIFICATE: "none",
}

_EVENT_TYPE = {
    HealthStatus.HEALTHY: "success",
    HealthStatus.WARNING: "warn",
    HealthStatus.NO_CERTIFICATE: "info",
}


@dataclass(frozen=True)
class HealthVerdict:
    status: HealthStatus
    message: str
    days_until_expiry: Optional[int] = None

    @property
    def css_class(self) -> str:
        return _CSS_CLASS.get(self.status, "error")

    @property
    def event_type(self) -> str:
        """Severity tag used to colour streaming progress lines."""
        return _EVENT_TYPE.get(self.status, "error")

    @property
    def rank(self) -> int:
        return SEVERITY_RANK[self.status]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "class": self.css_class,
            "message": self.message,
            "daysUntilExpiry": self.days_until_expiry,
        }


def _utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def days_until(valid_to: datetime, now: datetime) -> int:
    """Whole days left, floored, so an expired certificate goes negative."""
    return (_utc(valid_to) - _utc(now)) // ONE_DAY


def classify(certificate: Optional["CertificateInfo"], now: Optional[datetime] = None) -> HealthVerdict:
    if certificate is None:
        return HealthVerdict(HealthStatus.NO_CERTIFICATE, "No HTTPS", None)

    now = _utc(now or datetime.now(timezone.utc))
    days = days_until(certificate.valid_to, now)
    if now < _utc(certificate.valid_from):
        return HealthVerdict(HealthStatus.NOT_YET_VALID, "Not yet valid", days)
    if now > _utc(certificate.valid_to):
        return HealthVerdict(HealthStatus.EXPIRED, "EXPIRED", days)
    if days <= CRITICAL_DAYS:
        return HealthVerdict(HealthStatus.CRITICAL, f"Expires in {days} days!", days)
    if days <= WARNING_DAYS:
        return HealthVerdict(HealthStatus.WARNING, f"Expires in {days} days", days)
    return HealthVerdict(HealthStatus.HEALTHY, f"Valid for {days} days", days)


def severity_rank(certificate: Optional["CertificateInfo"], now: Optional[datetime] = None) -> int:
    return classify(certificate, now).rank


def sort_results(results: Iterable["DomainResult"], now: Optional[datetime] = None) -> List["DomainResult"]:
    """Stable severity sort; equal verdicts keep their incoming order."""
    now = now or datetime.now(timezone.utc)
    return sorted(results, key=lambda item: severity_rank(item.certificate, now))


def summarize(results: Iterable["DomainResult"], now: Optional[datetime] = None) -> Dict[str, int]:
    now = now or datetime.now(timezone.utc)
    summary = {"total": 0, "ok": 0, "warning": 0, "error": 0, "none": 0}
    for item in results:
        summary["total"] += 1
        summary[classify(item.certificate, now).css_class] += 1
    return summary
