from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from certinspector.engine.health import HealthStatus, classify, days_until, sort_results, summarize
from certinspector.engine.models import CertificateInfo, DnsRecord, DomainResult, HstsStatus

NOW = datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


def _cert(valid_to: datetime, valid_from: datetime | None = None) -> CertificateInfo:
    return CertificateInfo(
        subject="example.com",
        issuer="Test CA",
        valid_from=valid_from or NOW - timedelta(days=60),
        valid_to=valid_to,
        serial_number="0A1B",
        fingerprint="AA:BB",
        fingerprint256="CC:DD",
        tls_version="TLSv1.3",
        response_time_millis=12,
    )


def _result(hostname: str, certificate: CertificateInfo | None) -> DomainResult:
    return DomainResult(
        hostname=hostname,
        dns=DnsRecord(hostname=hostname, addresses=("203.0.113.10",)),
        certificate=certificate,
        hsts=HstsStatus(enabled=False),
    )


def test_absent_certificate_is_no_certificate():
    verdict = classify(None, NOW)
    assert verdict.status is HealthStatus.NO_CERTIFICATE
    assert verdict.days_until_expiry is None
    assert verdict.message == "No HTTPS"
    assert verdict.event_type == "info"
    assert verdict.css_class == "none"


@pytest.mark.parametrize(
    "days, status, message",
    [
        (7, HealthStatus.CRITICAL, "Expires in 7 days!"),
        (8, HealthStatus.WARNING, "Expires in 8 days"),
        (30, HealthStatus.WARNING, "Expires in 30 days"),
        (31, HealthStatus.HEALTHY, "Valid for 31 days"),
    ],
)
def test_expiry_window_boundaries(days, status, message):
    verdict = classify(_cert(NOW + timedelta(days=days)), NOW)
    assert verdict.status is status
    assert verdict.days_until_expiry == days
    assert verdict.message == message


def test_days_are_floored():
    verdict = classify(_cert(NOW + timedelta(days=7, hours=23)), NOW)
    assert verdict.days_until_expiry == 7
    assert verdict.status is HealthStatus.CRITICAL


def test_expired_certificate_has_negative_days():
    verdict = classify(_cert(NOW - timedelta(hours=1)), NOW)
    assert verdict.status is HealthStatus.EXPIRED
    assert verdict.message == "EXPIRED"
    assert verdict.days_until_expiry == -1
    assert verdict.event_type == "error"


def test_not_yet_valid_still_reports_days():
    cert = _cert(NOW + timedelta(days=100), valid_from=NOW + timedelta(days=1))
    verdict = classify(cert, NOW)
    assert verdict.status is HealthStatus.NOT_YET_VALID
    assert verdict.days_until_expiry == 100


def test_expiring_right_now_is_critical_not_expired():
    verdict = classify(_cert(NOW), NOW)
    assert verdict.status is HealthStatus.CRITICAL
    assert verdict.days_until_expiry == 0


def test_naive_datetimes_are_treated_as_utc():
    naive_now = NOW.replace(tzinfo=None)
    assert days_until(NOW + timedelta(days=3), naive_now) == 3
    assert classify(_cert(NOW + timedelta(days=45)), naive_now).status is HealthStatus.HEALTHY


def test_classify_is_idempotent_and_consistent_with_floor():
    for offset_hours in (-49, -1, 0, 1, 167, 168, 169, 24 * 30, 24 * 31 + 5):
        cert = _cert(NOW + timedelta(hours=offset_hours))
        first = classify(cert, NOW)
        assert classify(cert, NOW) == first
        assert first.days_until_expiry == (offset_hours * 3600) // 86400


def test_severity_sort_puts_problems_first():
    results = [
        _result("healthy.example", _cert(NOW + timedelta(days=200))),
        _result("expired.example", _cert(NOW - timedelta(days=3))),
        _result("plain.example", None),
        _result("warning.example", _cert(NOW + timedelta(days=20))),
    ]
    ordered = sort_results(results, NOW)
    assert [item.hostname for item in ordered] == [
        "expired.example",
        "warning.example",
        "healthy.example",
        "plain.example",
    ]


def test_severity_sort_is_stable_within_a_rank():
    results = [
        _result("a.example", _cert(NOW + timedelta(days=2))),
        _result("b.example", _cert(NOW - timedelta(days=2))),
        _result("c.example", _cert(NOW + timedelta(days=10), valid_from=NOW + timedelta(days=1))),
    ]
    ordered = sort_results(results, NOW)
    assert [item.hostname for item in ordered] == ["a.example", "b.example", "c.example"]


def test_summarize_counts_by_display_class():
    results = [
        _result("a.example", _cert(NOW + timedelta(days=200))),
        _result("b.example", _cert(NOW - timedelta(days=1))),
        _result("c.example", _cert(NOW + timedelta(days=3))),
        _result("d.example", _cert(NOW + timedelta(days=15))),
        _result("e.example", None),
    ]
    assert summarize(results, NOW) == {"total": 5, "ok": 1, "warning": 1, "error": 2, "none": 1}


def test_domain_result_serializes_health_on_demand():
    payload = _result("a.example", _cert(NOW + timedelta(days=20))).to_dict(NOW)
    assert payload["domain"] == "a.example"
    assert payload["health"] == {
        "status": "warning",
        "class": "warning",
        "message": "Expires in 20 days",
        "daysUntilExpiry": 20,
    }
    assert payload["certificate"]["validTo"] == (NOW + timedelta(days=20)).isoformat()
    assert payload["certificate"]["chain"] is None
    assert payload["hsts"] == {"enabled": False}
