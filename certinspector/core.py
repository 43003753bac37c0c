from __future__ import annotations

"""Compatibility facade for the certinspector engine.

Public imports remain stable while implementation is split by concern under
`certinspector.engine`:
- `validator`: target normalization and forbidden-host filtering
- `dns_probe`, `tls_probe`, `hsts_probe`: per-hostname probes
- `health`: certificate health verdicts and display ordering
- `runtime`: orchestration and sync bridges
"""

from .engine.collector import BrowserCollector, StaticCollector
from .engine.errors import CollectorError, ForbiddenTargetError, InvalidInputError
from .engine.health import HealthStatus, HealthVerdict, classify, sort_results, summarize
from .engine.models import CertificateInfo, ChainLink, DnsRecord, DomainResult, HstsStatus, InspectionRun
from .engine.runtime import (
    INSPECT,
    InspectionOrchestrator,
    _iterate_async_sync,
    _run_coro_sync,
    inspect_domain,
    logger,
    set_log_level,
)
from .engine.validator import is_forbidden_host, validate

__all__ = [
    "INSPECT",
    "BrowserCollector",
    "StaticCollector",
    "CollectorError",
    "ForbiddenTargetError",
    "InvalidInputError",
    "HealthStatus",
    "HealthVerdict",
    "classify",
    "sort_results",
    "summarize",
    "CertificateInfo",
    "ChainLink",
    "DnsRecord",
    "DomainResult",
    "HstsStatus",
    "InspectionRun",
    "InspectionOrchestrator",
    "inspect_domain",
    "is_forbidden_host",
    "validate",
    "logger",
    "set_log_level",
    "_iterate_async_sync",
    "_run_coro_sync",
]
