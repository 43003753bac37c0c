from __future__ import annotations

"""Terminal rendering helpers for certinspector.

Presentation-only: nothing here performs network activity.
"""

import json
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from rich import box
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from .core import CertificateInfo, DnsRecord, HealthVerdict, HstsStatus, InspectionRun, classify, summarize

console = Console()
err_console = Console(stderr=True)

STATUS_STYLE = {"ok": "green", "warning": "yellow", "error": "red", "none": "bright_black"}
EVENT_STYLE = {"success": "green", "warn": "yellow", "error": "red", "info": "white", "domain": "cyan"}


def fmt_elapsed(seconds: Optional[float]) -> str:
    if seconds is None:
        return "-"
    total_seconds = int(seconds)
    hours, rem = divmod(total_seconds, 3600)
    minutes, secs = divmod(rem, 60)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"


def _status_label(verdict: HealthVerdict) -> str:
    style = STATUS_STYLE.get(verdict.css_class, "white")
    return f"[{style}]{verdict.status.value}[/{style}]"


def _days_label(verdict: HealthVerdict) -> str:
    if verdict.days_until_expiry is None:
        return "-"
    style = STATUS_STYLE.get(verdict.css_class, "white")
    return f"[{style}]{verdict.days_until_expiry}[/{style}]"


def _dns_label(record: DnsRecord) -> str:
    if record.addresses:
        text = ", ".join(record.addresses)
    else:
        text = f"[red]{escape(record.error or 'N/A')}[/red]"
    if record.cname:
        text += f"\nCNAME: {escape(record.cname)}"
    return text


def _tls_label(certificate: Optional[CertificateInfo]) -> str:
    if certificate is None or not certificate.tls_version:
        return "-"
    if certificate.tls_version in ("TLSv1", "TLSv1.1", "SSLv3"):
        return f"[red]{certificate.tls_version}[/red]"
    return certificate.tls_version


def _hsts_label(hsts: HstsStatus) -> str:
    return "[green]yes[/green]" if hsts.enabled else "[yellow]no[/yellow]"


def output(run: InspectionRun, now: Optional[datetime] = None) -> None:
    now = now or datetime.now(timezone.utc)
    table = Table(
        title=f"Certificate inspection: {escape(run.url)}",
        box=box.SIMPLE,
        title_justify="left",
        header_style="bold cyan",
    )
    table.add_column("Status", no_wrap=True)
    table.add_column("Domain", overflow="fold")
    table.add_column("Days", justify="right", no_wrap=True)
    table.add_column("DNS", overflow="fold")
    table.add_column("Issuer", overflow="fold")
    table.add_column("TLS", no_wrap=True)
    table.add_column("HSTS", no_wrap=True)
    table.add_column("Message", overflow="fold")

    for result in run.results:
        verdict = classify(result.certificate, now)
        issuer = result.certificate.issuer if result.certificate else None
        table.add_row(
            _status_label(verdict),
            escape(result.hostname),
            _days_label(verdict),
            _dns_label(result.dns),
            escape(issuer or "-"),
            _tls_label(result.certificate),
            _hsts_label(result.hsts),
            escape(verdict.message),
        )
    console.print(table)

    summary = summarize(run.results, now)
    console.print(
        f"Total: {summary['total']}  "
        f"[green]OK: {summary['ok']}[/green]  "
        f"[yellow]Warning: {summary['warning']}[/yellow]  "
        f"[red]Error: {summary['error']}[/red]  "
        f"No HTTPS: {summary['none']}  "
        f"Elapsed: {fmt_elapsed(run.elapsed_seconds)}"
    )


def event_markup(event: Dict[str, Any]) -> str:
    if "error" in event:
        return f"[red]Error: {escape(str(event['error']))}[/red]"
    if "phase" in event and "log" not in event:
        return f"[bold cyan]{escape(str(event['phase']))}[/bold cyan]"
    style = EVENT_STYLE.get(str(event.get("type") or "info"), "white")
    text = escape(str(event.get("log") or event.get("phase") or ""))
    if "checked" in event:
        text = f"[{event['checked']}] {text}"
    return f"[{style}]{text}[/{style}]"


def print_event(event: Dict[str, Any]) -> None:
    console.print(event_markup(event))


def print_json(payload: Any) -> None:
    print(json.dumps(payload, indent=2, ensure_ascii=False))
