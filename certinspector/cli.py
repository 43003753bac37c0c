from __future__ import annotations

"""Command-line interface for certinspector.

Translates CLI flags into `Settings` (CLI > environment/.env > defaults), then
either starts the HTTP server or runs a single inspection and renders it.
"""

import argparse
import json
import os
import re
import sys
from typing import List, Optional

from rich.progress import BarColumn, Progress, SpinnerColumn, TextColumn, TimeElapsedColumn

from .config import Settings, load_settings
from .core import (
    CollectorError,
    InspectionOrchestrator,
    InspectionRun,
    InvalidInputError,
    StaticCollector,
    _iterate_async_sync,
    _run_coro_sync,
    set_log_level,
    validate,
)
from .output import console, err_console, output, print_event, print_json
from .server import serve
from .version import __version__

EXIT_OK = 0
EXIT_RUN_FAILED = 1
EXIT_INVALID_INPUT = 2


def _parse_hosts(value: Optional[str]) -> List[str]:
    if not value:
        return []
    hosts: List[str] = []
    for part in re.split(r"[,\s]+", value):
        host = part.strip()
        if host and host not in hosts:
            hosts.append(host)
    return hosts


def _positive_float(value: str) -> float:
    try:
        number = float(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected a number, got {value!r}")
    if number <= 0:
        raise argparse.ArgumentTypeError(f"must be greater than 0, got {value}")
    return number


def _positive_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected an integer, got {value!r}")
    if number <= 0:
        raise argparse.ArgumentTypeError(f"must be greater than 0, got {value}")
    return number


def _resolve_target(url: Optional[str], hosts: List[str]) -> str:
    """Pick the run's target URL; with only --hosts the first host stands in."""
    if url:
        return validate(url)
    return validate(hosts[0])


def _run_with_rich_progress(orchestrator: InspectionOrchestrator, target: str, hosts: List[str]) -> InspectionRun:
    """Execute bulk inspection with a Rich progress bar bound to the progress callback."""
    with Progress(
        SpinnerColumn(),
        TextColumn("[bold cyan]{task.description}"),
        BarColumn(),
        TextColumn("{task.completed}/{task.total}"),
        TimeElapsedColumn(),
        console=console,
    ) as progress:
        task_id = progress.add_task("Inspecting domains", total=max(len(hosts), 1))

        def cb(done: int, total: int) -> None:
            progress.update(task_id, total=max(total, 1), completed=done)

        if hosts:
            return _run_coro_sync(orchestrator.inspect_hostnames(target, hosts, progress_callback=cb))
        progress.update(task_id, description="Loading page")
        return _run_coro_sync(orchestrator.run_bulk(target, progress_callback=cb))


def _stream(orchestrator: InspectionOrchestrator, target: str, as_json: bool) -> int:
    status = EXIT_OK
    for event in _iterate_async_sync(orchestrator.run_stream(target)):
        if "error" in event:
            status = EXIT_RUN_FAILED
        if as_json:
            print(json.dumps(event, ensure_ascii=False), flush=True)
        else:
            print_event(event)
    return status


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="certinspector",
        description=(
            f"certinspector v.{__version__} - TLS certificate, DNS and HSTS inspection "
            "of every domain a web page contacts.\n"
            "CLI options > environment (.env) > built-in defaults."
        ),
    )
    target_group = parser.add_argument_group("Target")
    target_group.add_argument("-u", "--url", help="Page to load; every domain it contacts is inspected.")
    target_group.add_argument(
        "--hosts",
        help="Comma-separated hostnames to inspect directly, without loading a page.",
    )

    mode_group = parser.add_argument_group("Modes")
    mode_group.add_argument("--serve", help="Run the HTTP server (/inspect, /inspect-stream).", action="store_true")
    mode_group.add_argument("--stream", help="Print progress events as they happen.", action="store_true")

    runtime_group = parser.add_argument_group("Runtime Overrides")
    runtime_group.add_argument("--host", help="Server bind address.", dest="host")
    runtime_group.add_argument("--port", help="Server port.", dest="port", type=int)
    runtime_group.add_argument(
        "--timeout", help="TLS and HSTS probe timeout in seconds.", dest="timeout", type=_positive_float
    )
    runtime_group.add_argument(
        "--workers", help="Concurrent hostname pipelines in bulk mode.", dest="workers", type=_positive_int
    )
    runtime_group.add_argument(
        "--verify-trust",
        help="Only report certificates that chain to the system trust store.",
        action="store_true",
    )

    output_group = parser.add_argument_group("Output")
    output_group.add_argument("--silent", help="Silent mode (hide progress).", action="store_true")
    output_group.add_argument("--json", help="JSON-only output (forces --silent).", action="store_true")
    output_group.add_argument("--debug", help="Debug logging.", action="store_true")
    return parser


def settings_from_args(args: argparse.Namespace, base: Optional[Settings] = None) -> Settings:
    base = base or load_settings()
    return base.merged(
        host=args.host,
        port=args.port,
        tls_timeout=args.timeout,
        hsts_timeout=args.timeout,
        workers=args.workers,
        verify_trust=True if args.verify_trust else None,
    )


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entrypoint. Returns the process exit code."""
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.json:
        args.silent = True

    settings = settings_from_args(args)
    set_log_level(settings.log_level, args.debug)

    if args.serve:
        serve(settings)
        return EXIT_OK

    hosts = _parse_hosts(args.hosts)
    if not args.url and not hosts:
        parser.print_help(sys.stderr)
        return EXIT_INVALID_INPUT

    try:
        target = _resolve_target(args.url, hosts)
    except InvalidInputError as exc:
        err_console.print(f"[red]Invalid target:[/red] {exc}")
        return EXIT_INVALID_INPUT

    collector = StaticCollector(hosts) if hosts else None
    orchestrator = InspectionOrchestrator(settings, collector=collector)

    if args.stream:
        return _stream(orchestrator, target, as_json=args.json)

    try:
        if args.silent:
            if hosts:
                run = _run_coro_sync(orchestrator.inspect_hostnames(target, hosts))
            else:
                run = _run_coro_sync(orchestrator.run_bulk(target))
        else:
            run = _run_with_rich_progress(orchestrator, target, hosts)
    except CollectorError as exc:
        err_console.print(f"[red]Could not load page:[/red] {exc}")
        return EXIT_RUN_FAILED

    if args.json:
        print_json(run.to_dict())
    else:
        output(run)
    return EXIT_OK


if __name__ == "__main__":
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        err_console.print("\n[yellow]Interrupted[/yellow]")
        try:
            sys.exit(0)
        except SystemExit:
            os._exit(0)
