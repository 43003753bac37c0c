from __future__ import annotations

"""HTTP surface: one bulk endpoint and one event-stream endpoint.

Views are synchronous Flask handlers; each request gets its own event loop
through the runtime's sync bridges, so no state is shared between runs.
"""

import json
from typing import Any, Dict, Iterator, Optional

from flask import Flask, Response, current_app, jsonify, request

from .config import Settings, load_settings
from .core import (
    CollectorError,
    ForbiddenTargetError,
    InspectionOrchestrator,
    InvalidInputError,
    _iterate_async_sync,
    _run_coro_sync,
    logger,
    set_log_level,
    validate,
)
from .version import __version__


def sse_frame(event: Dict[str, Any]) -> str:
    return f"data: {json.dumps(event, ensure_ascii=False)}\n\n"


def create_app(settings: Optional[Settings] = None, orchestrator: Optional[InspectionOrchestrator] = None) -> Flask:
    settings = settings or load_settings()
    set_log_level(settings.log_level)
    app = Flask(__name__)
    app.json.sort_keys = False
    app.config["INSPECTOR_SETTINGS"] = settings
    app.config["INSPECTOR_ORCHESTRATOR"] = orchestrator or InspectionOrchestrator(settings)

    @app.errorhandler(ForbiddenTargetError)
    def forbidden_target(exc: ForbiddenTargetError):
        logger.info("Rejected target: %s", exc)
        return jsonify({"error": str(exc)}), 403

    @app.errorhandler(InvalidInputError)
    def invalid_input(exc: InvalidInputError):
        return jsonify({"error": str(exc)}), 400

    @app.route("/health")
    def health():
        return jsonify({"status": "ok", "version": __version__})

    @app.route("/inspect")
    def inspect():
        target = validate(request.args.get("url"))
        orchestrator = current_app.config["INSPECTOR_ORCHESTRATOR"]
        try:
            run = _run_coro_sync(orchestrator.run_bulk(target))
        except CollectorError as exc:
            return jsonify({"error": str(exc)}), 502
        return jsonify(run.to_dict())

    @app.route("/inspect-stream")
    def inspect_stream():
        target = validate(request.args.get("url"))
        orchestrator = current_app.config["INSPECTOR_ORCHESTRATOR"]

        def generate() -> Iterator[str]:
            for event in _iterate_async_sync(orchestrator.run_stream(target)):
                yield sse_frame(event)

        response = Response(generate(), mimetype="text/event-stream")
        response.headers["Cache-Control"] = "no-cache"
        response.headers["X-Accel-Buffering"] = "no"
        return response

    return app


def serve(settings: Settings) -> None:
    """Run the development server; each request is handled on its own thread."""
    app = create_app(settings)
    logger.info("Certificate inspector running at http://%s:%s", settings.host, settings.port)
    logger.info("Usage: http://%s:%s/inspect?url=https://example.com", settings.host, settings.port)
    app.run(host=settings.host, port=settings.port, debug=False, threaded=True)
