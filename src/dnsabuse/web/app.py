"""Flask application factory for the status web UI.

``create_app`` wraps an already booted ``Application`` and returns a
Flask app with four endpoints:

- ``GET /api/services`` — one object per registered service.
- ``GET /api/help`` — the help records as lists of strings.
- ``POST /api/snapshot`` — queue a SNAPSHOT control message (202).
- ``GET /api/logs`` — buffered log entries, filtered by ``level`` and
  ``source`` query parameters.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from flask import Flask, Response, jsonify, request

from dnsabuse.logging import LogLevel
from dnsabuse.snapshot import ControlMessage

if TYPE_CHECKING:
    from dnsabuse.app import Application

_HTTP_ACCEPTED = 202
_HTTP_BAD_REQUEST = 400


def create_app(application: Application) -> Flask:
    """Create the Flask application for *application*.

    Args:
        application: A booted application.

    Returns:
        A configured Flask application ready to serve.

    """
    app = Flask(__name__)

    @app.route("/api/services")
    def services() -> Response:  # pyright: ignore[reportUnusedFunction]
        """Return the registered services."""
        return jsonify(
            [
                {
                    "name": entry.name,
                    "zone": entry.zone_label,
                    "snapshot_enabled": entry.snapshot_enabled,
                    "snapshot_file": str(entry.snapshot_path) if entry.snapshot_path else None,
                    "supports_snapshot": entry.instance.supports_snapshot,
                }
                for entry in application.registry.entries()
            ]
        )

    @app.route("/api/help")
    def help_records() -> Response:  # pyright: ignore[reportUnusedFunction]
        """Return the help record texts."""
        return jsonify(application.help.texts())

    @app.route("/api/snapshot", methods=["POST"])
    def snapshot() -> tuple[Response, int]:  # pyright: ignore[reportUnusedFunction]
        """Queue a snapshot of every snapshot-enabled service."""
        application.snapshots.request(ControlMessage.SNAPSHOT)
        application.logger.info("snapshot requested over http", source="server")
        return jsonify({"queued": str(ControlMessage.SNAPSHOT)}), _HTTP_ACCEPTED

    @app.route("/api/logs")
    def logs() -> tuple[Response, int] | Response:  # pyright: ignore[reportUnusedFunction]
        """Return buffered log entries.

        Query parameters ``level`` (minimum level name) and ``source``
        narrow the result.
        """
        level_name = request.args.get("level")
        min_level = None
        if level_name is not None:
            try:
                min_level = LogLevel[level_name.upper()]
            except KeyError:
                return jsonify({"error": f"Unknown level '{level_name}'"}), _HTTP_BAD_REQUEST
        entries = application.logger.filter(min_level=min_level, source=request.args.get("source"))
        return jsonify(
            [
                {
                    "level": e.level.name,
                    "source": e.source,
                    "message": e.message,
                    "client": e.client,
                }
                for e in entries
            ]
        )

    return app
