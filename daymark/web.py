#!/usr/bin/env python3
"""Snapshot server for DayMark.

This module provides the HTTP API that stores one whole-dataset snapshot
per remote id. Clients push and pull complete snapshots; the server does
no merging.

Endpoints:
    GET  /api/snapshots/<id>     Get a snapshot
    PUT  /api/snapshots/<id>     Replace an existing snapshot
    POST /api/snapshots          Create a snapshot under a new server-chosen id
    POST /api/snapshots/<id>     Create a snapshot under a given id
    GET  /api/health             Health check

All endpoints return JSON responses.
Generated ids are UUID7 hex strings (32 characters, no hyphens).

Snapshot body (camelCase):
    - events: List of events (id, title, date, startTime, endTime,
      description, isImportant, color, icon, createdAt)
    - notes: List of daily notes (date, content, updatedAt)
    - updatedAt: Epoch milliseconds of the write that produced it
"""

from __future__ import annotations

import argparse
import functools
import logging
from pathlib import Path
from typing import Any, Callable, Optional, Tuple

from flask import Blueprint, Flask, Response, jsonify, request
from flask_cors import CORS
from uuid6 import uuid7

from daymark.core.config import Config
from daymark.core.identity import InvalidToken, normalize_token
from daymark.core.models import Snapshot
from daymark.core.snapshot_store import SnapshotExists, SnapshotStore
from daymark.core.validation import ValidationError

logger = logging.getLogger(__name__)

DEFAULT_PORT = 8385


def api_endpoint(func: Callable) -> Callable:
    """Decorator for consistent API error handling.

    Catches ValidationError and InvalidToken (400) and Exception (500)
    with proper JSON error responses and logging.
    """
    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return func(*args, **kwargs)
        except ValidationError as e:
            logger.warning(f"Validation error: {e.field} - {e.message}")
            return jsonify({"error": f"Invalid {e.field}: {e.message}"}), 400
        except InvalidToken as e:
            return jsonify({"error": str(e)}), 400
        except Exception as e:
            logger.error(f"Error in {func.__name__}: {e}")
            return jsonify({"error": str(e)}), 500
    return wrapper


def _read_snapshot_body() -> Snapshot:
    data = request.get_json(silent=True)
    if data is None:
        raise ValidationError("body", "JSON request body is required")
    return Snapshot.from_dict(data)


def create_snapshot_blueprint(store: SnapshotStore) -> Blueprint:
    """Create Flask blueprint for snapshot endpoints.

    Args:
        store: Snapshot storage shared by all requests

    Returns:
        Flask Blueprint with snapshot routes
    """
    snapshots_bp = Blueprint("snapshots", __name__, url_prefix="/api/snapshots")

    @snapshots_bp.route("/<remote_id>", methods=["GET"])
    @api_endpoint
    def get_snapshot(remote_id: str) -> Tuple[Response, int]:
        """Get a snapshot by id."""
        remote_id = normalize_token(remote_id)
        body = store.get(remote_id)
        if body is None:
            return jsonify({"error": f"Snapshot {remote_id} not found"}), 404
        return jsonify(body), 200

    @snapshots_bp.route("/<remote_id>", methods=["PUT"])
    @api_endpoint
    def replace_snapshot(remote_id: str) -> Tuple[Response, int]:
        """Replace an existing snapshot with the request body."""
        remote_id = normalize_token(remote_id)
        snapshot = _read_snapshot_body()
        if not store.replace(remote_id, snapshot):
            return jsonify({"error": f"Snapshot {remote_id} not found"}), 404
        logger.info(
            f"Replaced snapshot {remote_id} via API "
            f"({len(snapshot.events)} events, {len(snapshot.notes)} notes)"
        )
        return jsonify({"id": remote_id, "updatedAt": snapshot.updated_at}), 200

    @snapshots_bp.route("", methods=["POST"])
    @api_endpoint
    def create_snapshot() -> Tuple[Response, int]:
        """Create a snapshot under a new id."""
        snapshot = _read_snapshot_body()
        remote_id = uuid7().hex
        store.create(remote_id, snapshot)
        return jsonify({"id": remote_id}), 201

    @snapshots_bp.route("/<remote_id>", methods=["POST"])
    @api_endpoint
    def create_snapshot_with_id(remote_id: str) -> Tuple[Response, int]:
        """Create a snapshot under a client-chosen id."""
        remote_id = normalize_token(remote_id)
        snapshot = _read_snapshot_body()
        try:
            store.create(remote_id, snapshot)
        except SnapshotExists:
            return jsonify({"error": f"Snapshot {remote_id} already exists"}), 409
        return jsonify({"id": remote_id}), 201

    return snapshots_bp


def create_app(
    config_dir: Optional[Path] = None,
    store: Optional[SnapshotStore] = None,
) -> Flask:
    """Create and configure Flask application.

    Args:
        config_dir: Custom configuration directory (default: None)
        store: Snapshot store to serve (default: the one configured in config_dir)

    Returns:
        Configured Flask application
    """
    app = Flask(__name__)
    CORS(app)  # Enable CORS for all routes

    if store is None:
        config = Config(config_dir=config_dir)
        store = SnapshotStore(config.get_snapshot_database_file())
    app.extensions["daymark_snapshots"] = store

    logger.info(f"Snapshot API initialized with store: {store.db_path}")

    # Error handlers
    @app.errorhandler(404)
    def not_found(error: Any) -> Tuple[Response, int]:
        """Handle 404 errors."""
        return jsonify({"error": "Not found"}), 404

    @app.errorhandler(405)
    def method_not_allowed(error: Any) -> Tuple[Response, int]:
        return jsonify({"error": "Method not allowed"}), 405

    @app.errorhandler(500)
    def internal_error(error: Any) -> Tuple[Response, int]:
        """Handle 500 errors."""
        logger.error(f"Internal error: {error}")
        return jsonify({"error": "Internal server error"}), 500

    app.register_blueprint(create_snapshot_blueprint(store))

    @app.route("/api/health", methods=["GET"])
    def health_check() -> Tuple[Response, int]:
        """Health check endpoint.

        Returns:
            JSON response indicating service health
        """
        return jsonify({"status": "ok", "snapshots": store.count()}), 200

    return app


def add_web_subparser(subparsers: argparse._SubParsersAction[argparse.ArgumentParser]) -> None:
    """Add web subparser and its arguments.

    Args:
        subparsers: Parent subparsers object to add web parser to
    """
    web_parser = subparsers.add_parser(
        "web",
        help="Start the snapshot server",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    web_parser.add_argument(
        "--host",
        type=str,
        default="127.0.0.1",
        help="Host to bind to (default: 127.0.0.1)"
    )

    web_parser.add_argument(
        "--port",
        type=int,
        default=DEFAULT_PORT,
        help=f"Port to bind to (default: {DEFAULT_PORT})"
    )

    web_parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug mode"
    )


def run(config_dir: Optional[Path], args: argparse.Namespace) -> int:
    """Run snapshot server with given arguments.

    Args:
        config_dir: Custom configuration directory or None for default
        args: Parsed command-line arguments (should have host, port, debug attributes)

    Returns:
        Exit code (0 for success)
    """
    logger.info("Starting DayMark snapshot server")
    if config_dir:
        logger.info(f"Using custom config directory: {config_dir}")

    app = create_app(config_dir=config_dir)

    app.run(
        host=args.host,
        port=args.port,
        debug=args.debug
    )

    return 0
