"""Test helper functions for DayMark tests.

This module provides sample data and an httpx transport that routes the
async sync client onto a Flask test client, so that client, engine and
server run together in one process without sockets.
"""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, Dict, List, Tuple, TypeVar

import httpx
from flask import Flask

from daymark.core.models import Event

T = TypeVar("T")

TEST_SERVER_URL = "http://snapshots.test"

SAMPLE_EVENTS: List[Event] = [
    Event(id="e1", title="Lunch", date="2025-01-15", start_time="12:00", end_time="13:00",
          created_at=1736942400000),
    Event(id="e2", title="Standup", date="2025-01-15", start_time="09:00", is_important=True,
          created_at=1736931600000),
    Event(id="e3", title="Dentist", date="2025-01-16", description="Bring insurance card",
          created_at=1737014400000),
    Event(id="e4", title="Birthday", date="2025-02-01", is_important=True, color="#ff8800",
          icon="cake", created_at=1738368000000),
]

SAMPLE_NOTES: List[Tuple[str, str]] = [
    ("2025-01-15", "Busy day."),
    ("2025-01-16", ""),
    ("2025-02-01", "Cake!"),
]


def flask_transport(app: Flask) -> httpx.MockTransport:
    """Route httpx requests to a Flask app's test client."""
    test_client = app.test_client()

    def handler(request: httpx.Request) -> httpx.Response:
        response = test_client.open(
            request.url.raw_path.decode("ascii"),
            method=request.method,
            data=request.content,
            headers={"Content-Type": request.headers.get("content-type", "application/json")},
        )
        return httpx.Response(
            response.status_code,
            content=response.get_data(),
            headers={"Content-Type": response.content_type},
        )

    return httpx.MockTransport(handler)


def unreachable_transport() -> httpx.MockTransport:
    """Transport that fails every request like an unreachable host."""

    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("Connection refused", request=request)

    return httpx.MockTransport(handler)


def recording_transport(
    responses: Dict[Tuple[str, str], Tuple[int, Any]],
) -> Tuple[httpx.MockTransport, List[httpx.Request]]:
    """Transport answering from a (method, path) table and recording requests.

    Unknown routes answer 404.
    """
    seen: List[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        status, body = responses.get((request.method, request.url.path), (404, {"error": "Not found"}))
        if isinstance(body, (bytes, str)):
            return httpx.Response(status, content=body)
        return httpx.Response(status, json=body)

    return httpx.MockTransport(handler), seen


def run(coro_fn: Callable[[], Awaitable[T]]) -> T:
    """Run an async test body to completion."""
    return asyncio.run(coro_fn())
