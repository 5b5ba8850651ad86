"""Sync client for DayMark remote snapshots.

This module provides the transport layer to the remote snapshot store.
Each profile owns a single JSON resource identified by its remote id:

- fetch_snapshot: GET the whole snapshot
- replace_snapshot: PUT the whole snapshot
- create_snapshot: POST a new snapshot resource

Any network error, timeout, non-2xx response or malformed body is raised as
SyncTransportError. A missing resource (404) is raised as RemoteNotFound,
which callers treat as a recoverable condition.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx

from .models import Snapshot
from .validation import ValidationError

logger = logging.getLogger(__name__)

__all__ = ["RemoteNotFound", "SyncClient", "SyncTransportError", "SNAPSHOTS_PATH"]

SNAPSHOTS_PATH = "/api/snapshots"


class SyncTransportError(Exception):
    """Network, HTTP or parse failure while talking to the remote store."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        self.status_code = status_code
        super().__init__(message)


class RemoteNotFound(Exception):
    """The remote snapshot does not exist (yet)."""

    def __init__(self, remote_id: Optional[str]) -> None:
        self.remote_id = remote_id
        super().__init__(f"Remote snapshot not found: {remote_id}")


class SyncClient:
    """Async HTTP client for the remote snapshot API."""

    def __init__(
        self,
        server_url: str,
        timeout: float = 5.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """Initialize sync client.

        Args:
            server_url: Base URL of the snapshot server
            timeout: Per-request timeout in seconds
            transport: Optional httpx transport (used to route requests
                in-process, e.g. onto a Flask test client)
        """
        self.server_url = server_url.rstrip("/")
        self.timeout = httpx.Timeout(timeout)
        self._transport = transport

    def _snapshot_path(self, remote_id: str) -> str:
        return f"{SNAPSHOTS_PATH}/{remote_id}"

    async def _make_request(
        self,
        method: str,
        path: str,
        data: Optional[Dict[str, Any]] = None,
        remote_id: Optional[str] = None,
    ) -> httpx.Response:
        """Make an HTTP request to the snapshot server.

        Args:
            method: HTTP method
            path: Path below server_url
            data: JSON body to send
            remote_id: Snapshot id the request is about (for RemoteNotFound)

        Returns:
            The 2xx response

        Raises:
            RemoteNotFound: On 404
            SyncTransportError: On any other failure
        """
        url = f"{self.server_url}{path}"
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.request(method, url, json=data)
        except httpx.TimeoutException as e:
            logger.error(f"Request to {url} timed out")
            raise SyncTransportError(f"Request to {url} timed out") from e
        except httpx.HTTPError as e:
            error_msg = f"Connection failed to {url}: {e or e.__class__.__name__}"
            logger.error(error_msg)
            raise SyncTransportError(error_msg) from e

        if response.status_code == 404:
            raise RemoteNotFound(remote_id)

        if not response.is_success:
            try:
                error_msg = response.json().get("error", f"HTTP {response.status_code}")
            except (ValueError, AttributeError):
                error_msg = f"HTTP {response.status_code}: {response.text[:200]}"
            logger.error(f"Request to {url} failed: {error_msg}")
            raise SyncTransportError(f"Server error: {error_msg}", response.status_code)

        return response

    @staticmethod
    def _parse_json(response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise SyncTransportError(f"Malformed JSON from {response.url}: {e}") from e

    async def fetch_snapshot(self, remote_id: str) -> Snapshot:
        """Fetch the whole remote snapshot.

        Raises:
            RemoteNotFound: If the resource does not exist
            SyncTransportError: On network, HTTP or parse failure
        """
        response = await self._make_request(
            "GET", self._snapshot_path(remote_id), remote_id=remote_id
        )
        try:
            snapshot = Snapshot.from_dict(self._parse_json(response))
        except ValidationError as e:
            raise SyncTransportError(f"Malformed snapshot {remote_id}: {e}") from e
        logger.debug(
            f"Fetched snapshot {remote_id}: {len(snapshot.events)} events, "
            f"{len(snapshot.notes)} notes, updatedAt={snapshot.updated_at}"
        )
        return snapshot

    async def replace_snapshot(self, remote_id: str, snapshot: Snapshot) -> None:
        """Overwrite the remote snapshot.

        Raises:
            RemoteNotFound: If the resource does not exist
            SyncTransportError: On network or HTTP failure
        """
        await self._make_request(
            "PUT", self._snapshot_path(remote_id), data=snapshot.to_dict(), remote_id=remote_id
        )

    async def create_snapshot(self, snapshot: Snapshot, remote_id: Optional[str] = None) -> str:
        """Create a new remote snapshot resource.

        Args:
            snapshot: Initial content
            remote_id: Id to create the resource under; the server picks
                one when None

        Returns:
            The remote id of the created resource

        Raises:
            SyncTransportError: On failure, including when the id is taken
        """
        path = self._snapshot_path(remote_id) if remote_id else SNAPSHOTS_PATH
        response = await self._make_request(
            "POST", path, data=snapshot.to_dict(), remote_id=remote_id
        )
        body = self._parse_json(response)
        created_id = body.get("id") if isinstance(body, dict) else None
        if not created_id:
            raise SyncTransportError("Create response did not include an id")
        logger.info(f"Created remote snapshot {created_id}")
        return created_id

    async def check_status(self) -> Dict[str, Any]:
        """Check if the snapshot server is reachable.

        Returns:
            Dict with a 'reachable' flag and either server info or an error
        """
        try:
            response = await self._make_request("GET", "/api/health")
            body = self._parse_json(response)
            return {"reachable": True, **(body if isinstance(body, dict) else {})}
        except (SyncTransportError, RemoteNotFound) as e:
            return {"reachable": False, "error": str(e)}
