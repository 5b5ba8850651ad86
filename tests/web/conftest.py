"""Pytest fixtures for snapshot server tests.

Provides a Flask test client bound to a temporary snapshot store.
"""

from __future__ import annotations

import pytest
from flask import Flask
from flask.testing import FlaskClient


@pytest.fixture
def client(server_app: Flask) -> FlaskClient:
    """Create Flask test client.

    Args:
        server_app: Flask application

    Returns:
        Flask test client for making requests
    """
    return server_app.test_client()
