"""Pytest configuration and shared fixtures."""

import pytest

from src.core import db_client
from src.core.member_lock import clear_member_locks


@pytest.fixture(autouse=True)
def reset_process_state():
    """Drop cached PocketBase client and member locks between tests."""
    db_client.reset_client()
    clear_member_locks()
    yield
    clear_member_locks()
