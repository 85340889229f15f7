"""Pytest configuration and shared fixtures."""

from __future__ import annotations

import pytest

from email_client_core.models import ComposeFields
from support import FakeBackend, FakeClock


@pytest.fixture
def mock_settings():
    """Provide settings with default timings and expiry disabled."""
    from email_client_core.config import Settings

    return Settings(
        api_base_url="http://test:8080",
        log_level="DEBUG",
        debug=True,
        pending_ttl_seconds=0,
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def compose() -> ComposeFields:
    return ComposeFields(
        from_account_id="acct-1",
        to="Alice Smith <alice@example.com>, bob@example.com",
        cc="carol@example.com",
        subject="Quarterly report",
        body_text="Hi team, the quarterly report is attached.",
        attachment_paths=["/tmp/report.pdf"],
    )


@pytest.fixture
def sample_message_data() -> dict:
    """Provide a folder listing entry as sent by the backend."""
    return {
        "id": "srv-1001",
        "message_id": "<CAF1234@mail.example.com>",
        "subject": "Weekly sync notes",
        "from_name": "Dana Lee",
        "from_addr": "dana@example.com",
        "date": "2025-03-14T09:30:00Z",
        "size": 2048,
        "is_read": False,
        "is_flagged": False,
        "has_attachments": False,
        "preview_text": "Notes from this week's sync",
        "folder_path": "INBOX",
    }
