"""Mail backend collaborators.

The mail store is reached only through a folder listing call and a send call.
"""

from __future__ import annotations

from typing import Protocol

from email_client_core.models import ComposeFields, Message, SendResult

from .http import HttpMailBackend


class MailBackend(Protocol):
    """Minimal mail store interface consumed by the session."""

    async def fetch_folder_messages(self, folder_id: str) -> list[Message]: ...

    async def send_message(self, compose: ComposeFields) -> SendResult: ...


__all__ = ["HttpMailBackend", "MailBackend"]
