"""Data models for the email client core.

This module contains Pydantic models for data validation and serialization.
"""

import re
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from email_client_core.models.contact import (
    CONTACT_STORE_VERSION,
    ContactEntry,
    ContactRecord,
    ContactStore,
    RankedContact,
)

LOCAL_PLACEHOLDER_PREFIX = "local-sent-"

_TAG_RE = re.compile(r"<[^>]+>")
_WS_RE = re.compile(r"\s+")


class SyncState(str, Enum):
    """Delivery state of a locally synthesized sent message."""

    SMTP_ACCEPTED = "smtp_accepted"
    SYNCING = "syncing"


class Message(BaseModel):
    """A folder listing entry, either fetched from the backend or a local placeholder."""

    model_config = ConfigDict(extra="ignore")

    id: str = Field(description="Backend message ID, or a local-sent- ID for placeholders")
    message_id: Optional[str] = Field(default=None, description="Protocol Message-ID header")
    subject: str = Field(default="", description="Subject line")
    from_name: str = Field(default="", description="Sender display name")
    from_addr: str = Field(default="", description="Sender address, possibly 'Name <addr>'")
    date: str = Field(default="", description="Message date as sent by the backend")
    size: int = Field(default=0, description="Size in bytes")
    is_read: bool = Field(default=False)
    is_flagged: bool = Field(default=False)
    has_attachments: bool = Field(default=False)
    preview_text: Optional[str] = Field(default=None, description="Short plain-text preview")
    is_local_pending: bool = Field(
        default=False, description="Whether this is a locally synthesized sent placeholder"
    )
    sync_state: Optional[SyncState] = Field(default=None, description="Placeholder sync state")
    smtp_message_id: Optional[str] = Field(
        default=None, description="Message-ID assigned by the server when the send was accepted"
    )


class Folder(BaseModel):
    """A mailbox folder of an account."""

    model_config = ConfigDict(extra="ignore")

    id: str
    name: str
    display_name: Optional[str] = None
    message_count: int = 0
    unread_count: int = 0
    is_system: bool = False


class SendResult(BaseModel):
    """Outcome of a successful send as reported by the backend."""

    model_config = ConfigDict(extra="ignore")

    message_id: str = Field(description="Primary server-assigned Message-ID")
    message_ids: list[str] = Field(default_factory=list, description="Message-IDs of every part")
    chunked: bool = Field(default=False, description="Whether the send was split into parts")


class SenderIdentity(BaseModel):
    """Who a locally synthesized sent message appears to be from."""

    display_name: str = "Me"
    email_address: str = "me@example.com"


class ComposeFields(BaseModel):
    """Fields of a message being sent from the compose view."""

    from_account_id: str
    to: str = Field(default="", description="Raw To field, comma/semicolon/newline separated")
    cc: str = Field(default="")
    bcc: str = Field(default="")
    subject: str = Field(default="")
    body_text: str = Field(default="", description="Plain-text body")
    body_html: Optional[str] = Field(default=None)
    attachment_paths: list[str] = Field(default_factory=list)

    @property
    def has_attachments(self) -> bool:
        return len(self.attachment_paths) > 0

    def plain_body(self) -> str:
        if self.body_text:
            return self.body_text
        if self.body_html:
            return _WS_RE.sub(" ", _TAG_RE.sub(" ", self.body_html)).strip()
        return ""

    def preview(self, max_len: int = 200) -> str:
        """Plain-text preview shown on the sent placeholder."""
        return self.plain_body()[:max_len]


def is_local_placeholder_id(message_id: str) -> bool:
    """Whether a message ID was generated locally for a sent placeholder."""
    return message_id.startswith(LOCAL_PLACEHOLDER_PREFIX)


__all__ = [
    "CONTACT_STORE_VERSION",
    "ComposeFields",
    "ContactEntry",
    "ContactRecord",
    "ContactStore",
    "Folder",
    "LOCAL_PLACEHOLDER_PREFIX",
    "Message",
    "RankedContact",
    "SendResult",
    "SenderIdentity",
    "SyncState",
    "is_local_placeholder_id",
]
