"""Contact directory models.

A contact record is keyed by its normalized address and remembers the display
names it has been seen with, how often the user wrote to it, and when it was
last seen in either direction.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

CONTACT_STORE_VERSION = 2


class ContactRecord(BaseModel):
    """A learned address-book entry."""

    addr: str = Field(description="Trimmed, lower-cased address")
    aliases: list[str] = Field(default_factory=list, description="Display names, oldest first")
    usage_count: int = Field(default=1, description="Number of outbound uses (at least 1)")
    last_used_at: int = Field(default=0, description="Last seen or used, epoch milliseconds")


class ContactEntry(BaseModel):
    """A usage signal fed into the directory."""

    addr: str
    name: str | None = None
    seen_at: int | None = Field(default=None, description="Epoch ms; defaults to now")
    usage_delta: int = Field(default=0, description="1 for outbound use, 0 for inbound sighting")


class RankedContact(BaseModel):
    """A contact suggestion ready for display."""

    addr: str
    display_label: str


class ContactStore(BaseModel):
    """Persisted envelope of the contact directory."""

    version: Literal[2] = CONTACT_STORE_VERSION
    records: list[ContactRecord] = Field(default_factory=list)
