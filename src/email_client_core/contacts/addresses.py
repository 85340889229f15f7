"""Helpers for turning sender and recipient fields into contact usage signals."""

from __future__ import annotations

import re

from email_client_core.models import ContactEntry

_NAME_ADDR_RE = re.compile(r"^(.*)<([^>]+)>$", re.DOTALL)
_RECIPIENT_SPLIT_RE = re.compile(r"[,\n;]+")


def parse_address(raw: str | None) -> tuple[str, str]:
    """Split ``Name <addr>`` into ``(addr, name)``.

    The address is lower-cased. A bare value is treated as an address with no
    name. Empty input gives ``("", "")``.
    """
    value = (raw or "").strip()
    if not value:
        return "", ""
    match = _NAME_ADDR_RE.match(value)
    if match and match.group(2):
        return match.group(2).strip().lower(), match.group(1).strip()
    return value.lower(), ""


def message_contact_entry(
    from_name: str | None,
    from_addr: str | None,
    *,
    seen_at: int | None = None,
) -> ContactEntry | None:
    """Build an inbound sighting from a listing's sender fields."""
    addr_from_addr, name_from_addr = parse_address(from_addr)
    addr_from_name, name_from_name = parse_address(from_name)
    addr = addr_from_addr or addr_from_name
    if not addr:
        return None
    name = name_from_name or name_from_addr
    if not name and addr_from_addr and addr_from_name and addr_from_name != addr:
        # A plain display name parses as a bare "address".
        name = (from_name or "").strip()
    return ContactEntry(addr=addr, name=name or None, seen_at=seen_at, usage_delta=0)


def recipient_entries(raw_field: str | None, *, seen_at: int | None = None) -> list[ContactEntry]:
    """Build outbound usages from a raw To/Cc/Bcc compose field."""
    if not raw_field or not raw_field.strip():
        return []
    entries: list[ContactEntry] = []
    for token in _RECIPIENT_SPLIT_RE.split(raw_field):
        addr, name = parse_address(token)
        if addr:
            entries.append(ContactEntry(addr=addr, name=name or None, seen_at=seen_at, usage_delta=1))
    return entries
