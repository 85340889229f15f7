"""Normalization keys used to compare local placeholders with fetched messages."""

from __future__ import annotations

import re
import unicodedata
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime

# Placeholders the backend substitutes for an empty subject, after key normalization.
NO_SUBJECT_KEYS = frozenset({"nosubject", "无主题"})

_WS_RE = re.compile(r"\s+")
_ZERO_WIDTH_RE = re.compile(r"[\u200b-\u200d\ufeff]")
_ANGLE_RE = re.compile(r"^<|>$")
_BRACKETED_ADDR_RE = re.compile(r"<([^>]+)>")


def normalize_text(raw: str | None) -> str:
    """Trim, collapse whitespace and lower-case."""
    if not raw:
        return ""
    return _WS_RE.sub(" ", raw.strip()).lower()


def message_id_key(raw: str | None) -> str:
    """Normalize a Message-ID: drop surrounding angle brackets and lower-case."""
    if not raw:
        return ""
    return _ANGLE_RE.sub("", raw.strip()).lower()


def subject_key(raw: str | None) -> str:
    """Reduce a subject to letters and digits for fuzzy equality.

    Returns an empty string when nothing meaningful is left, including the
    localized "no subject" placeholders. An empty key carries no signal.
    """
    normalized = normalize_text(raw)
    if not normalized:
        return ""
    normalized = unicodedata.normalize("NFKC", normalized)
    normalized = _ZERO_WIDTH_RE.sub("", normalized)
    # CJK ideographs are category Lo, so they survive as letters.
    key = "".join(ch for ch in normalized if unicodedata.category(ch)[0] in "LN")
    if not key or key in NO_SUBJECT_KEYS:
        return ""
    return key


def preview_key(raw: str | None) -> str:
    return subject_key(raw)


def mailbox_address(raw: str | None) -> str:
    """Extract the bare address from a sender field such as ``Name <a@b.c>``."""
    if not raw:
        return ""
    value = raw.strip().lower()
    match = _BRACKETED_ADDR_RE.search(value)
    if match and match.group(1):
        return match.group(1).strip()
    return value


def timestamp_ms(raw: str | None) -> int | None:
    """Parse an ISO 8601 or RFC 2822 date to epoch milliseconds.

    Unparsable or missing dates give ``None`` rather than 0.
    """
    if not raw or not raw.strip():
        return None
    value = raw.strip()

    parsed: datetime | None
    iso = value[:-1] + "+00:00" if value.endswith(("Z", "z")) else value
    try:
        parsed = datetime.fromisoformat(iso)
    except ValueError:
        try:
            parsed = parsedate_to_datetime(value)
        except (TypeError, ValueError, IndexError, OverflowError):
            return None
    if parsed is None:
        return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    try:
        return int(parsed.timestamp() * 1000)
    except (OverflowError, OSError, ValueError):
        return None
