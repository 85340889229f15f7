"""Decide whether a local sent placeholder and a fetched message are the same mail.

The exact Message-ID is authoritative when both sides carry one. Otherwise the
decision falls back to normalized subject or preview equality bounded by time
windows, with a strict sender-and-attachments fallback when neither text key
carries any signal.

Freshly created placeholders never match. This keeps a just-sent placeholder
on screen until the first real refresh, instead of letting an older unrelated
message retire it immediately.
"""

from __future__ import annotations

from email_client_core.models import Message
from email_client_core.reconcile.keys import (
    mailbox_address,
    message_id_key,
    preview_key,
    subject_key,
    timestamp_ms,
)
from email_client_core.utils import now_ms as _wall_clock_ms

SECOND_MS = 1000
MINUTE_MS = 60 * SECOND_MS
HOUR_MS = 60 * MINUTE_MS

FRESH_PENDING_MS = 12 * SECOND_MS
NEWER_ENOUGH_SLACK_MS = 2 * MINUTE_MS
TEXT_MATCH_WINDOW_MS = 2 * HOUR_MS
STRICT_FALLBACK_WINDOW_MS = 24 * HOUR_MS
SYNCED_QUICK_WINDOW_MS = 30 * MINUTE_MS
SYNCED_SENDER_WINDOW_MS = 24 * HOUR_MS


def matches(pending: Message, remote: Message, *, now_ms: int | None = None) -> bool:
    """Return True if ``remote`` is the authoritative copy of ``pending``.

    Args:
        pending: Local message, usually a sent placeholder.
        remote: Message from a fetched folder listing.
        now_ms: Current time in epoch ms, used for the freshness guard.

    Returns:
        Whether the two denote the same underlying mail. Never raises.
    """
    local_id = message_id_key(pending.smtp_message_id)
    remote_id = message_id_key(remote.message_id)
    if local_id and remote_id and local_id == remote_id:
        return True

    local_subject = subject_key(pending.subject)
    remote_subject = subject_key(remote.subject)
    subject_match = bool(local_subject) and local_subject == remote_subject

    local_preview = preview_key(pending.preview_text)
    remote_preview = preview_key(remote.preview_text)
    preview_match = bool(local_preview) and local_preview == remote_preview

    local_from = mailbox_address(pending.from_addr)
    remote_from = mailbox_address(remote.from_addr)

    local_ts = timestamp_ms(pending.date)
    remote_ts = timestamp_ms(remote.date)
    if local_ts is None or remote_ts is None:
        return subject_match or preview_match

    diff = abs(remote_ts - local_ts)

    if pending.is_local_pending:
        # The backend may rewrite the sender display format, so subject and
        # time come first for placeholders.
        now = _wall_clock_ms() if now_ms is None else now_ms
        alive = now - local_ts
        if 0 <= alive < FRESH_PENDING_MS:
            return False

        if remote_ts < local_ts - NEWER_ENOUGH_SLACK_MS:
            return False

        if subject_match:
            return diff <= TEXT_MATCH_WINDOW_MS

        if preview_match:
            if local_from and remote_from and local_from != remote_from:
                return False
            return diff <= TEXT_MATCH_WINDOW_MS

        if not local_from or not remote_from or local_from != remote_from:
            return False
        if pending.has_attachments != remote.has_attachments:
            return False
        return diff <= STRICT_FALLBACK_WINDOW_MS

    if not subject_match and not preview_match:
        return False
    if diff <= SYNCED_QUICK_WINDOW_MS:
        return True
    if diff <= SYNCED_SENDER_WINDOW_MS:
        return bool(local_from) and local_from == remote_from
    return False
