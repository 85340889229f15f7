"""Per-folder registry of optimistic sent placeholders.

A placeholder is created when a send is accepted and lives in its folder's
pending list until a fetched listing contains its authoritative copy.
"""

from __future__ import annotations

import uuid
from collections.abc import Sequence
from datetime import datetime, timezone

import structlog

from email_client_core.models import (
    LOCAL_PLACEHOLDER_PREFIX,
    ComposeFields,
    Message,
    SenderIdentity,
    SendResult,
    SyncState,
)
from email_client_core.reconcile.keys import timestamp_ms
from email_client_core.reconcile.matcher import matches
from email_client_core.utils import now_ms as _wall_clock_ms

logger = structlog.get_logger()

PREVIEW_LENGTH = 200


def _iso_utc(dt: datetime) -> str:
    return dt.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def new_placeholder_id() -> str:
    return f"{LOCAL_PLACEHOLDER_PREFIX}{uuid.uuid4().hex}"


def create_placeholders(
    send_result: SendResult,
    compose: ComposeFields,
    sender: SenderIdentity | None = None,
    *,
    now: datetime | None = None,
) -> list[Message]:
    """Synthesize the sent placeholders for an accepted send.

    A chunked send reported with several Message-IDs yields one placeholder per
    part, each suffixed with ``[part i/n]`` and carrying its own ID. Anything
    else yields exactly one placeholder carrying the primary ID.
    """
    sender = sender or SenderIdentity()
    preview = compose.preview(PREVIEW_LENGTH)
    base = {
        "from_name": sender.display_name or sender.email_address or "Me",
        "from_addr": sender.email_address,
        "date": _iso_utc(now or datetime.now(timezone.utc)),
        "size": max(1, len(preview)),
        "is_read": True,
        "is_flagged": False,
        "has_attachments": compose.has_attachments,
        "preview_text": preview or None,
        "is_local_pending": True,
        "sync_state": SyncState.SMTP_ACCEPTED,
    }

    part_ids = send_result.message_ids
    if send_result.chunked and len(part_ids) > 1:
        total = len(part_ids)
        return [
            Message(
                id=new_placeholder_id(),
                subject=f"{compose.subject} [part {index}/{total}]",
                smtp_message_id=part_id,
                **base,
            )
            for index, part_id in enumerate(part_ids, start=1)
        ]

    return [
        Message(
            id=new_placeholder_id(),
            subject=compose.subject,
            smtp_message_id=send_result.message_id,
            **base,
        )
    ]


def reconcile(
    pending_list: Sequence[Message],
    remote_batch: Sequence[Message],
    *,
    now_ms: int | None = None,
) -> list[Message]:
    """Return the placeholders that have no counterpart in ``remote_batch``.

    Single greedy pass: each placeholder, in order, claims the first remaining
    remote message that matches it. A claimed remote message cannot be reused.
    """
    if not pending_list or not remote_batch:
        return list(pending_list)

    pool = list(remote_batch)
    unmatched: list[Message] = []
    for local in pending_list:
        matched_index = next(
            (i for i, remote in enumerate(pool) if matches(local, remote, now_ms=now_ms)),
            None,
        )
        if matched_index is None:
            unmatched.append(local)
        else:
            del pool[matched_index]
    return unmatched


class PendingRegistry:
    """Owns the pending placeholder lists and the latest listing of each folder."""

    def __init__(self, ttl_seconds: int = 0) -> None:
        """Create a registry.

        Args:
            ttl_seconds: Age after which an unmatched placeholder is dropped.
                0 disables expiry.
        """

        self._ttl_ms = max(0, ttl_seconds) * 1000
        self._pending: dict[str, list[Message]] = {}
        self._latest: dict[str, list[Message]] = {}

    def add(self, folder_id: str, placeholders: Sequence[Message]) -> None:
        """Prepend new placeholders so the folder's list stays newest first."""

        if not placeholders:
            return
        self._pending[folder_id] = [*placeholders, *self._pending.get(folder_id, [])]
        logger.info(
            "pending_placeholders_created",
            folder_id=folder_id,
            count=len(placeholders),
            pending_total=len(self._pending[folder_id]),
        )

    def pending(self, folder_id: str) -> list[Message]:
        return list(self._pending.get(folder_id, []))

    def latest(self, folder_id: str) -> list[Message]:
        return list(self._latest.get(folder_id, []))

    def apply_remote_batch(
        self,
        folder_id: str,
        remote_batch: Sequence[Message],
        *,
        now_ms: int | None = None,
    ) -> list[Message]:
        """Record a fetched listing and retire the placeholders it confirms.

        Returns:
            The placeholders still pending for the folder.
        """

        self._latest[folder_id] = list(remote_batch)
        pending = self._pending.get(folder_id)
        if not pending:
            return []

        now = _wall_clock_ms() if now_ms is None else now_ms
        remaining = reconcile(pending, remote_batch, now_ms=now)
        retired = len(pending) - len(remaining)
        remaining = self._drop_expired(folder_id, remaining, now)

        if remaining:
            self._pending[folder_id] = remaining
        else:
            self._pending.pop(folder_id, None)

        if retired:
            logger.info(
                "pending_reconciled",
                folder_id=folder_id,
                retired=retired,
                remaining=len(remaining),
            )
        return list(remaining)

    def merged_view(self, folder_id: str, *, now_ms: int | None = None) -> list[Message]:
        """Placeholders still unconfirmed by the latest listing, followed by that listing."""

        latest = self._latest.get(folder_id, [])
        pending = reconcile(self._pending.get(folder_id, []), latest, now_ms=now_ms)
        return [*pending, *latest]

    def clear(self, folder_id: str) -> None:
        self._pending.pop(folder_id, None)
        self._latest.pop(folder_id, None)

    def _drop_expired(self, folder_id: str, pending: list[Message], now: int) -> list[Message]:
        if not self._ttl_ms:
            return pending

        kept: list[Message] = []
        for message in pending:
            created = timestamp_ms(message.date)
            if created is not None and now - created > self._ttl_ms:
                logger.info(
                    "pending_placeholder_expired",
                    folder_id=folder_id,
                    message_id=message.id,
                    age_ms=now - created,
                )
                continue
            kept.append(message)
        return kept
