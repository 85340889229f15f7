"""Frequency and recency ranked contact directory.

Records are merged from inbound sightings (senders seen in folder listings)
and outbound usages (recipients of sent mail), ranked by a score where each
outbound use is worth three days of recency, and persisted as a versioned
JSON envelope in a key/value store.
"""

from __future__ import annotations

import asyncio
import json
import math
import re
from collections.abc import Iterable, Sequence
from typing import Any

import structlog

from email_client_core.exceptions import StorageError
from email_client_core.models import (
    CONTACT_STORE_VERSION,
    ContactEntry,
    ContactRecord,
    ContactStore,
    RankedContact,
)
from email_client_core.storage import KeyValueStore
from email_client_core.utils import now_ms as _wall_clock_ms

logger = structlog.get_logger()

CONTACTS_LIMIT = 500
ALIASES_LIMIT = 6
ALIAS_NAME_MAX = 12
USAGE_WEIGHT_MS = 3 * 24 * 60 * 60 * 1000

_WS_RE = re.compile(r"\s+")


def normalize_addr(raw: str | None) -> str:
    return (raw or "").strip().lower()


def normalize_alias(raw: str) -> str:
    """Collapse whitespace and cap a display name at 12 characters plus an ellipsis."""
    normalized = _WS_RE.sub(" ", raw.strip())
    if len(normalized) <= ALIAS_NAME_MAX:
        return normalized
    return f"{normalized[:ALIAS_NAME_MAX]}..."


def score(record: ContactRecord) -> int:
    return record.last_used_at + record.usage_count * USAGE_WEIGHT_MS


def sort_records(records: Iterable[ContactRecord]) -> list[ContactRecord]:
    """Order by score, then recency, then usage, all descending."""
    return sorted(
        records,
        key=lambda r: (score(r), r.last_used_at, r.usage_count),
        reverse=True,
    )


def merge(
    existing: Sequence[ContactRecord],
    incoming: Sequence[ContactEntry],
    *,
    now_ms: int | None = None,
) -> list[ContactRecord]:
    """Fold usage signals into the directory and return the ranked, capped result."""
    if not incoming:
        return list(existing)

    now = _wall_clock_ms() if now_ms is None else now_ms
    by_addr: dict[str, ContactRecord] = {}
    for item in existing:
        addr = normalize_addr(item.addr)
        if not addr:
            continue
        by_addr[addr] = ContactRecord(
            addr=addr,
            aliases=list(item.aliases)[-ALIASES_LIMIT:],
            usage_count=max(1, item.usage_count or 0),
            last_used_at=max(0, item.last_used_at or 0),
        )

    for entry in incoming:
        addr = normalize_addr(entry.addr)
        if not addr:
            continue
        record = by_addr.get(addr) or ContactRecord(addr=addr, aliases=[], usage_count=0, last_used_at=0)

        name = (entry.name or "").strip()
        if name:
            alias = normalize_alias(name)
            aliases = [a for a in record.aliases if a != alias]
            aliases.append(alias)
            record.aliases = aliases[-ALIASES_LIMIT:]

        record.usage_count = max(1, record.usage_count + max(0, entry.usage_delta or 0))
        seen_at = entry.seen_at if entry.seen_at is not None else now
        record.last_used_at = max(record.last_used_at, seen_at)
        by_addr[addr] = record

    return sort_records(by_addr.values())[:CONTACTS_LIMIT]


def display_label(addr: str, aliases: Sequence[str]) -> str:
    if not aliases:
        return f"<{addr}>"
    return f"{'|'.join(aliases)}<{addr}>"


def rank(records: Iterable[ContactRecord]) -> list[RankedContact]:
    return [
        RankedContact(addr=r.addr, display_label=display_label(r.addr, r.aliases))
        for r in sort_records(records)[:CONTACTS_LIMIT]
    ]


def encode_store(records: Sequence[ContactRecord]) -> str:
    return ContactStore(records=list(records[:CONTACTS_LIMIT])).model_dump_json()


def _as_int(value: Any) -> int:
    """Coerce a stored number to int; anything non-numeric or non-finite is 0."""
    if isinstance(value, int):
        return value
    if isinstance(value, (float, str)):
        try:
            number = float(value)
        except ValueError:
            return 0
        return int(number) if math.isfinite(number) else 0
    return 0


def decode_store(raw: str | None) -> list[ContactRecord]:
    """Parse a persisted envelope.

    Only ``{"version": 2, "records": [...]}`` is recognized. Anything else,
    including invalid JSON, is treated as an empty directory.
    """
    if not raw:
        return []
    try:
        payload = json.loads(raw)
    except ValueError:
        logger.debug("contacts_payload_invalid_json")
        return []

    if (
        not isinstance(payload, dict)
        or payload.get("version") != CONTACT_STORE_VERSION
        or not isinstance(payload.get("records"), list)
    ):
        logger.debug("contacts_payload_unrecognized")
        return []

    records: list[ContactRecord] = []
    for item in payload["records"]:
        if not isinstance(item, dict):
            continue
        addr = normalize_addr(item.get("addr") if isinstance(item.get("addr"), str) else "")
        if not addr:
            continue
        raw_aliases = item.get("aliases")
        aliases = (
            [normalize_alias(a) for a in raw_aliases if isinstance(a, str)]
            if isinstance(raw_aliases, list)
            else []
        )
        aliases = [a for a in aliases if a][-ALIASES_LIMIT:]
        records.append(
            ContactRecord(
                addr=addr,
                aliases=aliases,
                usage_count=max(1, _as_int(item.get("usage_count"))),
                last_used_at=max(0, _as_int(item.get("last_used_at"))),
            )
        )
    return records


class ContactDirectory:
    """In-memory contact records backed by a key/value store.

    Saves are fire-and-forget: every change schedules a write of the latest
    in-memory snapshot, and the last write wins.
    """

    def __init__(self, store: KeyValueStore, key: str) -> None:
        self._store = store
        self._key = key
        self._records: list[ContactRecord] = []
        self._pending_saves: set[asyncio.Task[None]] = set()

    @property
    def key(self) -> str:
        return self._key

    @property
    def records(self) -> list[ContactRecord]:
        return list(self._records)

    async def load(self) -> list[ContactRecord]:
        """Load the persisted directory and write back its normalized form."""

        raw = await self._store.get(self._key)
        self._records = decode_store(raw)
        logger.info("contacts_loaded", key=self._key, count=len(self._records))
        await self.save()
        return self.records

    async def save(self) -> None:
        await self._store.set(self._key, encode_store(self._records))
        logger.debug("contacts_saved", key=self._key, count=len(self._records))

    def apply(self, entries: Sequence[ContactEntry], *, now_ms: int | None = None) -> list[ContactRecord]:
        """Merge usage signals and schedule a background save.

        Must be called from a running event loop.
        """

        if not entries:
            return self.records
        self._records = merge(self._records, entries, now_ms=now_ms)
        task = asyncio.get_running_loop().create_task(self._save_in_background())
        self._pending_saves.add(task)
        task.add_done_callback(self._pending_saves.discard)
        return self.records

    def ranked(self) -> list[RankedContact]:
        return rank(self._records)

    async def flush(self) -> None:
        """Wait for outstanding background saves."""

        if self._pending_saves:
            await asyncio.gather(*list(self._pending_saves), return_exceptions=True)

    async def _save_in_background(self) -> None:
        try:
            await self.save()
        except StorageError as exc:
            logger.warning("contacts_save_failed", key=self._key, error=str(exc))
