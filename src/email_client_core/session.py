"""Mail session: the entry point the UI layer talks to.

The session owns all per-user state (pending placeholders, latest listings,
contacts, the active folder scheduler) and wires the injected collaborators
together:

* every successful folder fetch reconciles that folder's placeholders and
  feeds the senders into the contact directory;
* every successful send feeds the recipients into the contact directory,
  creates placeholders in the sent folder and fires a short refresh burst.
"""

from __future__ import annotations

import asyncio
from collections.abc import Sequence

import structlog

from email_client_core.backend import MailBackend
from email_client_core.config import Settings
from email_client_core.contacts import ContactDirectory, message_contact_entry, recipient_entries
from email_client_core.exceptions import SendError
from email_client_core.models import (
    ComposeFields,
    ContactEntry,
    Message,
    RankedContact,
    SenderIdentity,
    SendResult,
)
from email_client_core.reconcile import PendingRegistry, create_placeholders
from email_client_core.reconcile.keys import timestamp_ms
from email_client_core.scheduler import (
    EnvironmentSignals,
    PollingScheduler,
    is_hot_folder,
    schedule_post_send_refreshes,
)
from email_client_core.storage import KeyValueStore
from email_client_core.utils import Sleep, now_ms, retry_async

logger = structlog.get_logger()


class MailSession:
    """Per-user email client state and lifecycle."""

    def __init__(
        self,
        backend: MailBackend,
        store: KeyValueStore,
        signals: EnvironmentSignals,
        *,
        settings: Settings | None = None,
        user_id: str = "guest",
        sender: SenderIdentity | None = None,
        sleep: Sleep | None = None,
    ) -> None:
        """Initialize the session.

        Args:
            backend: Mail store used for folder listings and sends.
            store: Key/value store holding the contact directory.
            signals: Page visibility and focus source for the schedulers.
            settings: Application settings. If None, uses default settings.
            user_id: Owner of the contact directory.
            sender: Identity shown on sent placeholders.
            sleep: Awaitable sleep used for every delay. Defaults to asyncio.sleep.
        """
        from email_client_core.config import get_settings

        self.settings = settings or get_settings()
        self.backend = backend
        self.signals = signals
        self.sender = sender or SenderIdentity()
        self.registry = PendingRegistry(ttl_seconds=self.settings.pending_ttl_seconds)
        self.contacts_directory = ContactDirectory(store, f"{self.settings.contacts_key_prefix}{user_id}")
        self._sleep = sleep or asyncio.sleep
        self._scheduler: PollingScheduler | None = None
        self._background: set[asyncio.Task[None]] = set()
        logger.info("mail_session_initialized", user_id=user_id)

    @property
    def active_folder(self) -> str | None:
        return self._scheduler.folder_id if self._scheduler is not None else None

    @property
    def scheduler(self) -> PollingScheduler | None:
        return self._scheduler

    async def open(self) -> None:
        await self.contacts_directory.load()

    async def close(self) -> None:
        """Stop polling, cancel pending post-send refreshes and flush contacts."""

        if self._scheduler is not None:
            scheduler = self._scheduler
            self._scheduler = None
            scheduler.cancel()
            await scheduler.wait_closed()
        for task in list(self._background):
            task.cancel()
        if self._background:
            await asyncio.wait(list(self._background))
        await self.contacts_directory.flush()
        logger.info("mail_session_closed")

    async def drain(self) -> None:
        """Wait for scheduled post-send refreshes to finish."""

        if self._background:
            await asyncio.wait(list(self._background))

    async def refresh_folder(self, folder_id: str) -> list[Message] | None:
        """Fetch a folder listing and apply it.

        A failed fetch is retried once; if it still fails the cycle is skipped
        and the previous listing stays in place.

        Returns:
            The fetched listing, or None if the cycle was skipped.
        """

        fetch = retry_async(
            max_retries=self.settings.fetch_max_retries,
            delay=self.settings.fetch_retry_delay,
            sleep=self._sleep,
        )(self.backend.fetch_folder_messages)
        try:
            batch = await fetch(folder_id)
        except Exception as exc:  # noqa: BLE001
            logger.warning("folder_refresh_failed", folder_id=folder_id, error=str(exc))
            return None

        self.registry.apply_remote_batch(folder_id, batch)
        self._learn_senders(batch)
        return batch

    def on_folder_opened(
        self,
        folder_id: str,
        *,
        name: str = "",
        display_name: str | None = None,
    ) -> PollingScheduler:
        """Start polling ``folder_id``, replacing any previous scheduler."""

        if self._scheduler is not None:
            self._scheduler.cancel()
        self._scheduler = PollingScheduler(
            folder_id,
            self.refresh_folder,
            self.signals,
            hot=is_hot_folder(name or folder_id, display_name),
            settings=self.settings,
            sleep=self._sleep,
        )
        self._scheduler.start()
        return self._scheduler

    def on_folder_closed(self, folder_id: str) -> None:
        if self._scheduler is not None and self._scheduler.folder_id == folder_id:
            self._scheduler.cancel()
            self._scheduler = None

    async def send(self, compose: ComposeFields, *, sent_folder_id: str | None = None) -> SendResult:
        """Send a message and show it optimistically in the sent folder.

        Raises:
            SendError: If the backend rejects the send. No placeholder is created.
        """

        try:
            result = await self.backend.send_message(compose)
        except SendError:
            raise
        except Exception as exc:
            logger.exception("send_failed", account_id=compose.from_account_id, error=str(exc))
            raise SendError(str(exc)) from exc

        self.on_send_completed(result, compose, sent_folder_id)
        return result

    def on_send_completed(
        self,
        result: SendResult,
        compose: ComposeFields,
        sent_folder_id: str | None = None,
    ) -> list[Message]:
        """Record a successful send.

        Returns:
            The placeholders created, empty when the sent folder is unknown.
        """

        sent_at = now_ms()
        recipients = [
            *recipient_entries(compose.to, seen_at=sent_at),
            *recipient_entries(compose.cc, seen_at=sent_at),
            *recipient_entries(compose.bcc, seen_at=sent_at),
        ]
        self.contacts_directory.apply(recipients, now_ms=sent_at)

        if not sent_folder_id:
            logger.info("send_completed_without_sent_folder", message_id=result.message_id)
            return []

        placeholders = create_placeholders(result, compose, self.sender)
        self.registry.add(sent_folder_id, placeholders)

        tasks = schedule_post_send_refreshes(
            sent_folder_id,
            self.refresh_folder,
            self.settings.post_send_refresh_offsets,
            sleep=self._sleep,
        )
        for task in tasks:
            self._background.add(task)
            task.add_done_callback(self._background.discard)
        return placeholders

    def merged_view(self, folder_id: str) -> list[Message]:
        return self.registry.merged_view(folder_id)

    def contacts(self) -> list[RankedContact]:
        return self.contacts_directory.ranked()

    def _learn_senders(self, batch: Sequence[Message]) -> None:
        if not batch:
            return
        fallback = now_ms()
        entries: list[ContactEntry] = []
        for message in batch:
            entry = message_contact_entry(
                message.from_name,
                message.from_addr,
                seen_at=timestamp_ms(message.date) or fallback,
            )
            if entry is not None:
                entries.append(entry)
        self.contacts_directory.apply(entries, now_ms=fallback)
