"""Adaptive folder polling.

A scheduler re-fetches one folder on a self re-arming timer: the next wait is
only started after the previous refresh settles, so refreshes of a folder
never overlap and their results apply in issue order. The wait depends on page
visibility and on whether the folder is expected to change often.

States::

    IDLE -> WAITING -> FETCHING -> WAITING -> ...
      any state -> CANCELLED (terminal)
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterable
from enum import Enum
from typing import Any, Awaitable, Callable

import structlog

from email_client_core.config import Settings
from email_client_core.scheduler.signals import EnvironmentSignals, Unsubscribe
from email_client_core.utils import Sleep

logger = structlog.get_logger()

Refresh = Callable[[str], Awaitable[Any]]

HOT_FOLDER_TOKENS = ("inbox", "sent", "outbox", "收件箱", "已发送")
SENT_FOLDER_TOKENS = ("sent", "outbox", "已发送")


class SchedulerState(str, Enum):
    IDLE = "idle"
    WAITING = "waiting"
    FETCHING = "fetching"
    CANCELLED = "cancelled"


def _folder_label(name: str | None, display_name: str | None) -> str:
    return (display_name or name or "").lower()


def is_hot_folder(name: str | None, display_name: str | None = None) -> bool:
    """Whether a folder is expected to receive frequent updates."""
    label = _folder_label(name, display_name)
    return any(token in label for token in HOT_FOLDER_TOKENS)


def is_sent_folder(name: str | None, display_name: str | None = None) -> bool:
    label = _folder_label(name, display_name)
    return any(token in label for token in SENT_FOLDER_TOKENS)


class PollingScheduler:
    """Refreshes one folder until cancelled."""

    def __init__(
        self,
        folder_id: str,
        refresh: Refresh,
        signals: EnvironmentSignals,
        *,
        hot: bool = False,
        settings: Settings | None = None,
        sleep: Sleep | None = None,
    ) -> None:
        """Create a scheduler.

        Args:
            folder_id: Folder to refresh.
            refresh: Coroutine function fetching and applying the folder listing.
            signals: Visibility and wake-up source.
            hot: Whether the folder uses the shorter polling interval.
            settings: Application settings. If None, uses default settings.
            sleep: Awaitable sleep used for every wait. Defaults to asyncio.sleep.
        """
        from email_client_core.config import get_settings

        self.folder_id = folder_id
        self.hot = hot
        self.settings = settings or get_settings()
        self._refresh = refresh
        self._signals = signals
        self._sleep = sleep or asyncio.sleep
        self._state = SchedulerState.IDLE
        self._stopped = False
        self._task: asyncio.Task[None] | None = None
        self._unsubscribe: Unsubscribe | None = None
        self._wake_tasks: set[asyncio.Task[None]] = set()

    @property
    def state(self) -> SchedulerState:
        return self._state

    @property
    def stopped(self) -> bool:
        return self._stopped

    def current_delay(self) -> float:
        """Seconds to wait before the next regular refresh."""

        if not self._signals.is_visible():
            return self.settings.hidden_poll_interval
        return self.settings.hot_poll_interval if self.hot else self.settings.cold_poll_interval

    def start(self) -> Callable[[], None]:
        """Begin polling; must be called from a running event loop.

        Returns:
            A callable that cancels the scheduler.
        """

        if self._task is not None or self._stopped:
            raise RuntimeError(f"Scheduler for folder {self.folder_id} already started")

        self._unsubscribe = self._signals.on_focus_or_visible(self._on_wake)
        self._task = asyncio.get_running_loop().create_task(
            self._run(), name=f"poll-folder-{self.folder_id}"
        )
        logger.info("scheduler_started", folder_id=self.folder_id, hot=self.hot)
        return self.cancel

    def cancel(self) -> None:
        """Stop scheduling further refreshes.

        A pending wait is cancelled. A refresh already in flight is not
        aborted; its result still applies, but nothing is scheduled after it.
        """

        if self._stopped:
            return
        self._stopped = True
        previous = self._state
        self._state = SchedulerState.CANCELLED

        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

        if self._task is not None and previous is not SchedulerState.FETCHING:
            self._task.cancel()

        logger.info("scheduler_cancelled", folder_id=self.folder_id, previous_state=previous.value)

    async def wait_closed(self) -> None:
        """Wait until the polling loop and any wake-up refreshes have finished."""

        tasks = [t for t in (self._task, *self._wake_tasks) if t is not None]
        if tasks:
            await asyncio.wait(tasks)

    async def _run(self) -> None:
        delay = self.settings.settle_delay
        while not self._stopped:
            self._state = SchedulerState.WAITING
            await self._sleep(delay)
            if self._stopped:
                break

            self._state = SchedulerState.FETCHING
            logger.debug("scheduler_tick", folder_id=self.folder_id)
            await self._refresh_once("tick")
            delay = self.current_delay()

    async def _refresh_once(self, reason: str) -> None:
        try:
            await self._refresh(self.folder_id)
        except Exception as exc:  # noqa: BLE001
            logger.warning(
                "scheduler_refresh_failed",
                folder_id=self.folder_id,
                reason=reason,
                error=str(exc),
            )

    def _on_wake(self) -> None:
        if self._stopped:
            return
        logger.debug("scheduler_wake", folder_id=self.folder_id)
        task = asyncio.get_running_loop().create_task(self._refresh_once("wake"))
        self._wake_tasks.add(task)
        task.add_done_callback(self._wake_tasks.discard)


def start_polling(
    folder_id: str,
    refresh: Refresh,
    signals: EnvironmentSignals,
    *,
    hot: bool = False,
    settings: Settings | None = None,
    sleep: Sleep | None = None,
) -> Callable[[], None]:
    """Start a scheduler for ``folder_id`` and return its cancel function."""

    scheduler = PollingScheduler(folder_id, refresh, signals, hot=hot, settings=settings, sleep=sleep)
    return scheduler.start()


def schedule_post_send_refreshes(
    folder_id: str,
    refresh: Refresh,
    offsets: Iterable[float],
    *,
    immediate: bool = True,
    sleep: Sleep | None = None,
) -> list[asyncio.Task[None]]:
    """Fire one-shot refreshes after a send, independent of any scheduler.

    Catches a fast server echo of the sent message without waiting for the
    next regular tick.
    """

    do_sleep = sleep or asyncio.sleep
    loop = asyncio.get_running_loop()

    async def _fire(offset: float) -> None:
        if offset > 0:
            await do_sleep(offset)
        try:
            await refresh(folder_id)
        except Exception as exc:  # noqa: BLE001
            logger.warning("post_send_refresh_failed", folder_id=folder_id, offset=offset, error=str(exc))

    delays = ([0.0] if immediate else []) + [float(o) for o in offsets]
    logger.debug("post_send_refreshes_scheduled", folder_id=folder_id, offsets=delays)
    return [loop.create_task(_fire(offset)) for offset in delays]
