"""Page visibility and focus signals consumed by the polling scheduler."""

from __future__ import annotations

from typing import Callable, Protocol

import structlog

logger = structlog.get_logger()

WakeCallback = Callable[[], None]
Unsubscribe = Callable[[], None]


class EnvironmentSignals(Protocol):
    """Source of "is the page visible" state and wake-up events."""

    def is_visible(self) -> bool: ...

    def on_focus_or_visible(self, callback: WakeCallback) -> Unsubscribe:
        """Register a callback fired when the window gains focus or becomes visible."""
        ...


class ManualSignals:
    """Signals driven explicitly by the host application or by tests."""

    def __init__(self, visible: bool = True) -> None:
        self._visible = visible
        self._callbacks: list[WakeCallback] = []

    @property
    def listener_count(self) -> int:
        return len(self._callbacks)

    def is_visible(self) -> bool:
        return self._visible

    def on_focus_or_visible(self, callback: WakeCallback) -> Unsubscribe:
        self._callbacks.append(callback)

        def unsubscribe() -> None:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

        return unsubscribe

    def set_visible(self, visible: bool) -> None:
        """Update visibility; a hidden-to-visible transition wakes listeners."""

        became_visible = visible and not self._visible
        self._visible = visible
        if became_visible:
            self._fire("visible")

    def focus(self) -> None:
        self._fire("focus")

    def _fire(self, reason: str) -> None:
        logger.debug("environment_wake", reason=reason, listeners=len(self._callbacks))
        for callback in list(self._callbacks):
            callback()
