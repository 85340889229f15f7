"""Folder refresh scheduling."""

from .polling import (
    PollingScheduler,
    SchedulerState,
    is_hot_folder,
    is_sent_folder,
    schedule_post_send_refreshes,
    start_polling,
)
from .signals import EnvironmentSignals, ManualSignals

__all__ = [
    "EnvironmentSignals",
    "ManualSignals",
    "PollingScheduler",
    "SchedulerState",
    "is_hot_folder",
    "is_sent_folder",
    "schedule_post_send_refreshes",
    "start_polling",
]
