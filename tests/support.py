"""Test doubles and time helpers shared by the test suite."""

from __future__ import annotations

import asyncio
import heapq
from datetime import datetime, timedelta, timezone

from email_client_core.exceptions import FetchError
from email_client_core.models import ComposeFields, Message, SendResult

NOW = datetime(2025, 3, 14, 12, 0, 0, tzinfo=timezone.utc)
NOW_MS = int(NOW.timestamp() * 1000)


def iso(dt: datetime) -> str:
    return dt.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def ago(**kwargs: float) -> datetime:
    return NOW - timedelta(**kwargs)


async def settle(rounds: int = 25) -> None:
    """Let ready tasks run until the loop is quiet."""
    for _ in range(rounds):
        await asyncio.sleep(0)


class FakeClock:
    """Virtual time for code that takes an injectable ``sleep``."""

    def __init__(self) -> None:
        self.now = 0.0
        self.requested: list[float] = []
        self._sleepers: list[tuple[float, int, asyncio.Future[None]]] = []
        self._seq = 0

    async def sleep(self, delay: float) -> None:
        self.requested.append(delay)
        future: asyncio.Future[None] = asyncio.get_running_loop().create_future()
        heapq.heappush(self._sleepers, (self.now + delay, self._seq, future))
        self._seq += 1
        await future

    @property
    def waiting(self) -> int:
        return sum(1 for _, _, f in self._sleepers if not f.done())

    async def advance(self, seconds: float) -> None:
        target = self.now + seconds
        await settle()
        while self._sleepers and self._sleepers[0][0] <= target:
            deadline, _, future = heapq.heappop(self._sleepers)
            self.now = max(self.now, deadline)
            if not future.done():
                future.set_result(None)
            await settle()
        self.now = target
        await settle()


class FakeBackend:
    """In-memory mail backend."""

    def __init__(self) -> None:
        self.folders: dict[str, list[Message]] = {}
        self.fetch_calls: list[str] = []
        self.fail_next = 0
        self.gate: asyncio.Event | None = None
        self.in_flight = 0
        self.max_in_flight = 0
        self.sent: list[ComposeFields] = []
        self.send_error: Exception | None = None
        self.send_result = SendResult(
            message_id="<primary@mail.example.com>",
            message_ids=["<primary@mail.example.com>"],
            chunked=False,
        )

    async def fetch_folder_messages(self, folder_id: str) -> list[Message]:
        self.fetch_calls.append(folder_id)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.gate is not None:
                await self.gate.wait()
            if self.fail_next > 0:
                self.fail_next -= 1
                raise FetchError("backend unavailable", status=503)
            return list(self.folders.get(folder_id, []))
        finally:
            self.in_flight -= 1

    async def send_message(self, compose: ComposeFields) -> SendResult:
        self.sent.append(compose)
        if self.send_error is not None:
            raise self.send_error
        return self.send_result

