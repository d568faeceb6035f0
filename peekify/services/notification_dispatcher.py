"""
Background delivery of realtime events and push notifications.

Request handlers enqueue work after their database transaction has committed
and return immediately. A single worker task drains the queue. A failed job
waits out its backoff in its own task and is then queued again, so it never
holds up the jobs behind it; after max_attempts it is dropped with an error
log. A failed delivery never affects the stored data.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol, Set

from utils.logger import get_logger

logger = get_logger(__name__)

JOB_EVENT = "event"
JOB_PUSH = "push"

# Realtime rooms
FEED_ROOM = "feed"


def user_room(user_id: str) -> str:
    return f"user:{user_id}"


def feed_item_room(feed_item_id: str) -> str:
    return f"feed:{feed_item_id}"


class Broadcaster(Protocol):
    async def broadcast(self, rooms, event: str, data: Any) -> int: ...


@dataclass
class DispatchJob:
    kind: str
    payload: Dict[str, Any]
    rooms: List[str] = field(default_factory=list)
    user_id: Optional[str] = None
    attempts: int = 0


class NotificationDispatcher:
    def __init__(
        self,
        broadcaster: Optional[Broadcaster] = None,
        push_service: Any = None,
        max_attempts: int = 3,
        base_delay: float = 0.5,
    ) -> None:
        self.broadcaster = broadcaster
        self.push_service = push_service
        self.max_attempts = max(1, int(max_attempts))
        self.base_delay = max(0.0, float(base_delay))
        self._queue: asyncio.Queue[DispatchJob] = asyncio.Queue()
        self._worker: Optional[asyncio.Task] = None
        self._retries: Set[asyncio.Task] = set()
        self.dropped = 0

    @property
    def running(self) -> bool:
        return self._worker is not None and not self._worker.done()

    def publish(self, event: str, data: Any, rooms: List[str]) -> None:
        """Queue a realtime event for the given rooms."""
        self._queue.put_nowait(
            DispatchJob(kind=JOB_EVENT, payload={"event": event, "data": data}, rooms=list(rooms))
        )

    def notify(self, user_id: str, title: str, body: str, data: Optional[Dict[str, Any]] = None) -> None:
        """Queue a push notification for one user."""
        if self.push_service is None:
            return
        self._queue.put_nowait(
            DispatchJob(
                kind=JOB_PUSH,
                payload={"title": title, "body": body, "data": data or {}},
                user_id=user_id,
            )
        )

    async def start(self) -> None:
        if self.running:
            return
        self._worker = asyncio.create_task(self._run(), name="notification-dispatcher")
        logger.info("Notification dispatcher started")

    async def stop(self) -> None:
        for task in list(self._retries):
            task.cancel()
        self._retries.clear()
        if self._worker is None:
            return
        self._worker.cancel()
        try:
            await self._worker
        except asyncio.CancelledError:
            pass
        self._worker = None
        logger.info("Notification dispatcher stopped")

    async def drain(self) -> None:
        """Wait until every queued job (including retries) has been handled."""
        while True:
            await self._queue.join()
            if not self._retries:
                return
            await asyncio.wait(list(self._retries))

    async def _run(self) -> None:
        while True:
            job = await self._queue.get()
            try:
                await self._deliver(job)
            except Exception as e:
                job.attempts += 1
                if job.attempts >= self.max_attempts:
                    self.dropped += 1
                    logger.error(f"Giving up on {job.kind} job after {job.attempts} attempts: {e}")
                else:
                    delay = self.base_delay * (2 ** (job.attempts - 1))
                    logger.warning(f"{job.kind} job failed (attempt {job.attempts}), retrying in {delay:.2f}s: {e}")
                    self._schedule_retry(job, delay)
            finally:
                self._queue.task_done()

    def _schedule_retry(self, job: DispatchJob, delay: float) -> None:
        task = asyncio.create_task(self._requeue_later(job, delay))
        self._retries.add(task)
        task.add_done_callback(self._retries.discard)

    async def _requeue_later(self, job: DispatchJob, delay: float) -> None:
        await asyncio.sleep(delay)
        self._queue.put_nowait(job)

    async def _deliver(self, job: DispatchJob) -> None:
        if job.kind == JOB_EVENT:
            if self.broadcaster is None:
                return
            await self.broadcaster.broadcast(job.rooms, job.payload["event"], job.payload["data"])
        elif job.kind == JOB_PUSH:
            # pywebpush is blocking
            await asyncio.to_thread(self.push_service.send_to_user, job.user_id, job.payload)
        else:
            raise ValueError(f"Unknown dispatch job kind: {job.kind}")
