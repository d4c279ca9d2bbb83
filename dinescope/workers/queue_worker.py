"""
Shared poll loop for queue-driven workers.

Each iteration: claim → execute → complete, or fail with the error message.
A handler returning True asks for a fresh task of the same type once the
claimed one is completed.
Sleeps when the queue is empty and backs off after a failure.
SIGINT / SIGTERM stop the loop after the current task finishes.
"""

from __future__ import annotations

import asyncio
import logging
import signal
from typing import Awaitable, Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from dinescope.config import settings
from dinescope.database import AsyncSessionLocal, engine
from dinescope.services.task_queue import (
    claim_next_task,
    complete_task,
    enqueue_task,
    fail_task,
    queue_stats,
)

logger = logging.getLogger(__name__)

TaskHandler = Callable[[AsyncSession, str], Awaitable[Optional[bool]]]


class QueueWorker:
    """Runs `handler(db, restaurant_id)` for every claimed task of `task_type`."""

    def __init__(
        self,
        task_type: str,
        handler: TaskHandler,
        poll_interval: Optional[float] = None,
        error_backoff: Optional[float] = None,
    ) -> None:
        self.task_type = task_type
        self.handler = handler
        self.poll_interval = poll_interval if poll_interval is not None else settings.worker_poll_interval_seconds
        self.error_backoff = error_backoff if error_backoff is not None else settings.worker_error_backoff_seconds
        self._stop = asyncio.Event()

    def stop(self) -> None:
        self._stop.set()

    async def run_once(self) -> bool:
        """Process at most one task. Returns True if a task was claimed."""
        async with AsyncSessionLocal() as db:
            task = await claim_next_task(db, [self.task_type])
            if task is None:
                return False

            task_id, restaurant_id, priority = task.id, task.restaurant_id, task.priority
            logger.info(
                "Processing %s task %s for restaurant %s (attempt %d/%d)",
                self.task_type, task_id, restaurant_id, task.attempts + 1, task.max_attempts,
            )

            try:
                requeue = await self.handler(db, restaurant_id)
            except Exception as exc:
                logger.exception("%s task %s failed", self.task_type, task_id)
                await db.rollback()
                await fail_task(db, task_id, str(exc) or exc.__class__.__name__)
                raise

            await complete_task(db, task_id)
            if requeue:
                await enqueue_task(db, restaurant_id, self.task_type, priority)
                logger.info("Re-queued %s for restaurant %s", self.task_type, restaurant_id)

            stats = await queue_stats(db)
            logger.info(
                "Task %s completed | queue pending=%d processing=%d completed=%d failed=%d",
                task_id, stats["pending"], stats["processing"],
                stats["completed"], stats["failed"],
            )
            return True

    async def _sleep(self, seconds: float) -> None:
        try:
            await asyncio.wait_for(self._stop.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            pass

    async def run(self) -> None:
        logger.info("%s worker started", self.task_type)
        while not self._stop.is_set():
            try:
                claimed = await self.run_once()
            except Exception:
                await self._sleep(self.error_backoff)
                continue
            if not claimed:
                await self._sleep(self.poll_interval)
        logger.info("%s worker stopped", self.task_type)


def run_worker(worker: QueueWorker) -> None:
    """Blocking entry point: configure logging, install signal handlers, run until stopped."""
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    async def _main() -> None:
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, worker.stop)
            except NotImplementedError:
                # Windows event loops do not support signal handlers
                pass
        try:
            await worker.run()
        finally:
            await engine.dispose()

    asyncio.run(_main())
