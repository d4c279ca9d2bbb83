"""
Task queue — claim / complete / fail semantics over the processing_queue table.

Claiming locks the row with FOR UPDATE SKIP LOCKED (ignored on SQLite) so at
most one worker processes a task. A failed task goes back to pending with a
fixed retry delay until it has used max_attempts, then it is marked failed
with the last error string.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from dinescope.config import settings
from dinescope.models.task import (
    STATUS_COMPLETED,
    STATUS_FAILED,
    STATUS_PENDING,
    STATUS_PROCESSING,
    TASK_AGGREGATE_FEATURES,
    TASK_EXTRACT_FEATURES,
    ProcessingTask,
)

logger = logging.getLogger(__name__)

_ACTIVE_STATUSES = (STATUS_PENDING, STATUS_PROCESSING)
_TASK_TYPES = (TASK_EXTRACT_FEATURES, TASK_AGGREGATE_FEATURES)

# A task still processing after this long has most likely lost its worker
STUCK_AFTER = timedelta(hours=1)


def _now() -> datetime:
    return datetime.now(timezone.utc)


async def enqueue_task(
    db: AsyncSession,
    restaurant_id: str,
    task_type: str,
    priority: int = 0,
) -> ProcessingTask:
    """
    Add a task unless an identical one is already pending or processing,
    in which case the existing task is returned.
    """
    existing = (
        await db.execute(
            select(ProcessingTask)
            .where(
                ProcessingTask.restaurant_id == restaurant_id,
                ProcessingTask.task_type == task_type,
                ProcessingTask.status.in_(_ACTIVE_STATUSES),
            )
            .limit(1)
        )
    ).scalar_one_or_none()
    if existing is not None:
        return existing

    task = ProcessingTask(
        restaurant_id=restaurant_id,
        task_type=task_type,
        priority=priority,
        status=STATUS_PENDING,
        attempts=0,
        max_attempts=settings.task_max_attempts,
    )
    db.add(task)
    await db.commit()
    logger.debug("Enqueued %s for restaurant %s", task_type, restaurant_id)
    return task


async def claim_next_task(
    db: AsyncSession,
    task_types: list[str],
) -> Optional[ProcessingTask]:
    """Claim the highest-priority, oldest runnable task of the given types."""
    now = _now()
    stmt = (
        select(ProcessingTask)
        .where(
            ProcessingTask.status == STATUS_PENDING,
            ProcessingTask.task_type.in_(task_types),
            or_(ProcessingTask.run_after.is_(None), ProcessingTask.run_after <= now),
        )
        .order_by(ProcessingTask.priority.desc(), ProcessingTask.created_at.asc())
        .limit(1)
        .with_for_update(skip_locked=True)
    )
    task = (await db.execute(stmt)).scalar_one_or_none()
    if task is None:
        await db.rollback()
        return None

    task.status = STATUS_PROCESSING
    task.started_at = now
    await db.commit()
    return task


async def complete_task(db: AsyncSession, task_id: str) -> None:
    task = await db.get(ProcessingTask, task_id)
    if task is None:
        return
    task.status = STATUS_COMPLETED
    task.completed_at = _now()
    await db.commit()


async def fail_task(db: AsyncSession, task_id: str, error: str) -> None:
    """Record a failure; retry after a fixed delay until max_attempts is reached."""
    task = await db.get(ProcessingTask, task_id)
    if task is None:
        return

    task.attempts += 1
    task.last_error = error
    task.started_at = None
    if task.attempts < task.max_attempts:
        task.status = STATUS_PENDING
        task.run_after = _now() + timedelta(seconds=settings.task_retry_delay_seconds)
        outcome = "will retry"
    else:
        task.status = STATUS_FAILED
        outcome = "max attempts reached"
    await db.commit()

    logger.warning(
        "Task %s failed (attempt %d/%d), %s: %s",
        task_id, task.attempts, task.max_attempts, outcome, error,
    )


async def queue_stats(db: AsyncSession) -> dict[str, int]:
    """Task counts per status, plus a total."""
    rows = (
        await db.execute(
            select(ProcessingTask.status, func.count()).group_by(ProcessingTask.status)
        )
    ).all()
    stats = {STATUS_PENDING: 0, STATUS_PROCESSING: 0, STATUS_COMPLETED: 0, STATUS_FAILED: 0}
    for status, count in rows:
        if status in stats:
            stats[status] = int(count)
    stats["total"] = sum(stats.values())
    return stats


async def pending_by_type(db: AsyncSession) -> dict[str, int]:
    """Pending task counts per task type; every known type is present."""
    rows = (
        await db.execute(
            select(ProcessingTask.task_type, func.count())
            .where(ProcessingTask.status == STATUS_PENDING)
            .group_by(ProcessingTask.task_type)
        )
    ).all()
    counts = {task_type: 0 for task_type in _TASK_TYPES}
    for task_type, count in rows:
        counts[task_type] = int(count)
    return counts


async def stuck_tasks(
    db: AsyncSession,
    now: Optional[datetime] = None,
) -> list[ProcessingTask]:
    """Tasks that have been processing for longer than STUCK_AFTER."""
    cutoff = (now or _now()) - STUCK_AFTER
    result = await db.execute(
        select(ProcessingTask)
        .where(
            ProcessingTask.status == STATUS_PROCESSING,
            ProcessingTask.started_at < cutoff,
        )
        .order_by(ProcessingTask.started_at.asc())
    )
    return list(result.scalars().all())
