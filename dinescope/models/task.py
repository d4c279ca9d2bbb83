"""Processing-queue ORM model — background work items for the workers."""

import uuid

from sqlalchemy import Column, Integer, Text, String, TIMESTAMP, ForeignKey, Index, func

from dinescope.database import Base

TASK_EXTRACT_FEATURES = "extract_features"
TASK_AGGREGATE_FEATURES = "aggregate_features"

STATUS_PENDING = "pending"
STATUS_PROCESSING = "processing"
STATUS_COMPLETED = "completed"
STATUS_FAILED = "failed"


def _uuid() -> str:
    return str(uuid.uuid4())


class ProcessingTask(Base):
    """
    A unit of per-restaurant pipeline work.
    Retried after a fixed delay until max_attempts, then marked failed.
    """

    __tablename__ = "processing_queue"
    __table_args__ = (
        Index("ix_processing_queue_claim", "status", "task_type", "priority"),
    )

    id = Column(String(36), primary_key=True, default=_uuid)
    restaurant_id = Column(
        String(36),
        ForeignKey("restaurants.id", ondelete="CASCADE"),
        nullable=False,
    )
    task_type = Column(Text, nullable=False)   # extract_features | aggregate_features
    status = Column(Text, nullable=False, default=STATUS_PENDING)
    priority = Column(Integer, nullable=False, default=0)

    attempts = Column(Integer, nullable=False, default=0)
    max_attempts = Column(Integer, nullable=False, default=3)
    last_error = Column(Text, nullable=True)

    run_after = Column(TIMESTAMP(timezone=True), nullable=True)
    started_at = Column(TIMESTAMP(timezone=True), nullable=True)
    completed_at = Column(TIMESTAMP(timezone=True), nullable=True)
    created_at = Column(
        TIMESTAMP(timezone=True), nullable=False, server_default=func.now()
    )
