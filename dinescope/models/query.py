"""UserQuery ORM model — audit trail of every logged search."""

import uuid

from sqlalchemy import Column, Text, String, Double, JSON, TIMESTAMP, func

from dinescope.database import Base


def _uuid() -> str:
    return str(uuid.uuid4())


class UserQuery(Base):
    """
    Records a search: what was asked, how it was understood, and which
    restaurants were returned in which order.
    """

    __tablename__ = "user_queries"

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(36), nullable=True, index=True)

    query_text = Column(Text, nullable=False)
    parsed_query = Column(JSON, nullable=True)
    filters_applied = Column(JSON, nullable=True)

    latitude = Column(Double, nullable=True)
    longitude = Column(Double, nullable=True)
    radius_miles = Column(Double, nullable=True)

    # [{restaurant_id, name, score, position, distance_miles}, ...]
    results_returned = Column(JSON, nullable=False, default=list)

    created_at = Column(
        TIMESTAMP(timezone=True), nullable=False, server_default=func.now()
    )
