"""
Monitoring router — queue and data-quality dashboard for operators.

Endpoints:
  GET /monitoring
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from dinescope.database import get_db
from dinescope.schemas.monitoring import MonitoringDashboard
from dinescope.services.monitoring import get_dashboard

router = APIRouter(tags=["monitoring"])


@router.get("/monitoring", response_model=MonitoringDashboard)
async def monitoring_dashboard(db: AsyncSession = Depends(get_db)) -> MonitoringDashboard:
    """Queue counts, stuck tasks and feature data-quality summary."""
    return await get_dashboard(db)
