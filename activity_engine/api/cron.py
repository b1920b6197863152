"""Cron API: HTTP trigger for the missed-task sweep.

Hosted schedulers call this endpoint with ``Authorization: Bearer
<CRON_SECRET>``.
"""

from datetime import datetime, timezone
from uuid import UUID

from fastapi import APIRouter, Depends, Query

from ..core import SessionFactoryDep, SettingsDep, require_cron_secret
from ..jobs.missed_task_cron import run_sweep
from ..schemas import SweepResponse
from ..services.reminders import ReminderConfig


router = APIRouter(prefix="/cron", tags=["cron"])


@router.post(
    "/missed-tasks",
    response_model=SweepResponse,
    dependencies=[Depends(require_cron_secret)],
    summary="Run the missed-task sweep",
)
async def trigger_missed_task_sweep(
    session_factory: SessionFactoryDep,
    settings: SettingsDep,
    organization_id: UUID | None = Query(default=None),
    include_digests: bool = Query(default=True),
):
    """Raise missed-task alerts (and digests) now."""
    results = await run_sweep(
        session_factory,
        datetime.now(timezone.utc),
        organization_id=organization_id,
        include_digests=include_digests,
        reminder_config=ReminderConfig.from_settings(settings),
    )
    return SweepResponse(**results)
