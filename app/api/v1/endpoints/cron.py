"""
Cron API
Externally triggered periodic jobs (EventBridge / cron), guarded by X-Cron-Secret
"""

from typing import Optional

import structlog
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_db, verify_cron_secret
from app.config import settings
from app.services.notification_service import send_stage_reminders

logger = structlog.get_logger(__name__)

router = APIRouter()


@router.post("/stage-reminders", dependencies=[Depends(verify_cron_secret)])
async def run_stage_reminders(
    days: Optional[int] = Query(None, ge=1, description="Override STAGE_REMINDER_DAYS"),
    db: AsyncSession = Depends(get_db),
):
    """
    Remind clients and agencies about assignments stuck in a stage

    **Auth**: `X-Cron-Secret` header
    """
    threshold = days or settings.STAGE_REMINDER_DAYS
    count = await send_stage_reminders(db, threshold)
    await db.commit()
    logger.info("cron_stage_reminders", reminded=count, days=threshold)
    return {"success": True, "reminded": count, "days": threshold}
