"""Attendance endpoints"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from internmanage.database import get_db
from internmanage.dependencies import get_current_actor
from internmanage.exceptions import ForbiddenError
from internmanage.schemas import Actor, ApiResponse, BackfillRequest, BackfillResult
from internmanage.services.attendance_backfill import backfill_absences

router = APIRouter()


@router.post("/backfill", response_model=ApiResponse[BackfillResult])
async def backfill(
    payload: BackfillRequest,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    """Mark missed working days as absent; HR covers their own company only."""
    if not actor.verified or not (actor.is_admin or actor.is_hr):
        raise ForbiddenError("Forbidden: only HR and admin can backfill attendance")
    if actor.is_hr and not actor.company:
        raise ForbiddenError("Company information is required")

    summary = backfill_absences(db, as_of=payload.as_of, company=None if actor.is_admin else actor.company)
    return ApiResponse(
        message="Attendance backfill completed",
        data=BackfillResult(
            interns_processed=summary.interns_processed,
            records_created=summary.records_created,
        ),
    )
