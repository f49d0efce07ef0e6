"""Mark unrecorded working days of joined interns as absent."""
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Dict, Iterator, Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from internmanage.logging_config import get_logger
from internmanage.models import (
    Application,
    ApplicationStatus,
    Attendance,
    AttendanceStatus,
    Internship,
    SYSTEM_MARKER,
    User,
    UserType,
)
from internmanage.services.assignment_store import AssignmentStore

logger = get_logger(__name__)

AUTO_ABSENT_REMARK = "Auto-marked absent by system"


@dataclass
class BackfillSummary:
    interns_processed: int = 0
    records_created: int = 0


def working_days(start: date, end: date) -> Iterator[date]:
    """Monday to Friday between ``start`` and ``end`` inclusive."""
    current = start
    while current <= end:
        if current.weekday() < 5:
            yield current
        current += timedelta(days=1)


def employment_windows(db: Session, company: Optional[str] = None) -> Dict[int, Tuple[date, Optional[date]]]:
    """Earliest joined internship window per intern."""
    query = (
        db.query(Application.user_id, Internship.internship_start_date, Internship.internship_end_date)
        .join(Internship, Application.internship_id == Internship.id)
        .join(User, Application.user_id == User.id)
        .filter(Application.status == ApplicationStatus.JOINED, User.type == UserType.INTERN)
    )
    if company is not None:
        query = query.filter(User.company == company)

    windows: Dict[int, Tuple[date, Optional[date]]] = {}
    for user_id, start, end in query.all():
        if start is None:
            continue
        if user_id not in windows or start < windows[user_id][0]:
            windows[user_id] = (start, end)
    return windows


def backfill_absences(db: Session, as_of: Optional[date] = None, company: Optional[str] = None) -> BackfillSummary:
    """Insert an ``Absent`` record for every unmarked weekday up to yesterday.

    Running it again, or twice at the same time, creates nothing new: each
    insert runs in its own savepoint and a duplicate day is skipped.
    """
    yesterday = (as_of or date.today()) - timedelta(days=1)
    summary = BackfillSummary()
    store = AssignmentStore(db)

    with store.guard():
        windows = employment_windows(db, company)

    for user_id, (start, end) in windows.items():
        summary.interns_processed += 1
        last_day = min(end or yesterday, yesterday)
        if start > last_day:
            continue

        with store.guard():
            marked = {
                day
                for (day,) in db.query(Attendance.date).filter(
                    Attendance.user_id == user_id,
                    Attendance.date >= start,
                    Attendance.date <= last_day,
                )
            }

        for day in working_days(start, last_day):
            if day in marked:
                continue
            record = Attendance(
                user_id=user_id,
                date=day,
                status=AttendanceStatus.ABSENT,
                remarks=AUTO_ABSENT_REMARK,
                marked_by=SYSTEM_MARKER,
                marked_at=datetime.now(timezone.utc),
            )
            try:
                with store.guard(), db.begin_nested():
                    db.add(record)
            except IntegrityError:
                logger.debug("Attendance for user %s on %s already recorded", user_id, day)
                continue
            summary.records_created += 1

    with store.guard():
        db.commit()

    logger.info(
        "Attendance backfill up to %s: %d interns, %d absences recorded",
        yesterday,
        summary.interns_processed,
        summary.records_created,
    )
    return summary
