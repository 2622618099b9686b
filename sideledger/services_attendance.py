"""Attendance domain helpers.

Implements the per-day attendance state machine: date normalization to a
calendar-day key, the role-coupled status rules (workers can only ever submit
`pending`; admins verify by overwriting with a final status) and the
insert-or-update that keeps exactly one record per worker per day.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from sideledger.errors import ValidationError
from sideledger.models import Attendance, AttendanceStatus, Role, User

logger = logging.getLogger(__name__)


@dataclass
class MarkResult:
    record: Attendance
    created: bool


def normalize_attendance_date(value: date | datetime | str | None) -> date:
    """Truncate a date, datetime or ISO string to its calendar day.

    The calendar day is taken exactly as written; offsets in ISO strings are
    parsed but never used to shift the day.
    """
    if value is None:
        raise ValidationError("Date is required.")
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    if not text:
        raise ValidationError("Date is required.")
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
    except ValueError as exc:
        raise ValidationError(f"Invalid date: {text!r}") from exc


def resolve_worker_id(actor: User, worker_id: int | None) -> int:
    """Workers always act on themselves; admins must name a worker."""
    if actor.role == Role.WORKER:
        return actor.id
    if worker_id is None:
        raise ValidationError("Worker ID is required.")
    return worker_id


def status_for_new_record(actor: User, requested: AttendanceStatus | None) -> AttendanceStatus:
    if actor.role == Role.WORKER:
        return AttendanceStatus.PENDING
    return requested or AttendanceStatus.PRESENT


def status_for_existing_record(
    actor: User,
    requested: AttendanceStatus | None,
    current: AttendanceStatus,
) -> AttendanceStatus:
    if actor.role == Role.WORKER:
        return AttendanceStatus.PENDING
    return requested or current


def _find_record(db: Session, worker_id: int, day: date) -> Attendance | None:
    return db.scalar(select(Attendance).where(Attendance.worker_id == worker_id, Attendance.date == day))


def _apply_resubmission(
    record: Attendance,
    actor: User,
    *,
    status: AttendanceStatus | None,
    time_out: datetime | None,
    notes: str | None,
) -> None:
    if time_out is not None:
        record.time_out = time_out
    if notes is not None:
        record.notes = notes
    record.status = status_for_existing_record(actor, status, record.status)
    record.updated_at = datetime.utcnow()


def mark_attendance(
    db: Session,
    actor: User,
    *,
    worker_id: int | None,
    on: date | datetime | str | None,
    status: AttendanceStatus | None = None,
    time_in: datetime | None = None,
    time_out: datetime | None = None,
    notes: str | None = None,
) -> MarkResult:
    """Create or update the single attendance record for (worker, day).

    The insert runs in a savepoint so a concurrent writer that wins the
    unique (worker_id, date) constraint turns this call into an update of the
    winning row instead of a duplicate-key failure.
    """
    target_id = resolve_worker_id(actor, worker_id)
    day = normalize_attendance_date(on)

    if actor.role == Role.ADMIN:
        target = db.get(User, target_id)
        if target is None or target.role != Role.WORKER:
            raise ValidationError(f"Unknown worker id {target_id}.")

    existing = _find_record(db, target_id, day)
    if existing is None:
        record = Attendance(
            worker_id=target_id,
            date=day,
            status=status_for_new_record(actor, status),
            time_in=time_in,
            time_out=time_out,
            notes=notes,
        )
        try:
            with db.begin_nested():
                db.add(record)
        except IntegrityError:
            logger.info("Attendance insert raced for worker_id=%s date=%s; updating instead", target_id, day)
            existing = _find_record(db, target_id, day)
            if existing is None:
                raise
        else:
            db.commit()
            db.refresh(record)
            logger.info(
                "Attendance created worker_id=%s date=%s status=%s by user_id=%s",
                target_id,
                day,
                record.status.value,
                actor.id,
            )
            return MarkResult(record=record, created=True)

    _apply_resubmission(existing, actor, status=status, time_out=time_out, notes=notes)
    db.commit()
    db.refresh(existing)
    logger.info(
        "Attendance updated worker_id=%s date=%s status=%s by user_id=%s",
        target_id,
        day,
        existing.status.value,
        actor.id,
    )
    return MarkResult(record=existing, created=False)
