"""
Attendance read side and location verification attempts.
"""
import math
from datetime import date, datetime, time
from typing import Any, Dict, Optional

import structlog
from sqlalchemy.orm import Session

from ..config import settings
from ..db import transaction
from ..errors import ConflictError, InvalidArgumentError
from ..models.models import Attendance, Employee
from ..schemas.attendance import ATTEMPT_ORDER, ApprovalStatus, AttemptCount, AttendanceStatus
from .geofence import inside_geofence
from .geolocation import parse_coordinates
from .task_service import get_employee
from .time_rules import get_today_date, get_utc_range_for_local_date, local_to_utc, utcnow


logger = structlog.get_logger(__name__)

LOCK_REASON = "Maximum location verification attempts exceeded"


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def serialize_attendance(record: Attendance, employee: Optional[Employee] = None) -> Dict[str, Any]:
    employee = employee or record.employee
    return {
        "id": str(record.id),
        "employee_id": employee.employee_id,
        "employee_name": employee.name,
        "date": _iso(record.date),
        "clock_in": _iso(record.clock_in),
        "clock_out": _iso(record.clock_out),
        "status": record.status,
        "location": record.location,
        "source": record.source,
        "attempt_count": record.attempt_count,
        "locked": bool(record.locked),
        "locked_reason": record.locked_reason,
        "task_id": str(record.task_id) if record.task_id else None,
        "task_start_time": record.task_start_time,
        "task_end_time": record.task_end_time,
        "task_location": record.task_location,
        "approval_status": record.approval_status,
        "created_at": _iso(record.created_at),
        "updated_at": _iso(record.updated_at),
    }


def _max_attempts() -> int:
    # The counter column only has ZERO/ONE/TWO
    return max(1, min(settings.max_location_attempts, len(ATTEMPT_ORDER) - 1))


def _todays_record(db: Session, employee: Employee, now: Optional[datetime] = None) -> Optional[Attendance]:
    start, end = get_utc_range_for_local_date(get_today_date(now))
    return (
        db.query(Attendance)
        .filter(Attendance.employee_id == employee.id, Attendance.date >= start, Attendance.date < end)
        .first()
    )


def list_attendance(
    db: Session,
    page: int = 1,
    limit: int = 50,
    employee_id: Optional[str] = None,
    day: Optional[date] = None,
) -> Dict[str, Any]:
    if page < 1 or limit < 1:
        raise InvalidArgumentError("page and limit must be positive")

    query = db.query(Attendance, Employee).join(Employee, Attendance.employee_id == Employee.id)
    if employee_id:
        query = query.filter(Employee.id == get_employee(db, employee_id).id)
    if day:
        local_midnight = local_to_utc(datetime.combine(day, time.min), settings.tz_default)
        start, end = get_utc_range_for_local_date(local_midnight)
        query = query.filter(Attendance.date >= start, Attendance.date < end)

    total = query.count()
    rows = (
        query.order_by(Attendance.date.desc(), Employee.employee_id.asc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return {
        "records": [serialize_attendance(record, employee) for record, employee in rows],
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "total_pages": math.ceil(total / limit),
        },
    }


def get_remaining_attempts(db: Session, employee_id: str, now: Optional[datetime] = None) -> Dict[str, Any]:
    employee = get_employee(db, employee_id)
    record = _todays_record(db, employee, now)
    attempt_count = record.attempt_count if record else AttemptCount.zero.value
    used = ATTEMPT_ORDER.index(attempt_count)
    return {
        "employee_id": employee.employee_id,
        "attempt_count": attempt_count,
        "remaining": max(0, _max_attempts() - used),
        "locked": bool(record.locked) if record else False,
        "locked_reason": record.locked_reason if record else None,
    }


def get_assigned_location(db: Session, employee_id: str, now: Optional[datetime] = None) -> Optional[Dict[str, Any]]:
    """Snapshot of today's linked task, or None when nothing is assigned."""
    employee = get_employee(db, employee_id)
    record = _todays_record(db, employee, now)
    if not record or not record.task_id:
        return None
    return {
        "employee_id": employee.employee_id,
        "task_id": str(record.task_id),
        "task_location": record.task_location,
        "task_start_time": record.task_start_time,
        "task_end_time": record.task_end_time,
        "status": record.status,
    }


def verify_location(
    db: Session,
    *,
    employee_id: str,
    latitude,
    longitude,
    site_latitude,
    site_longitude,
    radius_m: Optional[float] = None,
    accuracy_m: Optional[float] = None,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """
    Check a reported position against a site geofence.

    A miss uses one attempt; using the last attempt locks today's record until an
    admin resets it. A hit leaves the counter alone.

    Raises:
        NotFoundError: unknown employee
        InvalidArgumentError: bad coordinates
        ConflictError: today's record is already locked
    """
    employee = get_employee(db, employee_id)
    lat, lng = parse_coordinates(latitude, longitude)
    site_lat, site_lng = parse_coordinates(site_latitude, site_longitude)
    now = now or utcnow()

    with transaction(db, "verify location"):
        record = _todays_record(db, employee, now)
        if record and record.locked:
            raise ConflictError(record.locked_reason or LOCK_REASON)

        inside, distance, is_risk = inside_geofence(lat, lng, site_lat, site_lng, radius_m, accuracy_m)
        if not inside:
            if record is None:
                record = Attendance(
                    employee_id=employee.id,
                    date=get_today_date(now),
                    status=AttendanceStatus.absent.value,
                    location="Location Verification",
                    attempt_count=AttemptCount.zero.value,
                    locked=False,
                    approval_status=ApprovalStatus.pending.value,
                    created_at=now,
                )
                db.add(record)
            used = min(ATTEMPT_ORDER.index(record.attempt_count or AttemptCount.zero.value) + 1, _max_attempts())
            record.attempt_count = ATTEMPT_ORDER[used]
            record.updated_at = now
            if used >= _max_attempts():
                record.locked = True
                record.locked_reason = LOCK_REASON
                logger.warning("attendance_locked", employee_id=employee.employee_id)

    attempts = get_remaining_attempts(db, employee_id, now)
    logger.info(
        "location_verified",
        employee_id=employee.employee_id,
        inside=inside,
        distance_m=round(distance, 1),
        remaining=attempts["remaining"],
    )
    return {
        "verified": inside,
        "distance_m": round(distance, 1),
        "accuracy_risk": is_risk,
        **attempts,
    }
