"""
Task assignment and the attendance reconciliation it drives.

Assigning, re-statusing or completing a task recomputes the employee's attendance
row for the current local day. The row keeps a single linked-task pointer (the
most recently assigned task); sibling tasks only matter when the linked task is
cancelled.
"""
import math
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

import structlog
from sqlalchemy.orm import Session

from ..db import transaction
from ..errors import InvalidArgumentError, NotFoundError
from ..models.models import Attendance, Employee, Task
from ..schemas.attendance import AttemptCount, AttendanceSource, AttendanceStatus, ApprovalStatus
from ..schemas.employees import EmployeeRole
from ..schemas.tasks import ACTIVE_TASK_STATUSES, TASK_TRANSITIONS, TaskStatus
from .time_rules import (
    derive_assignment_status,
    format_time_of_day,
    get_today_date,
    get_utc_range_for_local_date,
    parse_time_of_day,
    utcnow,
)


logger = structlog.get_logger(__name__)

TASK_STATUSES = [s.value for s in TaskStatus]
ATTENDANCE_STATUSES = [s.value for s in AttendanceStatus]


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def serialize_task(task: Task, employee: Optional[Employee] = None) -> Dict[str, Any]:
    employee = employee or task.employee
    return {
        "id": str(task.id),
        "employee_id": employee.employee_id,
        "title": task.title,
        "description": task.description,
        "category": task.category,
        "location": task.location,
        "start_time": task.start_time,
        "end_time": task.end_time,
        "assigned_by": task.assigned_by,
        "assigned_at": _iso(task.assigned_at),
        "status": task.status,
        "created_at": _iso(task.created_at),
        "updated_at": _iso(task.updated_at),
    }


def get_employee(db: Session, employee_id: str) -> Employee:
    employee = db.query(Employee).filter(Employee.employee_id == employee_id).first()
    if not employee:
        raise NotFoundError(f"Employee with employee ID {employee_id} not found")
    return employee


def _get_task(db: Session, task_id) -> Task:
    try:
        task_uuid = uuid.UUID(str(task_id))
    except ValueError as exc:
        raise InvalidArgumentError("Invalid task id") from exc
    task = db.query(Task).filter(Task.id == task_uuid).first()
    if not task:
        raise NotFoundError(f"Task {task_id} not found")
    return task


def _normalize_status(value: Optional[str], allowed: List[str], kind: str) -> str:
    status = (value or "").strip().upper()
    if status not in allowed:
        raise InvalidArgumentError(f"Invalid {kind} status '{value}'. Expected one of: {', '.join(allowed)}")
    return status


def is_valid_transition(current: str, new: str) -> bool:
    """Whether the task state machine allows current -> new (same-state is a no-op)."""
    return current == new or new in TASK_TRANSITIONS.get(current, set())


def _todays_attendance_query(db: Session, employee: Employee, today: datetime):
    start, end = get_utc_range_for_local_date(today)
    return db.query(Attendance).filter(
        Attendance.employee_id == employee.id,
        Attendance.date >= start,
        Attendance.date < end,
    )


def create_task(
    db: Session,
    *,
    employee_id: str,
    title: str,
    description: str,
    category: Optional[str] = None,
    location: Optional[str] = None,
    start_time: Optional[str] = None,
    end_time: Optional[str] = None,
    assigned_by: str = "admin",
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """
    Assign a task and reconcile today's attendance row in one transaction.

    Args:
        db: Database session
        employee_id: External employee id (e.g. EMP007)
        title: Task title
        description: Task description
        category: Optional category label
        location: Optional task location, snapshotted onto the attendance row
        start_time: Optional local "HH:MM"; drives PRESENT/LATE
        end_time: Optional local "HH:MM"
        assigned_by: Identifier of the assigning actor
        now: Current instant (default: wall clock)

    Returns:
        Serialized task

    Raises:
        NotFoundError: unknown employee
        InvalidArgumentError: malformed start/end time
        TransactionFailure: any failure inside the transaction (nothing persisted)
    """
    employee = get_employee(db, employee_id)
    for value in (start_time, end_time):
        if value:
            parse_time_of_day(value)

    now = now or utcnow()
    today = get_today_date(now)

    with transaction(db, "assign task"):
        # A fresh assignment clears any lockout left from earlier work today
        _todays_attendance_query(db, employee, today).update(
            {
                Attendance.attempt_count: AttemptCount.zero.value,
                Attendance.locked: False,
                Attendance.locked_reason: None,
            },
            synchronize_session="fetch",
        )

        task = Task(
            employee_id=employee.id,
            title=title.strip(),
            description=description or "",
            category=category,
            location=location,
            start_time=start_time,
            end_time=end_time,
            assigned_by=assigned_by,
            assigned_at=now,
            status=TaskStatus.pending.value,
            created_at=now,
            updated_at=now,
        )
        db.add(task)
        db.flush()

        attendance_status = derive_assignment_status(start_time, now)
        snapshot = {
            "task_id": task.id,
            "task_start_time": start_time,
            "task_end_time": end_time,
            "task_location": location,
            "location": location or "Task Assignment",
            "status": attendance_status,
            "source": AttendanceSource.admin.value,
            "updated_at": now,
        }

        attendance = _todays_attendance_query(db, employee, today).first()
        if attendance:
            # clock_in and approval_status are per day and stay as they are
            for field, value in snapshot.items():
                setattr(attendance, field, value)
            if employee.role == EmployeeRole.field_engineer.value and attendance.clock_out:
                attendance.clock_out = None
                logger.info("attendance_clock_out_reset", employee_id=employee.employee_id, task_id=str(task.id))
            logger.info("attendance_updated_for_task", employee_id=employee.employee_id, status=attendance_status)
        else:
            db.add(Attendance(
                employee_id=employee.id,
                date=today,
                attempt_count=AttemptCount.zero.value,
                locked=False,
                clock_in=None,
                clock_out=None,
                approval_status=ApprovalStatus.pending.value,
                created_at=now,
                **snapshot,
            ))
            logger.info("attendance_created_for_task", employee_id=employee.employee_id, status=attendance_status)

    db.refresh(task)
    logger.info("task_assigned", task_id=str(task.id), employee_id=employee.employee_id, assigned_by=assigned_by)
    return serialize_task(task, employee)


def _status_for_linked_task(db: Session, task: Task, status: str, today: datetime) -> str:
    if status != TaskStatus.cancelled.value:
        return AttendanceStatus.present.value
    start, end = get_utc_range_for_local_date(today)
    siblings = (
        db.query(Task.id)
        .filter(
            Task.employee_id == task.employee_id,
            Task.assigned_at >= start,
            Task.assigned_at < end,
            Task.status.in_(ACTIVE_TASK_STATUSES),
            Task.id != task.id,
        )
        .count()
    )
    return AttendanceStatus.present.value if siblings > 0 else AttendanceStatus.absent.value


def update_task_status(db: Session, task_id, status: str, now: Optional[datetime] = None) -> Dict[str, Any]:
    """
    Change a task's status and recompute the linked attendance row.

    Raises:
        InvalidArgumentError: status not one of PENDING/IN_PROGRESS/COMPLETED/CANCELLED
        NotFoundError: unknown task
        TransactionFailure: any failure inside the transaction
    """
    status = _normalize_status(status, TASK_STATUSES, "task")
    task = _get_task(db, task_id)
    now = now or utcnow()
    today = get_today_date(now)

    if not is_valid_transition(task.status, status):
        logger.warning("task_transition_unusual", task_id=str(task.id), current=task.status, new=status)

    with transaction(db, "update task status"):
        task.status = status
        task.updated_at = now

        attendance = _todays_attendance_query(db, task.employee, today).first()
        if attendance and attendance.task_id == task.id:
            attendance_status = _status_for_linked_task(db, task, status, today)
            if attendance.status != attendance_status:
                attendance.status = attendance_status
                attendance.updated_at = now
                logger.info(
                    "attendance_status_updated",
                    employee_id=task.employee.employee_id,
                    task_id=str(task.id),
                    status=attendance_status,
                )

    db.refresh(task)
    logger.info("task_status_updated", task_id=str(task.id), status=status)
    return serialize_task(task)


def list_employee_tasks(db: Session, employee_id: str, status: Optional[str] = None) -> List[Dict[str, Any]]:
    employee = get_employee(db, employee_id)
    query = db.query(Task).filter(Task.employee_id == employee.id)
    if status:
        query = query.filter(Task.status == _normalize_status(status, TASK_STATUSES, "task"))
    tasks = query.order_by(Task.assigned_at.desc()).all()
    return [serialize_task(task, employee) for task in tasks]


def list_all_tasks(db: Session, page: int = 1, limit: int = 50, status: Optional[str] = None) -> Dict[str, Any]:
    if page < 1 or limit < 1:
        raise InvalidArgumentError("page and limit must be positive")

    query = db.query(Task, Employee).join(Employee, Task.employee_id == Employee.id)
    if status:
        query = query.filter(Task.status == _normalize_status(status, TASK_STATUSES, "task"))
    total = query.count()
    rows = (
        query.order_by(Task.assigned_at.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    tasks = []
    for task, employee in rows:
        payload = serialize_task(task, employee)
        payload["employee_name"] = employee.name
        payload["employee_email"] = employee.email
        tasks.append(payload)
    return {
        "tasks": tasks,
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "total_pages": math.ceil(total / limit),
        },
    }


def set_attendance_status(db: Session, employee_id: str, status: str, now: Optional[datetime] = None) -> str:
    """Manual override of today's attendance status; bypasses task reconciliation."""
    status = _normalize_status(status, ATTENDANCE_STATUSES, "attendance")
    employee = get_employee(db, employee_id)
    now = now or utcnow()
    today = get_today_date(now)

    with transaction(db, "update attendance status"):
        attendance = _todays_attendance_query(db, employee, today).first()
        if attendance:
            attendance.status = status
            attendance.updated_at = now
        else:
            db.add(Attendance(
                employee_id=employee.id,
                date=today,
                status=status,
                location="Manual Status Update",
                source=AttendanceSource.manual.value,
                attempt_count=AttemptCount.zero.value,
                locked=False,
                approval_status=ApprovalStatus.pending.value,
                created_at=now,
                updated_at=now,
            ))

    logger.info("attendance_status_overridden", employee_id=employee_id, status=status)
    return status


def complete_task(db: Session, task_id, employee_id: str, now: Optional[datetime] = None) -> Dict[str, Any]:
    """
    Field-engineer completion: mark COMPLETED and stamp the task end time on
    today's linked attendance rows. Day clock-out is a separate action.
    """
    employee = get_employee(db, employee_id)
    task = _get_task(db, task_id)
    if task.employee_id != employee.id:
        raise NotFoundError(f"Task {task_id} not found for employee {employee_id}")
    now = now or utcnow()
    today = get_today_date(now)

    with transaction(db, "complete task"):
        task.status = TaskStatus.completed.value
        task.updated_at = now
        _todays_attendance_query(db, employee, today).filter(Attendance.task_id == task.id).update(
            {
                Attendance.task_end_time: format_time_of_day(now),
                Attendance.updated_at: now,
            },
            synchronize_session="fetch",
        )

    db.refresh(task)
    logger.info("task_completed", task_id=str(task.id), employee_id=employee_id)
    return serialize_task(task, employee)


def reset_attendance_attempts(db: Session, employee_id: str, now: Optional[datetime] = None) -> int:
    """Zero today's attempt counter and lift any lock. Returns the number of rows touched."""
    employee = get_employee(db, employee_id)
    now = now or utcnow()
    today = get_today_date(now)

    with transaction(db, "reset attendance attempts"):
        updated = _todays_attendance_query(db, employee, today).update(
            {
                Attendance.attempt_count: AttemptCount.zero.value,
                Attendance.locked: False,
                Attendance.locked_reason: None,
                Attendance.updated_at: now,
            },
            synchronize_session="fetch",
        )

    logger.info("attendance_attempts_reset", employee_id=employee_id, rows=updated)
    return updated
