from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..db import get_db
from ..schemas.attendance import AttendanceStatusUpdate
from ..schemas.tasks import TaskComplete, TaskCreate, TaskStatusUpdate
from ..services import task_service


router = APIRouter(prefix="/tasks", tags=["tasks"])


@router.post("", status_code=201)
def assign_task(payload: TaskCreate, db: Session = Depends(get_db)):
    task = task_service.create_task(db, **payload.model_dump())
    return {
        "success": True,
        "message": "Task assigned successfully and attendance status updated automatically",
        "data": task,
    }


@router.get("")
def list_tasks(
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=500),
    status: Optional[str] = None,
    db: Session = Depends(get_db),
):
    return {"success": True, "data": task_service.list_all_tasks(db, page=page, limit=limit, status=status)}


@router.get("/employee/{employee_id}")
def list_tasks_for_employee(employee_id: str, status: Optional[str] = None, db: Session = Depends(get_db)):
    tasks = task_service.list_employee_tasks(db, employee_id, status=status)
    return {"success": True, "data": {"tasks": tasks, "total": len(tasks)}}


@router.patch("/{task_id}/status")
def update_task(task_id: str, payload: TaskStatusUpdate, db: Session = Depends(get_db)):
    task = task_service.update_task_status(db, task_id, payload.status)
    return {
        "success": True,
        "message": "Task status updated successfully and attendance status updated automatically",
        "data": task,
    }


@router.post("/{task_id}/complete")
def complete_task(task_id: str, payload: TaskComplete, db: Session = Depends(get_db)):
    task = task_service.complete_task(db, task_id, payload.employee_id)
    return {"success": True, "message": "Task marked as completed", "data": task}


@router.put("/attendance/{employee_id}/status")
def override_attendance_status(employee_id: str, payload: AttendanceStatusUpdate, db: Session = Depends(get_db)):
    new_status = task_service.set_attendance_status(db, employee_id, payload.status)
    return {
        "success": True,
        "message": f"Attendance status updated to {new_status}",
        "data": {"employee_id": employee_id, "status": new_status},
    }


@router.post("/attendance/{employee_id}/reset-attempts")
def reset_attempts(employee_id: str, db: Session = Depends(get_db)):
    updated = task_service.reset_attendance_attempts(db, employee_id)
    return {
        "success": True,
        "message": "Attendance attempts reset",
        "data": {"employee_id": employee_id, "records_updated": updated},
    }
