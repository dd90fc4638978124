from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..db import get_db, transaction
from ..errors import ConflictError, InvalidArgumentError
from ..models.models import Employee
from ..schemas.employees import EmployeeCreate, EmployeeIdValidate, EmployeeResponse
from ..services import employee_ids
from ..services.task_service import get_employee


router = APIRouter(prefix="/employees", tags=["employees"])
id_router = APIRouter(prefix="/employee-id", tags=["employees"])


def _serialize(employee: Employee) -> dict:
    return EmployeeResponse.model_validate(employee).model_dump(mode="json")


@router.get("")
def list_employees(
    q: Optional[str] = None,
    role: Optional[str] = None,
    status: Optional[str] = "ACTIVE",
    db: Session = Depends(get_db),
):
    query = db.query(Employee)
    if status and status.upper() != "ALL":
        query = query.filter(Employee.status == status.upper())
    if role:
        query = query.filter(Employee.role == role.upper())
    if q:
        like = f"%{q}%"
        query = query.filter(
            (Employee.name.ilike(like)) | (Employee.employee_id.ilike(like)) | (Employee.email.ilike(like))
        )
    employees: List[Employee] = query.order_by(Employee.employee_id.asc()).all()
    return {"success": True, "data": {"employees": [_serialize(e) for e in employees], "total": len(employees)}}


@router.get("/{employee_id}")
def get_employee_by_id(employee_id: str, db: Session = Depends(get_db)):
    return {"success": True, "data": _serialize(get_employee(db, employee_id))}


@router.post("", status_code=201)
def create_employee(payload: EmployeeCreate, db: Session = Depends(get_db)):
    employee_id = payload.employee_id or employee_ids.generate_next_employee_id(db)
    if not employee_ids.validate_employee_id_format(employee_id):
        raise InvalidArgumentError(f"Invalid employee ID format '{employee_id}'")
    if not employee_ids.is_employee_id_available(db, employee_id):
        raise ConflictError("Employee ID already exists")
    if payload.email and db.query(Employee.id).filter(Employee.email == payload.email).first():
        raise ConflictError("Email already exists")

    with transaction(db, "create employee"):
        employee = Employee(
            employee_id=employee_id,
            name=payload.name.strip(),
            email=payload.email,
            phone=payload.phone,
            role=payload.role.value,
            status="ACTIVE",
        )
        db.add(employee)
        db.flush()
    db.refresh(employee)
    return {"success": True, "message": "Employee created successfully", "data": _serialize(employee)}


@id_router.get("/generate")
def generate_next_id(db: Session = Depends(get_db)):
    return {"success": True, "data": {"employee_id": employee_ids.generate_next_employee_id(db)}}


@id_router.get("/check/{employee_id}")
def check_availability(employee_id: str, db: Session = Depends(get_db)):
    return {
        "success": True,
        "data": {
            "employee_id": employee_id,
            "available": employee_ids.is_employee_id_available(db, employee_id),
            "valid_format": employee_ids.validate_employee_id_format(employee_id),
        },
    }


@id_router.get("/preview")
def preview_ids(count: int = Query(5, ge=1, le=50), db: Session = Depends(get_db)):
    return {"success": True, "data": {"employee_ids": employee_ids.get_next_available_ids(db, count)}}


@id_router.post("/validate")
def validate_format(payload: EmployeeIdValidate):
    return {
        "success": True,
        "data": {
            "employee_id": payload.employee_id,
            "valid": employee_ids.validate_employee_id_format(payload.employee_id),
        },
    }
