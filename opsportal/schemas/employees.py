import uuid
from datetime import datetime
from typing import Optional
from enum import Enum

from pydantic import BaseModel, field_validator


# Enums
class EmployeeRole(str, Enum):
    field_engineer = "FIELD_ENGINEER"
    office_staff = "OFFICE_STAFF"


class EmployeeStatus(str, Enum):
    active = "ACTIVE"
    inactive = "INACTIVE"


# Employee Schemas
class EmployeeCreate(BaseModel):
    employee_id: Optional[str] = None
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    role: EmployeeRole = EmployeeRole.office_staff

    @field_validator('employee_id', 'email', 'phone', mode='before')
    @classmethod
    def empty_to_none(cls, v):
        if v is None:
            return None
        v = str(v).strip()
        return v or None


class EmployeeResponse(BaseModel):
    id: uuid.UUID
    employee_id: str
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    role: EmployeeRole
    status: EmployeeStatus
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class EmployeeIdValidate(BaseModel):
    employee_id: str
