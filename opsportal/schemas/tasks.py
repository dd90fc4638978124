from typing import Optional
from enum import Enum

from pydantic import BaseModel, field_validator


# Enums
class TaskStatus(str, Enum):
    pending = "PENDING"
    in_progress = "IN_PROGRESS"
    completed = "COMPLETED"
    cancelled = "CANCELLED"


ACTIVE_TASK_STATUSES = (TaskStatus.pending.value, TaskStatus.in_progress.value, TaskStatus.completed.value)

# Forward path plus cancellation; COMPLETED and CANCELLED are terminal
TASK_TRANSITIONS = {
    TaskStatus.pending.value: {TaskStatus.in_progress.value, TaskStatus.cancelled.value},
    TaskStatus.in_progress.value: {TaskStatus.completed.value, TaskStatus.cancelled.value},
    TaskStatus.completed.value: set(),
    TaskStatus.cancelled.value: set(),
}


# Task Schemas
class TaskCreate(BaseModel):
    employee_id: str
    title: str
    description: str
    category: Optional[str] = None
    location: Optional[str] = None
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    assigned_by: str = "admin"

    @field_validator('employee_id', 'title', 'description', mode='before')
    @classmethod
    def required_text(cls, v):
        v = str(v or "").strip()
        if not v:
            raise ValueError("must not be empty")
        return v

    @field_validator('category', 'location', 'start_time', 'end_time', mode='before')
    @classmethod
    def empty_to_none(cls, v):
        if v is None:
            return None
        v = str(v).strip()
        return v or None


class TaskStatusUpdate(BaseModel):
    # Validated by the service so a bad value is a 400, not a 422
    status: str


class TaskComplete(BaseModel):
    employee_id: str
