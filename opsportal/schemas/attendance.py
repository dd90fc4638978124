from typing import Optional
from enum import Enum

from pydantic import BaseModel, Field


# Enums
class AttendanceStatus(str, Enum):
    present = "PRESENT"
    late = "LATE"
    absent = "ABSENT"
    markdown = "MARKDOWN"


class AttemptCount(str, Enum):
    zero = "ZERO"
    one = "ONE"
    two = "TWO"


ATTEMPT_ORDER = [AttemptCount.zero.value, AttemptCount.one.value, AttemptCount.two.value]


class ApprovalStatus(str, Enum):
    pending = "PENDING"
    approved = "APPROVED"
    rejected = "REJECTED"


class AttendanceSource(str, Enum):
    admin = "ADMIN"
    employee = "EMPLOYEE"
    manual = "MANUAL"


# Attendance Schemas
class AttendanceStatusUpdate(BaseModel):
    # Validated by the service so a bad value is a 400, not a 422
    status: str


class Coordinates(BaseModel):
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)


class SiteGeofence(Coordinates):
    radius_m: Optional[float] = Field(default=None, gt=0)


class LocationCheck(BaseModel):
    employee_id: str
    latitude: float
    longitude: float
    accuracy_m: Optional[float] = None
    site: SiteGeofence
