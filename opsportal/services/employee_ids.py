"""
Employee id helpers (EMP001, EMP002, ...).
"""
import re
from typing import List

from sqlalchemy.orm import Session

from ..config import settings
from ..errors import InvalidArgumentError
from ..models.models import Employee


def _pattern(strict: bool = False) -> re.Pattern:
    digits = r"\d{3}" if strict else r"\d+"
    return re.compile(rf"^{re.escape(settings.employee_id_prefix)}({digits})$")


def _format(number: int) -> str:
    return f"{settings.employee_id_prefix}{number:03d}"


def generate_next_employee_id(db: Session) -> str:
    """One past the highest numeric suffix in use; gaps are not reused."""
    prefix = settings.employee_id_prefix
    existing = (
        db.query(Employee.employee_id)
        .filter(Employee.employee_id.like(f"{prefix}%"))
        .all()
    )
    pattern = _pattern()
    highest = 0
    for (employee_id,) in existing:
        match = pattern.match(employee_id or "")
        if match:
            highest = max(highest, int(match.group(1)))
    return _format(highest + 1)


def is_employee_id_available(db: Session, employee_id: str) -> bool:
    return db.query(Employee.id).filter(Employee.employee_id == employee_id).first() is None


def validate_employee_id_format(employee_id: str) -> bool:
    return bool(_pattern(strict=True).match(employee_id or ""))


def get_next_available_ids(db: Session, count: int = 5) -> List[str]:
    if count < 1:
        raise InvalidArgumentError("count must be positive")
    base = int(_pattern().match(generate_next_employee_id(db)).group(1))
    return [_format(base + offset) for offset in range(count)]
