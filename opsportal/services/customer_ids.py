"""
Customer id sequences: one counter row per prefix, ids look like CUS0001.
"""
import re
from typing import List, Optional

import structlog
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..config import settings
from ..db import transaction
from ..errors import ConflictError, InvalidArgumentError
from ..models.models import CustomerIdConfig
from .time_rules import utcnow


logger = structlog.get_logger(__name__)

PREFIX_PATTERN = re.compile(r"^[A-Z]{2,5}$")


def validate_prefix(prefix: str) -> str:
    if not prefix or not PREFIX_PATTERN.match(prefix):
        raise InvalidArgumentError("Prefix must be 2-5 uppercase letters only")
    return prefix


def format_customer_id(prefix: str, sequence: int) -> str:
    return f"{prefix}{sequence:04d}"


def _allocate(db: Session, prefix: str) -> Optional[int]:
    """
    Increment the prefix counter and return the value it held before.
    Returns None when the prefix has no counter row yet.
    """
    if db.get_bind().dialect.update_returning:
        stmt = (
            update(CustomerIdConfig)
            .where(CustomerIdConfig.prefix == prefix)
            .values(next_sequence=CustomerIdConfig.next_sequence + 1, updated_at=utcnow())
            .returning(CustomerIdConfig.next_sequence)
        )
        allocated = db.execute(stmt).scalar_one_or_none()
        return None if allocated is None else allocated - 1

    # No UPDATE ... RETURNING on this backend: hold a row lock for the read-modify-write
    config = db.execute(
        select(CustomerIdConfig).where(CustomerIdConfig.prefix == prefix).with_for_update()
    ).scalar_one_or_none()
    if config is None:
        return None
    sequence = config.next_sequence
    config.next_sequence = sequence + 1
    config.updated_at = utcnow()
    return sequence


def generate_customer_id(db: Session, prefix: Optional[str] = None) -> str:
    """
    Allocate the next customer id for a prefix (default CUS).

    The first allocation for an unknown prefix creates its counter row inside a
    savepoint; if another session inserted the same prefix first, its row is
    used instead.
    """
    prefix = validate_prefix((prefix or settings.default_customer_prefix).strip())
    with transaction(db, "generate customer id"):
        sequence = _allocate(db, prefix)
        if sequence is None:
            try:
                with db.begin_nested():
                    db.add(CustomerIdConfig(prefix=prefix, next_sequence=1, is_active=True))
                logger.info("customer_prefix_created", prefix=prefix)
            except IntegrityError:
                logger.info("customer_prefix_created_concurrently", prefix=prefix)
            sequence = _allocate(db, prefix)

    customer_id = format_customer_id(prefix, sequence)
    logger.info("customer_id_generated", prefix=prefix, customer_id=customer_id)
    return customer_id


def add_custom_prefix(db: Session, prefix: str) -> CustomerIdConfig:
    validate_prefix(prefix)
    if db.query(CustomerIdConfig).filter(CustomerIdConfig.prefix == prefix).first():
        raise ConflictError("Prefix already exists")

    with transaction(db, "add customer id prefix"):
        config = CustomerIdConfig(prefix=prefix, next_sequence=1, is_active=True)
        db.add(config)
        try:
            db.flush()
        except IntegrityError as exc:
            # Another session inserted the prefix after the check above
            raise ConflictError("Prefix already exists") from exc

    logger.info("customer_prefix_added", prefix=prefix)
    return config


def list_active_prefixes(db: Session) -> List[str]:
    configs = (
        db.query(CustomerIdConfig.prefix)
        .filter(CustomerIdConfig.is_active.is_(True))
        .order_by(CustomerIdConfig.created_at.asc(), CustomerIdConfig.prefix.asc())
        .all()
    )
    return [row.prefix for row in configs]
