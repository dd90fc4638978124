from contextlib import contextmanager

import structlog
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy import create_engine
from .config import settings
from .errors import PortalError, TransactionFailure


def _engine_kwargs(url: str) -> dict:
    if url.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False}}
    return {"pool_size": 5, "max_overflow": 10, "pool_recycle": 3600}


engine = create_engine(
    settings.database_url,
    future=True,
    pool_pre_ping=True,
    **_engine_kwargs(settings.database_url),
)

# One Session per request; never share a session across requests
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)

Base = declarative_base()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def transaction(db: Session, action: str):
    """
    Run one unit of work: commit on success, roll back on any error.

    Domain errors propagate unchanged; anything else is wrapped in TransactionFailure.
    """
    try:
        yield db
        db.commit()
    except PortalError:
        db.rollback()
        raise
    except Exception as exc:
        db.rollback()
        structlog.get_logger(__name__).error("transaction_failed", action=action, error=str(exc))
        raise TransactionFailure(f"Failed to {action}: {exc}", cause=exc) from exc
