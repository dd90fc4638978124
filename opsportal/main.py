import os
from datetime import datetime, timezone

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_fastapi_instrumentator import Instrumentator
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from sqlalchemy import inspect

from .config import settings
from .db import Base, engine
from .errors import PortalError, TransactionFailure
from .logging import setup_logging, RequestIdMiddleware
from .models import models  # noqa: F401  (registers tables on Base.metadata)
from .routes.attendance import router as attendance_router
from .routes.customers import router as customers_router
from .routes.employees import router as employees_router, id_router as employee_id_router
from .routes.tasks import router as tasks_router


logger = structlog.get_logger(__name__)


async def portal_error_handler(request: Request, exc: PortalError) -> JSONResponse:
    if isinstance(exc, TransactionFailure):
        logger.error("request_failed", path=request.url.path, error=exc.message, cause=repr(exc.cause))
    else:
        logger.info("request_rejected", path=request.url.path, status=exc.status_code, error=exc.message)
    return JSONResponse(status_code=exc.status_code, content={"success": False, "error": exc.message})


def init_db() -> None:
    # Ensure local SQLite directory exists
    if settings.database_url.startswith("sqlite:///./"):
        os.makedirs("var", exist_ok=True)
    existing_tables = set(inspect(engine).get_table_names())
    missing = set(Base.metadata.tables.keys()) - existing_tables
    if missing:
        logger.info("creating_tables", tables=sorted(missing))
        Base.metadata.create_all(bind=engine)


def create_app() -> FastAPI:
    setup_logging()
    app = FastAPI(title=settings.app_name)

    # Middlewares
    app.add_middleware(RequestIdMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    limiter = Limiter(key_func=get_remote_address, default_limits=[settings.rate_limit])
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    app.add_middleware(SlowAPIMiddleware)

    app.add_exception_handler(PortalError, portal_error_handler)

    # Routers
    app.include_router(tasks_router)
    app.include_router(attendance_router)
    app.include_router(customers_router)
    app.include_router(employees_router)
    app.include_router(employee_id_router)

    @app.get("/health")
    def health():
        return {
            "status": "OK",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "service": settings.app_name,
        }

    # Metrics
    Instrumentator().instrument(app).expose(app)

    @app.on_event("startup")
    def _startup():
        logger.info("startup", environment=settings.environment, timezone=settings.tz_default)
        if settings.auto_create_db:
            init_db()

    return app


app = create_app()
