"""IPMS FastAPI application."""

import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from ipms.api.admin import router as admin_router
from ipms.api.alerts import router as alerts_router
from ipms.api.audit import router as audit_router
from ipms.api.health import router as health_router
from ipms.api.practices import router as practices_router
from ipms.config import settings
from ipms.errors import IPMSError, PersistenceError

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="IPMS - Internship Practice Management Service",
    description="Practice lifecycle, evaluation scoring, alerting and audit for academic internships",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(IPMSError)
async def ipms_error_handler(request: Request, exc: IPMSError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "error_code": exc.error_code, **exc.extra},
    )


@app.exception_handler(SQLAlchemyError)
async def database_error_handler(request: Request, exc: SQLAlchemyError):
    logger.exception("Database error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=PersistenceError.status_code,
        content={"detail": "Database unavailable", "error_code": PersistenceError.error_code},
    )


app.include_router(health_router, tags=["Health"])
app.include_router(practices_router, prefix="/v1", tags=["Practices"])
app.include_router(alerts_router, prefix="/v1", tags=["Alerts"])
app.include_router(audit_router, prefix="/v1", tags=["Audit"])
app.include_router(admin_router, prefix="/v1/admin", tags=["Admin"])


@app.get("/")
async def root():
    """Root endpoint."""
    return {"service": "IPMS", "version": "0.1.0", "docs": "/docs"}
