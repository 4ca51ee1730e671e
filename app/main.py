"""
CivicFix Issue Service - FastAPI Application Entry Point

Citizens report civic problems (photo + description + GPS). Reports are
validated in the background and then move through an officer/reporter
lifecycle until the reporter confirms the fix.

DESIGN PRINCIPLES:
- Only validated (live) issues appear on the public feed
- Status changes follow the workflow table, nothing else
- Validation never blocks submission
"""

import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.config.firebase import initialize_firestore
from app.core.exceptions import InvalidTransitionError, IssueServiceError
from app.core.logging import setup_logging
from app.core.settings import settings
from app.routes import health, issues

setup_logging()
logger = logging.getLogger(__name__)


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Civic issue reporting with automated validation and a verified resolution workflow",
    debug=settings.DEBUG
)


@app.exception_handler(IssueServiceError)
async def issue_service_exception_handler(request: Request, exc: IssueServiceError):
    content = {"success": False, "message": exc.message}
    if isinstance(exc, InvalidTransitionError):
        content["current_status"] = exc.current_status
        content["allowed_transitions"] = exc.allowed
    logger.info(f"{request.method} {request.url.path} -> {exc.status_code}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=content)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "message": str(exc.detail)},
        headers=getattr(exc, "headers", None)
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Malformed request bodies/params are client errors (400)."""
    logger.info(f"{request.method} {request.url.path} -> 400: {exc.errors()}")
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"success": False, "message": "Invalid request", "errors": jsonable_errors(exc)}
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Unexpected errors: log the traceback, never leak details to the client."""
    logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}", exc_info=exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"success": False, "message": "Internal server error"}
    )


def jsonable_errors(exc: RequestValidationError):
    return [
        {"loc": list(error.get("loc", [])), "msg": error.get("msg", "")}
        for error in exc.errors()
    ]


app.add_middleware(
    CORSMiddleware,
    allow_origins=[origin.strip() for origin in settings.CORS_ORIGINS.split(",") if origin.strip()],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
async def startup_event():
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")
    if not settings.JWT_SECRET:
        logger.warning("⚠️ JWT_SECRET is not set: all authenticated endpoints will return 401")
    try:
        initialize_firestore()
    except Exception as e:
        logger.warning(f"Firestore initialization failed: {e}. The app will start but database operations may fail.")


@app.on_event("shutdown")
async def shutdown_event():
    logger.info(f"Shutting down {settings.APP_NAME}")


app.include_router(health.router)
app.include_router(issues.router)


@app.get("/")
async def root():
    """Root endpoint - API information."""
    return {
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "status": "running",
        "docs": "/docs",
        "health": "/health",
        "live_feed": "/issues/live?lat={lat}&lng={lng}&radius={metres}"
    }
