from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.application.errors import (
    ConflictError,
    ForbiddenError,
    NotFoundError,
    PartialFailureError,
    ValidationError,
)
from app.config import settings
from app.infrastructure.logging import bind_request_context, clear_request_context, configure_logging, get_logger
from app.interfaces.api.v1.router import api_router

logger = get_logger(__name__)

OPENAPI_DESCRIPTION = """
Multi-tenant school fee API: fee category catalog, fee structures per academic year and grade,
payment schedules with computed installments, and bulk fee assignment to students.

How to call this API:
- Authenticate at `POST /api/v1/auth/token`.
- Use `Authorization: Bearer <access_token>` in protected endpoints.
- Every request is scoped to the school linked to the caller's profile.
"""

OPENAPI_TAGS = [
    {"name": "health", "description": "Service health and connectivity checks."},
    {"name": "auth", "description": "Authentication and token issuance."},
    {"name": "academic-years", "description": "Academic years and their term calendars."},
    {"name": "fee-categories", "description": "The school's catalog of fee categories."},
    {"name": "fee-structures", "description": "Fee bundles per academic year, grade and program."},
    {"name": "payment-schedules", "description": "Installment plans attached to fee structures."},
    {"name": "fee-assignments", "description": "Student fee obligations, single and bulk."},
]


@asynccontextmanager
async def lifespan(_: FastAPI):
    configure_logging()
    logger.info("app_startup", app_name=settings.app_name, version=settings.app_version)
    yield
    logger.info("app_shutdown", app_name=settings.app_name)


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description=OPENAPI_DESCRIPTION,
    openapi_tags=OPENAPI_TAGS,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.frontend_url],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def request_log_context(request: Request, call_next):
    clear_request_context()
    bind_request_context(method=request.method, path=request.url.path)
    try:
        return await call_next(request)
    finally:
        clear_request_context()


@app.get("/")
def root():
    return {"message": f"{settings.app_name} is running"}


@app.exception_handler(NotFoundError)
async def handle_not_found(_: Request, exc: NotFoundError):
    return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content={"detail": str(exc)})


@app.exception_handler(ConflictError)
async def handle_conflict(_: Request, exc: ConflictError):
    return JSONResponse(status_code=status.HTTP_409_CONFLICT, content={"detail": str(exc)})


@app.exception_handler(ForbiddenError)
async def handle_forbidden(_: Request, exc: ForbiddenError):
    return JSONResponse(status_code=status.HTTP_403_FORBIDDEN, content={"detail": str(exc)})


@app.exception_handler(ValidationError)
async def handle_validation(_: Request, exc: ValidationError):
    content = {"detail": str(exc)}
    if exc.field is not None:
        content["field"] = exc.field
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content=content)


@app.exception_handler(PartialFailureError)
async def handle_partial_failure(_: Request, exc: PartialFailureError):
    return JSONResponse(
        status_code=status.HTTP_207_MULTI_STATUS,
        content={
            "detail": str(exc),
            "count": exc.created_count,
            "errors": exc.errors,
            "summary": exc.summary,
        },
    )


app.include_router(api_router)
