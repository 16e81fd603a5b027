import logging
import os

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from . import __version__
from .errors import AnalyticsError, TaskmasterError
from .logging_setup import configure_logging
from .routers import analytics as analytics_router
from .routers import categories as categories_router
from .routers import counters as counters_router
from .routers import tags as tags_router
from .routers import tasks as tasks_router
from .routers import uploads as uploads_router
from .settings import get_settings
from .uploads import URL_PREFIX

logger = logging.getLogger(__name__)

openapi_tags = [
    {"name": "health", "description": "Service health and status endpoints."},
    {
        "name": "tasks",
        "description": "CRUD and bulk operations for tasks with filtering, ordering, and pagination.",
    },
    {"name": "categories", "description": "Task categories with completion statistics."},
    {"name": "tags", "description": "Task tags with usage statistics."},
    {"name": "analytics", "description": "Overview, trends, productivity and per-category analytics."},
    {"name": "uploads", "description": "Image attachments for tasks."},
    {"name": "counters", "description": "All-time created/completed totals."},
]

_settings = get_settings()
configure_logging(_settings.log_level)

app = FastAPI(
    title="TaskMaster Backend",
    description="Personal task management API with productivity analytics and pluggable storage backends.",
    version=__version__,
    openapi_tags=openapi_tags,
)

# Configure CORS based on settings (.env -> CORS_ALLOW_ORIGINS), with '*' fallback
allow_all = (_settings.cors_allow_origins == ["*"]) or (len(_settings.cors_allow_origins) == 0)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"] if allow_all else _settings.cors_allow_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _jsonable_errors(exc: RequestValidationError):
    # ctx may carry the raised ValueError instance, which is not JSON serializable.
    errors = []
    for err in exc.errors():
        err = dict(err)
        if "ctx" in err:
            err["ctx"] = {k: str(v) for k, v in err["ctx"].items()}
        errors.append(err)
    return errors


# Global exception handlers for consistent JSON on validation errors
@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """
    Return a consistent JSON structure for request validation errors.

    Response format:
        {
            "error": "ValidationError",
            "detail": [... pydantic/fastapi error details ...],
            "message": "Request validation failed"
        }
    """
    return JSONResponse(
        status_code=422,
        content={
            "error": "ValidationError",
            "message": "Request validation failed",
            "detail": _jsonable_errors(exc),
        },
    )


@app.exception_handler(TaskmasterError)
async def domain_exception_handler(request: Request, exc: TaskmasterError) -> JSONResponse:
    """
    Map domain errors to the same envelope:
        {"error": <label>, "message": <text>, "detail": <context or null>}
    Analytics failures never expose their cause.
    """
    if isinstance(exc, AnalyticsError):
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.error, "message": "Internal server error", "detail": None},
        )
    logger.info("%s %s -> %s: %s", request.method, request.url.path, exc.status_code, exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.error, "message": exc.message, "detail": exc.detail},
    )


# PUBLIC_INTERFACE
@app.get("/", summary="Health Check", tags=["health"])
def health_check():
    """
    Health check endpoint.

    Returns:
        A JSON object indicating service health.
    """
    return {"message": "Healthy", "backend": _settings.persistence_backend}


# Include routers
app.include_router(tasks_router.router)
app.include_router(categories_router.router)
app.include_router(tags_router.router)
app.include_router(analytics_router.router)
app.include_router(uploads_router.router)
app.include_router(counters_router.router)

os.makedirs(_settings.upload_dir, exist_ok=True)
app.mount(URL_PREFIX, StaticFiles(directory=_settings.upload_dir), name="uploads")
