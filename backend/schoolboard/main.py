from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from schoolboard import __version__
from schoolboard.api.routes import (
    announcements,
    auth,
    classes,
    display,
    health,
    lessons,
    levels,
    parliament,
    scheduler,
    timetable,
    users,
)
from schoolboard.core.config import get_settings
from schoolboard.core.exceptions import AppError
from schoolboard.core.middleware import RequestSizeLimitMiddleware, SecurityHeadersMiddleware
from schoolboard.db.bootstrap import ensure_runtime_schema_compatibility

settings = get_settings()


@asynccontextmanager
async def lifespan(_: FastAPI):
    ensure_runtime_schema_compatibility()
    yield


async def app_error_handler(request: Request, exc: AppError):
    return JSONResponse(
        status_code=exc.status_code,
        content={"message": exc.message, "details": exc.details},
    )


app = FastAPI(title=settings.project_name, version=__version__, lifespan=lifespan)
app.add_exception_handler(AppError, app_error_handler)

app.add_middleware(RequestSizeLimitMiddleware, max_bytes=settings.max_request_size_bytes)
app.add_middleware(SecurityHeadersMiddleware, settings=settings)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router, prefix=settings.api_prefix, tags=["health"])
app.include_router(auth.router, prefix=f"{settings.api_prefix}/auth", tags=["auth"])
app.include_router(users.router, prefix=settings.api_prefix, tags=["users"])
app.include_router(classes.router, prefix=settings.api_prefix, tags=["classes"])
app.include_router(lessons.router, prefix=settings.api_prefix, tags=["lessons"])
app.include_router(levels.router, prefix=settings.api_prefix, tags=["levels"])
app.include_router(timetable.router, prefix=settings.api_prefix, tags=["timetable"])
app.include_router(scheduler.router, prefix=settings.api_prefix, tags=["scheduler"])
app.include_router(display.router, prefix=settings.api_prefix, tags=["display"])
app.include_router(announcements.router, prefix=settings.api_prefix, tags=["announcements"])
app.include_router(parliament.router, prefix=settings.api_prefix, tags=["parliament"])
