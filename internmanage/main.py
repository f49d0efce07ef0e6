"""InternManage API application."""
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

import internmanage.models  # noqa: F401  registers the tables on Base
from internmanage.api.v1 import attendance, project_assignments, projects
from internmanage.config import settings
from internmanage.database import Base, engine
from internmanage.exceptions import InternManageError
from internmanage.logging_config import logger, setup_logging
from internmanage.schemas import ErrorResponse
from internmanage.middleware import RequestLoggingMiddleware


@asynccontextmanager
async def lifespan(app: FastAPI):
    Base.metadata.create_all(bind=engine)
    logger.info("%s %s started (%s)", settings.APP_NAME, settings.APP_VERSION, settings.ENVIRONMENT)
    yield


async def internmanage_error_handler(request: Request, exc: InternManageError):
    if exc.status_code >= 500:
        logger.error("%s on %s %s: %s", exc.code, request.method, request.url.path, exc.message)
    headers = {"Retry-After": "1"} if exc.retryable else None
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=headers)


async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    message = errors[0]["msg"] if errors else "Invalid request"
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content=ErrorResponse(message=message).model_dump())


async def http_error_handler(request: Request, exc: HTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(message=str(exc.detail)).model_dump(),
        headers=getattr(exc, "headers", None),
    )


async def unhandled_error_handler(request: Request, exc: Exception):
    logger.error("Unhandled exception on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=ErrorResponse(message="Internal Server Error").model_dump(),
    )


def create_app() -> FastAPI:
    setup_logging()

    app = FastAPI(title=settings.APP_NAME, version=settings.APP_VERSION, lifespan=lifespan)

    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(InternManageError, internmanage_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(HTTPException, http_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

    app.include_router(projects.router, prefix="/api/v1/projects", tags=["projects"])
    app.include_router(
        project_assignments.router,
        prefix="/api/v1/project-assignments",
        tags=["project-assignments"],
    )
    app.include_router(attendance.router, prefix="/api/v1/attendance", tags=["attendance"])

    @app.get("/health", tags=["health"])
    async def health_check():
        return {"status": "healthy", "app_name": settings.APP_NAME, "version": settings.APP_VERSION}

    return app


app = create_app()


def run() -> None:
    import uvicorn

    uvicorn.run("internmanage.main:app", host=settings.HOST, port=settings.PORT, reload=settings.DEBUG)


if __name__ == "__main__":
    run()
