import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from modernblog.api.router import api_router
from modernblog.config import Settings, get_settings
from modernblog.database import engine, init_db
from modernblog.utils.tokens import TokenManager

logger = logging.getLogger(__name__)


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


def _validation_errors(exc: RequestValidationError | ValidationError) -> list[dict[str, str]]:
    errors = []
    for error in exc.errors():
        field = " -> ".join(str(loc) for loc in error["loc"])
        errors.append({"field": field, "message": error["msg"]})
    return errors


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "detail": "Validation error",
            "errors": _validation_errors(exc),
        },
    )


async def pydantic_validation_handler(request: Request, exc: ValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "detail": "Validation error",
            "errors": _validation_errors(exc),
        },
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Unhandled exception on {request.method} {request.url.path}: {exc}")

    # Don't expose internal error details in production
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "detail": "An unexpected error occurred. Please try again later.",
        },
    )


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        configure_logging(settings)
        settings.validate_security()
        await init_db()
        logger.info(
            "Token lifetimes: access=%s refresh=%s",
            app.state.token_manager.config.access_ttl,
            app.state.token_manager.config.refresh_ttl,
        )
        yield
        await engine.dispose()

    app = FastAPI(
        title=settings.app_name,
        description="Blog platform API",
        version="1.0.0",
        lifespan=lifespan,
    )
    # One manager per application instance; request handlers reach it via app.state
    app.state.token_manager = TokenManager(settings.token_config())

    app.include_router(api_router, prefix="/api/v1")

    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(ValidationError, pydantic_validation_handler)
    app.add_exception_handler(Exception, generic_exception_handler)

    return app


app = create_app()
