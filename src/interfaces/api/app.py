from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from src.application.services.llm_runtime_service import LLMRuntimeService, TextGenerator
from src.interfaces.api.middleware import (
    BodySizeLimitMiddleware,
    RequestContextMiddleware,
    RequestTimeoutMiddleware,
    SecurityHeadersMiddleware,
    UnhandledErrorMiddleware,
    render_app_error,
)
from src.shared.config import Settings, get_settings
from src.shared.errors import (
    AppError,
    ERROR_INTERNAL,
    ERROR_NOT_FOUND,
    ERROR_VALIDATION,
    InternalError,
    NotFoundError,
    ValidationError,
    error_response,
)
from src.shared.logging import configure_logging, get_logger
from src.shared.request_id import REQUEST_ID_HEADER, get_request_id

log = get_logger(__name__)


def _request_context(request: Request) -> dict:
    return {"method": request.method, "path": request.url.path}


def create_app(
    settings: Settings | None = None,
    text_generator: TextGenerator | None = None,
) -> FastAPI:
    """Assemble the API.

    Args:
        settings: defaults to the cached environment settings
        text_generator: provider seam; built from settings when omitted
    """
    settings = settings or get_settings()
    configure_logging(settings.log_level, settings.environment)
    development = settings.is_development

    app = FastAPI(title="AI Copilot Editor API", version="0.1.0")
    app.state.settings = settings
    app.state.text_generator = (
        text_generator or LLMRuntimeService(settings).build_text_generator()
    )

    # add_middleware prepends: the last one added runs first
    app.add_middleware(UnhandledErrorMiddleware, development=development)
    app.add_middleware(RequestTimeoutMiddleware, timeout=settings.request_timeout)
    # `allow_credentials=True` with "*" makes starlette echo the caller's origin
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=[REQUEST_ID_HEADER],
    )
    app.add_middleware(BodySizeLimitMiddleware, max_bytes=settings.max_request_size)
    app.add_middleware(GZipMiddleware, minimum_size=1000)
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(RequestContextMiddleware)

    def render(exc: AppError) -> JSONResponse:
        return render_app_error(exc, development=development)

    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):
        if exc.status_code >= 500:
            log.error(
                "request_failed",
                exc_info=exc,
                extra={**_request_context(request), "code": exc.code, "error": exc.message},
            )
        return render(exc)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return render(
            ValidationError(
                code=ERROR_VALIDATION,
                message="request validation failed",
                details={"errors": exc.errors()},
            )
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 404:
            log.warning("not_found", extra=_request_context(request))
            return render(
                NotFoundError(
                    code=ERROR_NOT_FOUND,
                    message=f"Endpoint {request.url.path} not found",
                )
            )
        detail = exc.detail if isinstance(exc.detail, str) else "http error"
        return JSONResponse(
            status_code=exc.status_code,
            content=error_response(
                error=detail,
                message=detail,
                code=f"http_{exc.status_code}",
                request_id=get_request_id(),
            ),
            headers=getattr(exc, "headers", None),
        )

    # last resort for failures inside the middleware chain itself; route
    # errors are rendered by UnhandledErrorMiddleware
    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        log.exception("unhandled_error", extra=_request_context(request))
        return render(
            InternalError(
                code=ERROR_INTERNAL,
                message=str(exc) or exc.__class__.__name__,
                details={"type": exc.__class__.__name__},
            )
        )

    from src.interfaces.api.routes.health import router as health_router
    from src.interfaces.api.routes.transform import router as transform_router

    app.include_router(health_router)
    app.include_router(transform_router)

    return app
