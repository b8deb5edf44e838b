"""FastAPI application for the local storage API.

Storage outcomes are always returned as Result envelopes with status 200.
Only requests the API cannot interpret (missing or invalid parameters, bad
bodies) get an error status, rendered as ``application/problem+json``.
"""

import logging
from typing import Any

import uvicorn
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from storage_cos import __version__
from storage_cos.api.routers.config import router as config_router
from storage_cos.api.routers.files import router as files_router
from storage_cos.common.config import Settings, get_settings, load_server_settings
from storage_cos.common.logging import STARTUP_LOGGER, setup_logging
from storage_cos.infra.observability.metrics import metrics_app
from storage_cos.infra.observability.middleware import MetricsMiddleware

API_PREFIX = "/api"
PROBLEM_JSON = "application/problem+json"

# Client errors this API produces: a missing query parameter, unknown routes,
# wrong methods and request validation.
ERROR_CODE_BY_STATUS = {
    400: "bad_request",
    404: "not_found",
    405: "method_not_allowed",
    422: "validation_error",
}

logger = logging.getLogger("http")


def _resolve_error_code(status_code: int) -> str:
    return ERROR_CODE_BY_STATUS.get(status_code, "unknown_error")


def _problem(
    request: Request,
    *,
    status_code: int,
    title: str,
    detail: Any,
    error_code: str,
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        media_type=PROBLEM_JSON,
        content={
            "type": "about:blank",
            "title": title,
            "status": status_code,
            "detail": detail,
            "error_code": error_code,
            "instance": str(request.url),
            "request_id": request.headers.get("X-Request-Id"),
        },
    )


async def http_exception_handler(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    logger.warning(
        "http_exception status=%s detail=%s method=%s path=%s",
        exc.status_code,
        exc.detail,
        request.method,
        request.url.path,
        extra={
            "extra": {
                "status": exc.status_code,
                "detail": exc.detail,
                "method": request.method,
                "route": request.url.path,
                "request_id": request.headers.get("X-Request-Id"),
            }
        },
    )
    return _problem(
        request,
        status_code=exc.status_code,
        title="HTTP Error",
        detail=exc.detail,
        error_code=_resolve_error_code(exc.status_code),
    )


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    # Request bodies may carry credentials; only report where validation failed
    errors = [
        {k: v for k, v in error.items() if k != "input"} for error in exc.errors()
    ]
    return _problem(
        request,
        status_code=422,
        title="Validation Error",
        detail=jsonable_encoder(errors),
        error_code=_resolve_error_code(422),
    )


def _install_middleware(app: FastAPI, settings: Settings) -> None:
    # The browser UI is served from another origin during development
    if settings.CORS_ENABLED:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.CORS_ORIGINS or ["*"],
            allow_methods=["*"],
            allow_headers=["*"],
        )
    if settings.ENABLE_METRICS:
        app.add_middleware(MetricsMiddleware)
        app.mount("/metrics", metrics_app)


def create_app() -> FastAPI:
    settings = get_settings()
    setup_logging(settings.LOG_LEVEL)
    app = FastAPI(
        title="Storage COS",
        version=__version__,
        description="Local API for a Tencent Cloud COS bucket",
    )

    app.include_router(config_router, prefix=API_PREFIX, tags=["config"])
    app.include_router(files_router, prefix=API_PREFIX, tags=["files"])
    _install_middleware(app, settings)

    # Router level 404/405 are raised as the Starlette base class
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)

    @app.on_event("startup")
    def on_startup() -> None:
        logging.getLogger(STARTUP_LOGGER).info(
            "storage-cos API ready [event=startup] (config=%s metrics=%s)",
            settings.config_path,
            settings.ENABLE_METRICS,
        )

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    return app


def run(host: str | None = None, port: int | None = None) -> None:
    settings = get_settings()
    uvicorn.run(
        create_app(),
        host=host or settings.SERVER_HOST,
        port=port or settings.SERVER_PORT,
        log_config=None,
    )


if __name__ == "__main__":
    load_server_settings()
    run()
