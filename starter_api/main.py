import logging
import uuid
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError
from starlette.exceptions import HTTPException as StarletteHTTPException

from starter_api import database
from starter_api.cache import cache
from starter_api.config import Settings, settings as default_settings
from starter_api.errors import AppError, ErrorCode, code_for_status
from starter_api.logging_config import setup_logging
from starter_api.middleware import RequestLoggingMiddleware
from starter_api.routers import articles, auth, categories, health, products, users

logger = logging.getLogger(__name__)

VERSION = "1.0.0"


def error_response(
    status_code: int,
    code: ErrorCode,
    message: str,
    details: Optional[str] = None,
    fields: Optional[dict] = None,
) -> JSONResponse:
    error: dict = {"code": code.value, "message": message}
    if details:
        error["details"] = details
    if fields:
        error["fields"] = fields
    return JSONResponse(
        status_code=status_code,
        content=jsonable_encoder({"success": False, "message": message, "error": error}),
    )


# ---------------------------------------------------------------------------
# Exception handlers
# ---------------------------------------------------------------------------

async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    extra = {
        "code": exc.code.value,
        "method": request.method,
        "path": request.url.path,
        "status": exc.status_code,
    }
    if exc.status_code >= 500:
        logger.error("Request failed: %s", exc, extra=extra, exc_info=exc)
    else:
        logger.warning("Request rejected: %s", exc.message, extra=extra)
    body = exc.to_dict()
    return error_response(
        exc.status_code, exc.code, exc.message, body.get("details"), body.get("fields")
    )


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    fields = {
        ".".join(str(part) for part in err["loc"] if part != "body") or "body": err["msg"]
        for err in exc.errors()
    }
    logger.warning(
        "Request validation failed",
        extra={"method": request.method, "path": request.url.path, "fields": fields},
    )
    return error_response(
        422, ErrorCode.UNPROCESSABLE_ENTITY, "Request validation failed", fields=fields
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    message = exc.detail if isinstance(exc.detail, str) else "Request failed"
    response = error_response(exc.status_code, code_for_status(exc.status_code), message)
    if exc.headers:
        response.headers.update(exc.headers)
    return response


async def integrity_error_handler(request: Request, exc: IntegrityError) -> JSONResponse:
    logger.warning(
        "Integrity constraint violated: %s",
        exc.orig,
        extra={"method": request.method, "path": request.url.path},
    )
    return error_response(
        409, ErrorCode.CONFLICT, "Resource conflicts with existing data"
    )


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    error_id = uuid.uuid4().hex
    logger.error(
        "Unhandled error",
        extra={"error_id": error_id, "method": request.method, "path": request.url.path},
        exc_info=exc,
    )
    return error_response(
        500,
        ErrorCode.INTERNAL_SERVER,
        "Internal server error",
        details=f"error id {error_id}",
    )


# ---------------------------------------------------------------------------
# Application factory
# ---------------------------------------------------------------------------

def create_app(app_settings: Settings = default_settings) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup
        setup_logging(app_settings.logger)
        app_settings.ensure_valid()
        logger.info(
            "Starting server",
            extra={
                "address": app_settings.server.address,
                "env": app_settings.server.env,
                "database": app_settings.database.safe_dsn,
            },
        )
        await cache.connect(app_settings.cache.redis_url)
        yield
        # Shutdown
        logger.info("Shutting down server")
        await cache.disconnect()
        await database.engine.dispose()

    app = FastAPI(
        title="Starter API",
        description="Layered CRUD API: users, categories, articles and products",
        version=VERSION,
        lifespan=lifespan,
    )

    # Middleware
    app.add_middleware(RequestLoggingMiddleware)
    if app_settings.server.enable_cors:
        origins = app_settings.server.cors_origins
        app.add_middleware(
            CORSMiddleware,
            allow_origins=origins,
            allow_credentials="*" not in origins,
            allow_methods=["*"],
            allow_headers=["*"],
            expose_headers=["X-Request-ID", "X-Response-Time-Ms", "X-Query-Count"],
        )

    # Exception handlers
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(IntegrityError, integrity_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

    # Routers
    app.include_router(health.router)
    app.include_router(auth.router)
    app.include_router(users.router)
    app.include_router(categories.router)
    app.include_router(articles.router)
    app.include_router(products.router)
    return app


app = create_app()


def main() -> None:
    server = default_settings.server
    uvicorn.run(
        "starter_api.main:app",
        host=server.host,
        port=server.port,
        timeout_keep_alive=int(server.idle_timeout.total_seconds()),
        timeout_graceful_shutdown=int(server.shutdown_timeout.total_seconds()),
        log_config=None,
    )


if __name__ == "__main__":
    main()
