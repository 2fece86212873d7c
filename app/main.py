"""FastAPI application factory with lifespan context manager."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import httpx
import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from app.config import settings
from app.errors import ProxyError
from app.logging_config import configure_logging
from app.routers import chat, health, image


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage application lifespan: own the shared upstream HTTP client."""
    configure_logging(json_logs=not settings.debug, log_level=settings.log_level)
    logger = structlog.get_logger()

    async with httpx.AsyncClient(timeout=settings.upstream_timeout) as http_client:
        if settings.gemini_api_key:
            from app.dependencies import init_production_deps

            init_production_deps(
                http_client,
                api_key=settings.gemini_api_key,
                base_url=settings.gemini_api_base_url,
                chat_model=settings.gemini_chat_model,
                image_model=settings.gemini_image_model,
            )
        else:
            logger.warning("gemini_api_key_missing")
        yield


app = FastAPI(title=settings.app_name, lifespan=lifespan)

if settings.cors_origins:
    from fastapi.middleware.cors import CORSMiddleware

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[o.strip() for o in settings.cors_origins.split(",")],
        allow_methods=["*"],
        allow_headers=["*"],
    )


@app.exception_handler(ProxyError)
async def proxy_error_handler(request: Request, exc: ProxyError) -> JSONResponse:
    """Render errors the proxy answers itself in the upstream error shape."""
    logger = structlog.get_logger()
    logger.warning(
        "proxy_error",
        path=request.url.path,
        status_code=exc.status_code,
        message=exc.message,
    )
    return JSONResponse(status_code=exc.status_code, content=exc.to_body())


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Return a JSON 500 response for any unhandled exception."""
    logger = structlog.get_logger()
    logger.exception("unhandled_exception", path=request.url.path, method=request.method)
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


app.include_router(health.router)
app.include_router(chat.router)
app.include_router(image.router)
