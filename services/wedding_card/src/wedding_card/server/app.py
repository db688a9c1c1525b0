"""FastAPI application for the wedding card upload service."""

from __future__ import annotations

from contextlib import asynccontextmanager
from pathlib import Path

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException

from common.config import settings
from common.logging import configure_logging, get_logger

from .routes import router

configure_logging()
LOGGER = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    Path(settings.upload_queue_dir).mkdir(parents=True, exist_ok=True)
    LOGGER.info(
        "Wedding card service ready",
        uploads_enabled=settings.enable_upload_image,
        queue_dir=settings.upload_queue_dir,
        model=settings.gemini_model,
    )
    yield


app = FastAPI(
    title="Wedding Card Uploads",
    description="Photo optimization and upload queue for the wedding guest book",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(router)

app.mount("/queue", StaticFiles(directory=settings.upload_queue_dir, check_dir=False), name="queue")


@app.exception_handler(StarletteHTTPException)
async def http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Every error leaves as `{"error": "..."}`."""
    detail = exc.detail
    if exc.status_code == 404 and detail == "Not Found":
        LOGGER.warning("Route not found", path=request.url.path)
        detail = "Route not found"
    return JSONResponse({"error": detail}, status_code=exc.status_code)


@app.exception_handler(RequestValidationError)
async def validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    LOGGER.warning("Request validation failed", path=request.url.path, errors=exc.errors())
    return JSONResponse({"error": "Invalid request"}, status_code=400)


def run() -> None:
    """Serve over HTTPS when certificates exist, otherwise plain HTTP."""
    ssl_options = {}
    if settings.use_https:
        cert_path, key_path = Path(settings.ssl_cert_path), Path(settings.ssl_key_path)
        if cert_path.exists() and key_path.exists():
            ssl_options = {"ssl_certfile": str(cert_path), "ssl_keyfile": str(key_path)}
        else:
            LOGGER.warning("SSL certificates not found. Falling back to HTTP.", cert=str(cert_path), key=str(key_path))

    LOGGER.info(
        "Server starting",
        host=settings.host,
        port=settings.port,
        protocol="HTTPS" if ssl_options else "HTTP",
        environment=settings.environment,
    )
    uvicorn.run(app, host=settings.host, port=settings.port, log_level=settings.log_level.lower(), **ssl_options)


if __name__ == "__main__":
    run()
