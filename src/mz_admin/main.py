"""Main entry point for the MZ Admin backend."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from mz_admin.api.v1 import auth_router, captcha_router, system_router
from mz_admin.core.settings import settings
from mz_admin.db.redis import close_redis
from mz_admin.services.auth_client import get_auth_client
from mz_admin.services.captcha import PuzzleGenerationError
from mz_admin.services.store import StoreUnavailableError

logger = logging.getLogger(__name__)

# Initialize FastAPI app
app = FastAPI(
    title="MZ Admin API",
    description="Admin dashboard backend with slider captcha protected auth flows",
    version=settings.app_version,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=settings.cors_allow_methods,
    allow_headers=settings.cors_allow_headers,
)

# Add GZip middleware for compression
app.add_middleware(GZipMiddleware)

# Include API routers
app.include_router(captcha_router, prefix="/api/v1")
app.include_router(auth_router, prefix="/api/v1")
app.include_router(system_router, prefix="/api/v1")


@app.exception_handler(StoreUnavailableError)
async def store_unavailable_handler(request: Request, exc: StoreUnavailableError) -> JSONResponse:
    """Fail closed with a generic message when redis is unreachable."""
    logger.error("Store unavailable on %s: %s", request.url.path, exc)
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"success": False, "detail": "Service temporarily unavailable"},
    )


@app.exception_handler(PuzzleGenerationError)
async def puzzle_generation_handler(request: Request, exc: PuzzleGenerationError) -> JSONResponse:
    logger.error("Captcha generation failed: %s", exc)
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"success": False, "detail": "Failed to generate captcha, please retry"},
    )


@app.on_event("startup")
async def on_startup() -> None:
    logging.getLogger("mz_admin").setLevel(settings.log_level.upper())


@app.on_event("shutdown")
async def on_shutdown() -> None:
    await get_auth_client().close()
    await close_redis()


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint to verify the service is running."""
    return {"status": "ok"}


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint with basic information about the API."""
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "description": "Admin dashboard backend with slider captcha protected auth flows",
        "docs": "/docs",
        "redoc": "/redoc",
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("mz_admin.main:app", host="0.0.0.0", port=8000, reload=settings.debug)
