"""
Main FastAPI Application Entry Point
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from authcore import __version__
from authcore.api import api_router
from authcore.api.v1.endpoints.auth import error_response
from authcore.core.config import Settings, settings as default_settings
from authcore.core.exceptions import AuthError
from authcore.core.logging import configure_logging
from authcore.core.redis import create_redis
from authcore.core.security import TokenIssuer
from authcore.db.session import Database
from authcore.services.rate_limiter import policies_from_settings

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the shared database and Redis handles unless already provided."""
    settings: Settings = app.state.settings
    owns_database = getattr(app.state, "database", None) is None
    owns_redis = getattr(app.state, "redis", None) is None

    if owns_database:
        app.state.database = Database.from_settings(settings.database)
    if owns_redis:
        app.state.redis = create_redis(settings.redis)

    logger.info("=" * 50)
    logger.info("Auth Core API - Registered Routes:")
    for route in app.routes:
        if hasattr(route, "path") and hasattr(route, "methods"):
            logger.info(f"  {route.methods} {route.path}")
    logger.info("=" * 50)

    try:
        yield
    finally:
        if owns_redis:
            await app.state.redis.aclose()
        if owns_database:
            await app.state.database.dispose()


async def auth_error_handler(request: Request, exc: AuthError) -> JSONResponse:
    return error_response(exc)


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}", exc_info=exc)
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


def create_app(settings: Settings = default_settings) -> FastAPI:
    """
    Create the FastAPI application.

    ``app.state.database`` and ``app.state.redis`` may be assigned before
    startup (tests do); otherwise the lifespan builds them from settings.
    """
    configure_logging(settings.app.log_level)

    app = FastAPI(
        title="Auth Core API",
        description="Login, refresh-token rotation and revocation for the service platform",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.token_issuer = TokenIssuer(settings.jwt)
    app.state.rate_limit_policies = policies_from_settings(settings.rate_limit)

    # Configure CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.app.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(AuthError, auth_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

    app.include_router(api_router, prefix="/api/v1")

    @app.get("/health")
    async def health_check():
        """Health check endpoint"""
        return {
            "status": "healthy",
            "service": "authcore",
        }

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "authcore.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
    )
