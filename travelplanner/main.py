"""Travel planner FastAPI application."""
import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.authentication import AuthenticationMiddleware

from travelplanner import __version__, config
from travelplanner.api import health, telegram, trips, users
from travelplanner.auth.backend import TelegramAuthBackend
from travelplanner.auth.exceptions import AuthErrorCode
from travelplanner.auth.verifier import InitDataVerifier
from travelplanner.core.logging import configure_logging

configure_logging()
log = logging.getLogger("travelplanner")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown."""
    log.info(f"Starting travel planner service (env={config.ENVIRONMENT})...")

    try:
        from travelplanner.db.session import init_database
        init_database()
    except Exception as e:
        log.error(f"Failed to initialize database: {e}")
        raise

    log.info("Travel planner service started")
    yield
    log.info("Travel planner service stopped")


# -----------------------------------------------------------------------------
# Authentication Middleware
# -----------------------------------------------------------------------------

def on_auth_error(conn, exc):
    """Handle authentication errors."""
    return JSONResponse(
        status_code=401,
        content={
            "detail": str(exc) or "Unauthenticated",
            "code": getattr(exc, "code", AuthErrorCode.SIGNATURE_MISMATCH),
        },
        headers={"WWW-Authenticate": "TelegramInitData"},
    )


def create_app(settings: config.AuthSettings | None = None) -> FastAPI:
    """Build the application.

    Args:
        settings: Auth settings; defaults to the environment snapshot
    """
    settings = settings or config.AuthSettings.from_config()

    app = FastAPI(
        title="Travel Planner",
        version=__version__,
        description="Trip planning API for the Telegram mini app",
        lifespan=lifespan,
    )

    verifier = InitDataVerifier(settings)
    app.state.auth_settings = settings
    app.state.verifier = verifier

    if config.IS_DEVELOPMENT:
        log.warning("Development environment: placeholder identity enabled")

    app.add_middleware(
        AuthenticationMiddleware,
        backend=TelegramAuthBackend(settings, verifier=verifier),
        on_error=on_auth_error,
    )
    # Added last so it wraps authentication and answers preflights
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.CORS_ORIGINS,
        allow_credentials="*" not in config.CORS_ORIGINS,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # -------------------------------------------------------------------------
    # API Routers
    # -------------------------------------------------------------------------

    app.include_router(health.router)
    app.include_router(telegram.router)
    app.include_router(users.router)
    app.include_router(trips.router)

    @app.middleware("http")
    async def request_logging(request: Request, call_next):
        """Log all requests with timing."""
        start = time.time()
        response = await call_next(request)
        duration_ms = int((time.time() - start) * 1000)

        log.info(
            f"request_complete status={response.status_code} duration_ms={duration_ms}",
            extra={
                "route": request.url.path,
                "method": request.method,
                "status": response.status_code,
                "remote_addr": request.client.host if request.client else None,
            },
        )
        return response

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("travelplanner.main:app", host="0.0.0.0", port=config.SERVICE_PORT)
