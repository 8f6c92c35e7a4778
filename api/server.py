"""FastAPI server for the media accruals service.

Main entry point for the API server.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api.routes import auth, campaigns, health, settings, webhooks
from api.state import AppState
from core import __version__
from core.config import AppConfig
from core.errors import AccrualServiceError
from core.observability.logging import configure_logging, get_logger

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler."""
    state: AppState = app.state.accruals

    # Startup
    if await state.oauth.restore():
        logger.info(f"Restored Xero connection for tenant {state.oauth.tenant_id}")
    if not state.config.webhook_key:
        logger.warning("XERO_WEBHOOK_KEY not set; every webhook delivery will be rejected")
    logger.info("Media accruals API starting up...")

    yield

    # Shutdown
    await state.connector.close()
    logger.info("Media accruals API shutting down...")


async def service_error_handler(request: Request, exc: AccrualServiceError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    else:
        logger.warning(f"{request.method} {request.url.path} rejected: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


def create_app(config: Optional[AppConfig] = None, state: Optional[AppState] = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        config: Process configuration; read from the environment when omitted
        state: Pre-built state; built from config when omitted
    """
    if state is None:
        config = config or AppConfig.from_env()
        configure_logging(level=config.log_level, json_format=config.log_json)
        state = AppState.build(config)

    app = FastAPI(
        title="Media Accruals API",
        description="Campaign invoicing, cost accruals and bill reconciliation for Xero",
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
    )
    app.state.accruals = state

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Configure for production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(AccrualServiceError, service_error_handler)

    # Include routers
    app.include_router(health.router, tags=["Health"])
    app.include_router(auth.router, tags=["Authentication"])
    app.include_router(settings.router, tags=["Settings"])
    app.include_router(campaigns.router, tags=["Campaigns"])
    app.include_router(webhooks.router, tags=["Webhooks"])

    return app


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("api.server:create_app", factory=True, host="0.0.0.0", port=8000, reload=True)
