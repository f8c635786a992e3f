"""
Main FastAPI application entry point.
"""

import secrets
import time
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

import httpx
import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from llm_gateway.adapters.registry import AdapterRegistry
from llm_gateway.api import GatewayRequestError, router as openai_router
from llm_gateway.catalog import InMemoryModelCatalog
from llm_gateway.core.config import Settings, get_settings
from llm_gateway.core.logging import configure_logging
from llm_gateway.routing import ModelRouter
from llm_gateway.services.credential_store import InMemoryCredentialStore
from llm_gateway.services.secret_manager import SecretManager

logger = structlog.get_logger(__name__)


def generate_request_id() -> str:
    """
    Generate a unique request ID.

    Format: req_<timestamp_hex>_<random>
    Example: req_18d5b3f2_a7b9c4d2e1f0
    """
    timestamp = int(time.time() * 1000)
    random_part = secrets.token_hex(6)
    return f"req_{timestamp:x}_{random_part}"


def create_app(settings: Optional[Settings] = None, http_client: Optional[httpx.AsyncClient] = None) -> FastAPI:
    """
    Build the gateway application.

    Args:
        settings: Configuration, defaults to get_settings()
        http_client: Shared upstream client. When omitted one is created
            for the application's lifetime and closed on shutdown.
    """
    settings = settings or get_settings()
    configure_logging(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        logger.info("Starting application", version=settings.app.version, env=settings.app.env)

        if http_client is None:
            timeout = settings.gateway.http_timeout_seconds
            client = httpx.AsyncClient(timeout=timeout) if timeout else httpx.AsyncClient()
        else:
            client = http_client

        secret_manager = SecretManager.from_settings(settings)
        registry = AdapterRegistry(http_client=client)
        app.state.settings = settings
        app.state.http_client = client
        app.state.secret_manager = secret_manager
        app.state.credential_store = InMemoryCredentialStore(secret_manager)
        app.state.model_catalog = InMemoryModelCatalog()
        app.state.adapter_registry = registry
        app.state.model_router = ModelRouter(
            registry=registry,
            model_store=app.state.model_catalog,
            credential_store=app.state.credential_store,
        )

        logger.info(
            "Configuration loaded",
            app_name=settings.app.name,
            providers=registry.get_available_provider_ids(),
            stream_timeout_ms=settings.gateway.stream_timeout_ms,
        )

        yield

        logger.info("Shutting down application")
        if http_client is None:
            await client.aclose()

    app = FastAPI(
        title=settings.app.name,
        version=settings.app.version,
        description="LLM Gateway - OpenAI-compatible provider routing",
        lifespan=lifespan,
    )

    # ========================================================================
    # Middleware
    # ========================================================================

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        """Log all requests and add request ID."""
        request_id = request.headers.get("X-Request-ID") or generate_request_id()
        request.state.request_id = request_id

        start_time = time.time()
        if settings.log.requests:
            logger.info(
                "Request started",
                method=request.method,
                path=request.url.path,
                request_id=request_id,
            )

        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(
                "Request failed",
                method=request.method,
                path=request.url.path,
                error=str(e),
                duration_ms=round((time.time() - start_time) * 1000, 2),
                request_id=request_id,
            )
            raise

        response.headers["X-Request-ID"] = request_id
        if settings.log.requests:
            logger.info(
                "Request completed",
                method=request.method,
                path=request.url.path,
                status_code=response.status_code,
                duration_ms=round((time.time() - start_time) * 1000, 2),
                request_id=request_id,
            )
        return response

    # ========================================================================
    # Exception Handlers
    # ========================================================================

    @app.exception_handler(GatewayRequestError)
    async def gateway_request_error_handler(request: Request, exc: GatewayRequestError):
        return JSONResponse(status_code=exc.status_code, content=exc.to_openai_error())

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """Render body validation failures as OpenAI invalid_request_error."""
        first = exc.errors()[0] if exc.errors() else {}
        param = ".".join(str(loc) for loc in first.get("loc", ()) if loc != "body") or None
        return JSONResponse(
            status_code=400,
            content={
                "error": {
                    "message": first.get("msg", "Request validation failed"),
                    "type": "invalid_request_error",
                    "param": param,
                    "code": None,
                }
            },
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        logger.error(
            "Unhandled exception",
            path=request.url.path,
            error=str(exc),
            exc_info=exc,
        )
        return JSONResponse(
            status_code=500,
            content={"error": {"message": "An internal error occurred", "type": "internal_error"}},
        )

    # ========================================================================
    # Routes
    # ========================================================================

    app.include_router(openai_router)

    @app.get("/health")
    async def health():
        return {"status": "ok", "version": settings.app.version}

    return app
