"""To run: python -m src.support_hub.api.main
Interact via SwaggerUi: http://localhost:8000/api/docs
"""

import logging
import logfire
import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
from starlette.exceptions import HTTPException as StarletteHTTPException

from src.support_hub.utils.logging import setup_logging
from src.support_hub.api.deps import get_config
from src.support_hub.api import (
    agent_router,
    chat_router,
    export_router,
    knowledge_router,
    websocket_router,
)
from src.support_hub.hub.errors import (
    InvalidCredentialsError,
    InvalidRequestError,
    NoAgentAvailableError,
    NotFoundError,
    SessionClosedError,
    StoreError,
    SupportHubError,
)
from src.support_hub.hub.service_container import ServiceContainer

logger = logging.getLogger(__name__)

ERROR_STATUS = [
    (NotFoundError, 404),
    (InvalidCredentialsError, 401),
    (InvalidRequestError, 400),
    (SessionClosedError, 409),
    (NoAgentAvailableError, 503),
]


def error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


async def support_hub_error_handler(request: Request, exc: SupportHubError):
    if isinstance(exc, StoreError):
        logger.error(f"Store failure on {request.url.path}: {exc}")
        return error_response(500, "Storage temporarily unavailable")
    for error_cls, status_code in ERROR_STATUS:
        if isinstance(exc, error_cls):
            return error_response(status_code, str(exc))
    logger.error(f"Unhandled domain error on {request.url.path}: {exc}")
    return error_response(500, "Internal server error")


async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return error_response(exc.status_code, str(exc.detail))


async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    first = errors[0] if errors else {}
    location = ".".join(str(part) for part in first.get("loc", ()))
    return error_response(422, f"Invalid request: {location} {first.get('msg', '')}".strip())


async def unhandled_error_handler(request: Request, exc: Exception):
    logger.error(f"Error handling {request.url.path}: {exc}", exc_info=True)
    return error_response(500, "Internal server error")


def create_app(cfg) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """
        Lifespan context manager for FastAPI application.
        Handles initialization and cleanup of service container.
        """
        app.state.startup_complete = False
        try:
            logger.info("Creating service container")
            service_container = ServiceContainer(cfg)
            await service_container.initialize()
        except Exception as e:
            logger.error(f"Error during application initialization: {e}", exc_info=True)
            raise
        # Store in app state
        app.state.service_container = service_container
        app.state.startup_complete = True
        logger.info("Service container initialized and ready")
        yield
        # Shutdown code
        app.state.startup_complete = False
        await service_container.cleanup()
        logger.info("Service container cleaned up")

    app = FastAPI(
        title="Support Hub",
        description="Real-time customer support chat hub.",
        version="1.0",
        docs_url="/api/docs",
        openapi_url="/api/openapi.json",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(cfg.api.cors_origins),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(SupportHubError, support_hub_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

    app.include_router(agent_router.router, prefix="/api", tags=["agents"])
    app.include_router(chat_router.router, prefix="/api", tags=["chat"])
    app.include_router(knowledge_router.router, prefix="/api", tags=["knowledge"])
    app.include_router(export_router.router, prefix="/api", tags=["export"])
    app.include_router(websocket_router.router, tags=["websocket"])

    @app.get("/")
    @app.head("/")
    async def root():
        """Root endpoint for the FastAPI server."""
        return {
            "message": "Welcome to the Support Hub API",
            "version": 1.0,
            "docs": "api/docs",
        }

    @app.get("/health")
    async def health_check():
        """Health check endpoint for the FastAPI server."""
        return {"status": "healthy"}

    return app


cfg = get_config()
setup_logging(cfg.logging.level)
logfire.configure(send_to_logfire='if-token-present')
app = create_app(cfg)


def main() -> None:
    """Main function to run the FastAPI server."""
    uvicorn.run(
        "src.support_hub.api.main:app",
        host=cfg.api.host,
        port=cfg.api.port,
        reload=cfg.api.reload,
    )


if __name__ == "__main__":
    main()
