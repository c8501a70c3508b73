"""FastAPI application factory and configuration.

Main application entry point with lifespan management, middleware,
exception handlers and router registration.
"""

import asyncio
import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager, suppress

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from src.api.chat import router as chat_router
from src.api.dependencies import AppServices, build_services
from src.api.routes import router as files_router
from src.db.database import init_db
from src.errors import ChatAppError
from src.models.schemas import HealthResponse

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
    """Manage application startup and shutdown lifecycle.

    Startup creates the tables and opens the document store. A store
    failure is logged and chat runs without retrieval. Staged documents
    are re-imported in the background.

    Args:
        app: The FastAPI application instance.

    Yields:
        Control to the application while it runs.
    """
    logger.info("Starting Document Chat API...")

    services: AppServices | None = app.state.services
    owns_services = services is None
    if services is None:
        services = build_services()
        app.state.services = services

    await init_db(services.engine)
    await services.store.initialize()

    reimport_task: asyncio.Task[int] | None = None
    if services.config.reimport_on_startup and services.store.available:
        reimport_task = asyncio.create_task(services.upload.reimport_existing())

    yield

    logger.info("Shutting down Document Chat API...")
    if reimport_task is not None and not reimport_task.done():
        reimport_task.cancel()
        with suppress(asyncio.CancelledError):
            await reimport_task
    if owns_services:
        await services.engine.dispose()


def _locale(request: Request) -> str:
    services: AppServices | None = getattr(request.app.state, "services", None)
    return services.config.error_locale if services else "en"


async def handle_app_error(request: Request, exc: ChatAppError) -> JSONResponse:
    """Render any ChatAppError as ``{"error": message}`` with its status."""
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc}")
    else:
        logger.warning(f"{request.method} {request.url.path} rejected: {exc}")

    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.user_message(_locale(request))},
    )


async def handle_validation_error(
    request: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    """Report request validation failures as 400 with the common error shape."""
    errors = exc.errors()
    if errors:
        first = errors[0]
        field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"{field}: {first.get('msg')}" if field else str(first.get("msg"))
    else:
        message = "Invalid request"

    return JSONResponse(status_code=400, content={"error": message})


def create_app(services: AppServices | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        services: Prebuilt services. Built from the environment at startup
                  when omitted.

    Returns:
        Configured FastAPI application instance.
    """
    application = FastAPI(
        title="Document Chat API",
        description=(
            "Retrieval-augmented chat over uploaded documents. Documents are "
            "forwarded to a managed file search store; answers are generated "
            "with the store as a retrieval tool and streamed back as plain text. "
            "Conversations and file metadata are kept in a relational database."
        ),
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    application.state.services = services

    application.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["*"],
    )

    application.add_exception_handler(ChatAppError, handle_app_error)
    application.add_exception_handler(RequestValidationError, handle_validation_error)

    application.include_router(files_router)
    application.include_router(chat_router)

    @application.get("/health", response_model=HealthResponse)
    async def health_check(request: Request) -> HealthResponse:
        """Check service health; degraded while the document store is missing."""
        current: AppServices | None = request.app.state.services
        handle = current.store.handle if current else None
        return HealthResponse(
            status="healthy" if handle else "degraded",
            service="document-chat",
            store=handle.name if handle else None,
        )

    return application


app = create_app()
