"""Main application entry point.

Runs FastAPI (port 8000) with the NiceGUI chat interface mounted.
Environment variables are loaded from .env, which overrides the process
environment.
"""

import logging
import os
import sys

from dotenv import load_dotenv

# Load environment variables before any other imports that might need them
load_dotenv(override=True)

# Configure logging
logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
logger = logging.getLogger(__name__)


def run_integrated() -> None:
    """Run FastAPI with NiceGUI mounted on the same server.

    FastAPI handles /api routes, NiceGUI serves the UI at /.
    """
    import uvicorn
    from nicegui import ui

    from src.api.app import create_app
    from src.ui.chat_page import chat_page  # noqa: F401 - Registers the page

    app = create_app()
    port = int(os.getenv("PORT", "8000"))

    ui.run_with(
        app,
        title="Document Chat",
        favicon="📄",
        storage_secret=os.getenv("NICEGUI_STORAGE_SECRET", "document-chat-secret"),
    )

    logger.info(f"Starting integrated server on http://localhost:{port}")
    logger.info(f"API docs available at http://localhost:{port}/docs")

    uvicorn.run(
        app,
        host=os.getenv("HOST", "0.0.0.0"),
        port=port,
        log_level=os.getenv("LOG_LEVEL", "info").lower(),
    )


def run_api() -> None:
    """Run only the HTTP API, for use with another frontend."""
    import uvicorn

    uvicorn.run(
        "src.api.app:app",
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "8000")),
        log_level=os.getenv("LOG_LEVEL", "info").lower(),
    )


def main() -> None:
    """Application entry point.

    Set RUN_MODE=api to serve the HTTP API without the NiceGUI page.
    Default is integrated mode.
    """
    mode = os.getenv("RUN_MODE", "integrated").lower()

    logger.info(f"Starting Document Chat in {mode} mode")

    if mode == "api":
        run_api()
    else:
        run_integrated()


if __name__ == "__main__":
    main()
