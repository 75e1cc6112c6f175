"""FastAPI application entry point.

This module initialises the FastAPI app, configures logging and
registers API routes.  The `uvicorn` ASGI server can point to
``chatstore.main:app`` to serve the application.
"""

from fastapi import FastAPI
from loguru import logger

from .utils.logger import setup_logging
from .controllers.chat_controller import router as chat_router
from .controllers.admin_controller import router as admin_router
from .utils.error_handler import ChatError, http_exception_handler


def create_app() -> FastAPI:
    """Create and configure a FastAPI application."""
    setup_logging()

    app = FastAPI(title="Chat Store", version="0.1.0")

    # Map InvalidArgument/NotFound/Conflict/Validation errors to 4xx responses
    app.add_exception_handler(ChatError, http_exception_handler)

    app.include_router(chat_router)
    app.include_router(admin_router)

    @app.get("/health", tags=["Health"])
    async def health() -> dict[str, str]:
        """Simple health check endpoint."""
        logger.debug("Health check invoked")
        return {"status": "ok"}

    return app


# Create an application instance for ASGI servers
app = create_app()
