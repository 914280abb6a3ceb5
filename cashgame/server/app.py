"""
FastAPI Application Entry Point for CashGame.

This module creates and configures the FastAPI application with:
- HTTP routes for session management
- Error responses mapped from the engine's error kinds
- CORS middleware for development
"""

import logging
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from cashgame.core.errors import (
    CashGameError, ChipSetLocked, PlayerNotFound, StateConflict, TableFull,
)
from cashgame.server.routes import router

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

ERROR_STATUS = {
    PlayerNotFound.kind: 404,
    StateConflict.kind: 409,
    ChipSetLocked.kind: 409,
    TableFull.kind: 409,
}


def error_status(error: CashGameError) -> int:
    return ERROR_STATUS.get(error.kind, 400)


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.

    Returns:
        Configured FastAPI application instance
    """
    app = FastAPI(
        title="CashGame",
        description="Live poker cash game session manager",
        version="0.1.0",
    )

    # CORS middleware for development
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(router)

    @app.exception_handler(CashGameError)
    async def cash_game_error_handler(request: Request, exc: CashGameError):
        status = error_status(exc)
        if status >= 409:
            logger.warning(f"{request.method} {request.url.path}: {exc.kind}: {exc.message}")
        return JSONResponse(status_code=status, content={"error": exc.kind, "detail": exc.message})

    @app.exception_handler(ValueError)
    async def value_error_handler(request: Request, exc: ValueError):
        return JSONResponse(status_code=400, content={"error": "invalid_value", "detail": str(exc)})

    return app


# Create the application instance
app = create_app()


def main():
    """Run the server (for use as entry point)."""
    import uvicorn
    uvicorn.run(
        "cashgame.server.app:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
    )


if __name__ == "__main__":
    main()
