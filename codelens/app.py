"""
FastAPI application factory.

Creates and configures the FastAPI application instance.
"""
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from . import __version__
from .api.http import router as http_router
from .api.websocket import websocket_endpoint
from .services.orchestrator import AnalysisOrchestrator


def create_app(orchestrator: Optional[AnalysisOrchestrator] = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        orchestrator: Orchestrator serving this app; a default one
                      (websocket broadcast, real screen grab) when omitted.

    Returns:
        Configured FastAPI instance
    """
    app = FastAPI(
        title="CodeLens API",
        description="Screenshot analysis assistant for the overlay shell",
        version=__version__,
    )
    app.state.orchestrator = orchestrator or AnalysisOrchestrator()

    # The overlay shell is served from its own origin
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Register WebSocket endpoint
    app.add_api_websocket_route("/ws", websocket_endpoint)

    # Register HTTP REST routes (e.g., /api/status, /api/keys)
    app.include_router(http_router)

    return app
