"""
FastAPI application factory for the solar verification service.

Routes:
- /api/detect -> run detection for a claim
- /api/results -> stored results
- /api/export.* -> audit downloads
- /api/stats/* -> aggregate statistics
- /api/health -> service health
"""

from __future__ import annotations

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .routes import api


def create_app() -> FastAPI:
    """Create the FastAPI app and wire routes."""
    app = FastAPI(
        title="Solar Verify",
        version="0.1.0",
        description="Rooftop solar claim detection and quality control",
    )

    # CORS for the review dashboard dev server
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:5173", "http://127.0.0.1:5173"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(api.router, prefix="/api")

    return app


# Exported application instance for uvicorn
app = create_app()
