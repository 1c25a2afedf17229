"""
Sales Workflow API - Main Application.

FastAPI application with CORS enabled for frontend communication.
"""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api import __version__
from api.routers import admin, auth, sales
from services.settings import EngineSettings
from services.workflow_service import SalesWorkflow


def create_app(workflow: Optional[SalesWorkflow] = None) -> FastAPI:
    """
    Build the application.

    Args:
        workflow: workflow to serve; a Supabase-backed one configured from the
            environment is created at startup when omitted
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        active = workflow or SalesWorkflow.supabase(EngineSettings.from_env())
        await active.start()
        app.state.workflow = active
        yield

    app = FastAPI(
        title="Sales Workflow API",
        description="REST API for capturing, reviewing and approving service sales",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    # TODO: Restrict origins once the frontend host is fixed
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health", tags=["Health"])
    def health_check():
        """
        Health check endpoint.

        Returns the API status and version.
        """
        return {
            "status": "healthy",
            "version": __version__,
            "service": "sales-workflow-api"
        }

    @app.get("/", tags=["Root"])
    def root():
        return {
            "message": "Sales Workflow API",
            "version": __version__,
            "docs": "/docs",
            "health": "/health"
        }

    app.include_router(auth.router, prefix="/api/v1", tags=["Auth"])
    app.include_router(sales.router, prefix="/api/v1", tags=["Sales"])
    app.include_router(admin.router, prefix="/api/v1", tags=["Admin"])
    return app


app = create_app()
