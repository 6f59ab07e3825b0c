"""Register all route modules on the FastAPI app."""

from fastapi import FastAPI

from .root import router as root_router
from .rss import router as rss_router
from .workflow import router as workflow_router


def register_routes(app: FastAPI) -> None:
    """Attach all API routers to the app."""
    app.include_router(root_router)
    app.include_router(rss_router, prefix="/api/rss", tags=["rss"])
    app.include_router(workflow_router, prefix="/api/podcasts", tags=["workflow"])
