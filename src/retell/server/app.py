"""
RETELL feed sync -- FastAPI app factory.

Use: retell serve
Or:  uvicorn --factory retell.server.app:create_app
"""

import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from retell import __version__
from retell.config import Config, get_config
from retell.errors import RetellError
from retell.models.database import Database
from retell.server.routes import register_routes

logger = logging.getLogger(__name__)


def create_app(config: Optional[Config] = None, db: Optional[Database] = None) -> FastAPI:
    """
    Build the FastAPI app.

    Args:
        config: Application Config object (optional, uses default if None)
        db: Database (optional, opened at ``config.db_path`` if None)

    Returns:
        FastAPI application with routes and error handling attached
    """
    if config is None:
        config = get_config()
    if db is None:
        db = Database(config.db_path)
    db.initialize()

    app = FastAPI(
        title="RETELL Feed Sync API",
        description="RSS feed sync for marketplace podcasts",
        version=__version__,
    )
    app.state.config = config
    app.state.db = db

    @app.exception_handler(RetellError)
    async def retell_error_handler(request: Request, exc: RetellError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc)
        return JSONResponse(status_code=exc.status_code, content={"error": str(exc)})

    register_routes(app)
    return app
