"""Root and health endpoints."""

from fastapi import APIRouter

from retell import __version__

router = APIRouter()


@router.get("/")
def root():
    return {
        "name": "RETELL Feed Sync API",
        "version": __version__,
        "status": "healthy",
        "endpoints": {
            "rss": ["/api/rss/update", "/api/rss/sync", "/api/rss/parse", "/api/rss/import"],
            "workflow": ["/api/podcasts/{id}/workflow"],
        },
    }
