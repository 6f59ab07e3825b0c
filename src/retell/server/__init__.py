"""HTTP API for RETELL feed sync (FastAPI)."""

from retell.server.app import create_app

__all__ = ["create_app"]
