"""
RETELL Feed Sync

Keeps RETELL marketplace podcasts in step with their RSS feeds:
fetches and parses feeds, reconciles feed items against stored
episodes, and patches podcast metadata that changed upstream.
"""

__version__ = "0.1.0"
__author__ = "RETELL Team"

from retell.config import Config

__all__ = ["Config", "__version__"]
