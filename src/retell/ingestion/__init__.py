"""
Ingestion module for RSS feed fetching and cover image downloading.

Provides the feed fetcher used by every sync path and the image store
used to re-host podcast covers.
"""

from retell.ingestion.rss_parser import FeedItem, ParsedFeed, fetch_feed, parse_feed_document
from retell.ingestion.downloader import ImageDownloadResult, ImageStore

__all__ = [
    "FeedItem",
    "ParsedFeed",
    "fetch_feed",
    "parse_feed_document",
    "ImageDownloadResult",
    "ImageStore",
]
