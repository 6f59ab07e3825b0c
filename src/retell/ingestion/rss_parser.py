"""
RSS feed fetching and parsing.

Retrieves a podcast RSS feed over HTTP with requests and parses it with
feedparser into a ``ParsedFeed``: feed-level metadata (title, description,
image, language, category, author) plus the ordered list of items with
their enclosure, iTunes duration and episode/season numbers.

Example:
    >>> feed = fetch_feed("https://example.com/podcast/rss")
    >>> print(f"{feed.title}: {len(feed.items)} items")
"""

import json
import logging
from dataclasses import dataclass, field, asdict
from typing import Any, Dict, List, Optional, Union

import feedparser
import requests
from dateutil import parser as date_parser

from retell.errors import FeedMalformed, FeedUnavailable

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30
DEFAULT_USER_AGENT = "RETELL-RSS-Bot/1.0"


# ---------------------------------------------------------------------------
#  Data models
# ---------------------------------------------------------------------------

@dataclass
class FeedItem:
    """
    A single ``<item>`` of a podcast feed.

    Numeric iTunes fields are kept as the raw strings found in the feed;
    the reconciler decides how to interpret them.

    Attributes:
        title: Item title
        description: Summary, falling back to full content, then iTunes summary
        pub_date: Publication date as ISO-8601 string (raw string if unparseable)
        enclosure_url: URL of the audio enclosure
        enclosure_type: MIME type of the enclosure
        enclosure_length: Declared size of the enclosure in bytes, if any
        duration: Duration string from the iTunes tag (e.g., "01:23:45")
        episode: iTunes episode number string, if present
        season: iTunes season number string, if present
        episode_type: Episode type (full, trailer, bonus)
    """

    title: str = ""
    description: str = ""
    pub_date: str = ""
    enclosure_url: str = ""
    enclosure_type: str = ""
    enclosure_length: Optional[int] = None
    duration: str = ""
    episode: Optional[str] = None
    season: Optional[str] = None
    episode_type: str = "full"

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return asdict(self)


@dataclass
class ParsedFeed:
    """
    Structured representation of a podcast feed.

    Attributes:
        title: Channel title
        description: Channel description
        link: Channel website link
        image_url: RSS ``<image>`` URL or ``itunes:image`` href
        language: Channel language code
        category: First iTunes category (first plain category otherwise)
        author: iTunes author
        items: Feed items in document order
    """

    title: str = ""
    description: str = ""
    link: str = ""
    image_url: Optional[str] = None
    language: Optional[str] = None
    category: Optional[str] = None
    author: str = ""
    items: List[FeedItem] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        data = asdict(self)
        data["item_count"] = len(self.items)
        return data

    def to_json(self, indent: int = 2) -> str:
        """Serialize to JSON string."""
        return json.dumps(self.to_dict(), indent=indent, ensure_ascii=False)


# ---------------------------------------------------------------------------
#  Fetching
# ---------------------------------------------------------------------------

def fetch_feed(
    url: str,
    timeout: int = DEFAULT_TIMEOUT,
    user_agent: str = DEFAULT_USER_AGENT,
) -> ParsedFeed:
    """
    Retrieve and parse a podcast feed.

    Args:
        url: URL of the RSS feed
        timeout: HTTP request timeout in seconds
        user_agent: User-Agent header value

    Returns:
        ParsedFeed with channel metadata and items

    Raises:
        FeedUnavailable: Network failure, timeout or non-2xx response
        FeedMalformed: The response body is not a parseable feed
    """
    logger.info("Fetching RSS feed from %s", url)
    try:
        response = requests.get(
            url,
            headers={"User-Agent": user_agent},
            timeout=timeout,
        )
        response.raise_for_status()
    except requests.exceptions.Timeout as exc:
        raise FeedUnavailable(f"Timed out fetching RSS feed {url}") from exc
    except requests.exceptions.HTTPError as exc:
        raise FeedUnavailable(f"RSS feed {url} returned HTTP error: {exc}") from exc
    except requests.exceptions.RequestException as exc:
        raise FeedUnavailable(f"Failed to fetch RSS feed {url}: {exc}") from exc

    return parse_feed_document(response.content, source=url)


def parse_feed_document(
    document: Union[bytes, str],
    source: str = "<document>",
) -> ParsedFeed:
    """
    Parse an RSS document that has already been retrieved.

    Args:
        document: Raw XML bytes or text
        source: Feed URL or label used in log and error messages

    Returns:
        ParsedFeed with channel metadata and items

    Raises:
        FeedMalformed: Document could not be parsed into a feed
    """
    feed = feedparser.parse(document)

    channel = feed.feed if hasattr(feed, "feed") else {}
    if feed.bozo and not feed.entries and not channel.get("title"):
        raise FeedMalformed(
            f"Failed to parse RSS feed {source}: {feed.bozo_exception}"
        )
    if feed.bozo:
        logger.warning(
            "Feed %s parsed with errors: %s", source, feed.bozo_exception
        )

    parsed = ParsedFeed(
        title=(channel.get("title") or "").strip(),
        description=(
            channel.get("description")
            or channel.get("subtitle")
            or channel.get("summary")
            or ""
        ),
        link=channel.get("link") or "",
        image_url=_extract_image_url(channel),
        language=channel.get("language") or None,
        category=_extract_category(channel),
        author=channel.get("author") or channel.get("itunes_author") or "",
    )

    for entry in feed.entries:
        item = _parse_entry(entry)
        if not item.title and not item.enclosure_url:
            continue
        parsed.items.append(item)

    logger.debug(
        "Parsed feed %s: %d item(s) of %d entries",
        source,
        len(parsed.items),
        len(feed.entries),
    )
    return parsed


# ---------------------------------------------------------------------------
#  Entry helpers
# ---------------------------------------------------------------------------

def _parse_entry(entry: Any) -> FeedItem:
    """
    Build a FeedItem from a feedparser entry.

    Args:
        entry: feedparser entry object

    Returns:
        FeedItem (possibly missing a title or enclosure)
    """
    title = (entry.get("title") or "").strip()

    pub_date = ""
    raw_date = getattr(entry, "published", "") or getattr(entry, "pubDate", "")
    if raw_date:
        try:
            parsed = date_parser.parse(raw_date)
            pub_date = parsed.strftime("%Y-%m-%dT%H:%M:%S%z")
        except (ValueError, OverflowError):
            pub_date = raw_date

    enclosure = _extract_enclosure(entry)

    episode_type = "full"
    if hasattr(entry, "itunes_episodetype"):
        ep_type = (entry.itunes_episodetype or "").lower()
        if ep_type in ("full", "trailer", "bonus"):
            episode_type = ep_type

    return FeedItem(
        title=title,
        description=_extract_description(entry),
        pub_date=pub_date,
        enclosure_url=enclosure.get("url", ""),
        enclosure_type=enclosure.get("type", ""),
        enclosure_length=enclosure.get("length"),
        duration=str(getattr(entry, "itunes_duration", "") or ""),
        episode=_optional_text(getattr(entry, "itunes_episode", None)),
        season=_optional_text(getattr(entry, "itunes_season", None)),
        episode_type=episode_type,
    )


def _extract_description(entry: Any) -> str:
    """Summary, then full content, then the iTunes summary."""
    summary = entry.get("summary") or entry.get("description")
    if summary:
        return summary

    content = entry.get("content") or []
    for block in content:
        value = block.get("value") if hasattr(block, "get") else None
        if value:
            return value

    return entry.get("itunes_summary") or ""


def _extract_enclosure(entry: Any) -> Dict[str, Any]:
    """
    Extract the audio enclosure from a feedparser entry.

    Prefers an ``audio/*`` enclosure, then any enclosure with a URL,
    then an ``audio/*`` link.

    Args:
        entry: feedparser entry object

    Returns:
        Dict with ``url``, ``type`` and ``length`` keys, or an empty dict
    """
    enclosures = getattr(entry, "enclosures", None) or []

    candidates = [
        enc for enc in enclosures if (enc.get("type") or "").startswith("audio/")
    ] + list(enclosures)
    for enc in candidates:
        url = enc.get("href") or enc.get("url")
        if url:
            return {
                "url": url,
                "type": enc.get("type") or "",
                "length": _parse_length(enc.get("length")),
            }

    for link in getattr(entry, "links", None) or []:
        if (link.get("type") or "").startswith("audio/"):
            url = link.get("href")
            if url:
                return {
                    "url": url,
                    "type": link.get("type") or "",
                    "length": _parse_length(link.get("length")),
                }

    return {}


def _parse_length(value: Any) -> Optional[int]:
    if not value:
        return None
    try:
        return int(value)
    except (ValueError, TypeError):
        return None


def _optional_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


# ---------------------------------------------------------------------------
#  Channel helpers
# ---------------------------------------------------------------------------

def _extract_image_url(channel: Any) -> Optional[str]:
    """
    Extract the cover image URL from the channel.

    feedparser exposes both ``<image><url>`` and ``itunes:image`` as
    ``image.href``; older parsers report ``image.url``.
    """
    image = channel.get("image")
    if image:
        url = image.get("href") or image.get("url")
        if url:
            return url
    return channel.get("itunes_image") or None


def _extract_category(channel: Any) -> Optional[str]:
    """
    First iTunes category of the channel, else its first plain category.

    Args:
        channel: feedparser feed-level dict

    Returns:
        Category label or None
    """
    tags = channel.get("tags") or []
    terms = [tag for tag in tags if tag.get("term")]
    for tag in terms:
        if "itunes" in (tag.get("scheme") or ""):
            return tag["term"]
    if terms:
        return terms[0]["term"]
    return None
