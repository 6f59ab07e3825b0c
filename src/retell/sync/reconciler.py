"""
Episode reconciliation.

Compares parsed feed items against a podcast's stored episodes and
returns the episodes that should be inserted. Duplicates are detected by
case-insensitive title and by audio URL; items without an explicit
iTunes episode number are numbered from a running counter that starts
after the highest stored number.

The reconciler performs no I/O. Running it again with its own output
added to the existing episodes yields nothing new.

Example:
    >>> new = reconcile_episodes(existing=[], items=feed.items)
    >>> [ep.episode_number for ep in new]
    [1, 2, 3]
"""

import math
import re
from dataclasses import dataclass, asdict
from typing import Any, Dict, Iterable, List, Optional, Sequence

from retell.ingestion.rss_parser import FeedItem


_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")

# Range of an SQLite INTEGER column
SQLITE_INT_MIN = -(2 ** 63)
SQLITE_INT_MAX = 2 ** 63 - 1


@dataclass(frozen=True)
class ExistingEpisode:
    """The fields of a stored episode the reconciler compares against."""

    title: str
    episode_number: Optional[int]
    audio_url: Optional[str]


@dataclass
class NewEpisode:
    """
    An episode record ready to insert.

    Attributes:
        title: Episode title as given by the feed
        description: Item description
        audio_url: Enclosure URL
        duration: Duration in whole seconds, or None
        episode_number: Explicit feed number or the assigned running number
        season_number: Feed season, defaulting to 1
        script_url: Always empty for feed-created episodes
    """

    title: str
    description: str
    audio_url: str
    duration: Optional[int]
    episode_number: int
    season_number: int = 1
    script_url: str = ""

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return asdict(self)


def parse_duration(duration: Optional[str]) -> Optional[int]:
    """
    Parse an iTunes duration string to whole seconds.

    Supports:
    - HH:MM:SS (e.g., "1:01:30" = 3690 seconds)
    - MM:SS (e.g., "1:30" = 90 seconds)
    - SS (e.g., "90" = 90 seconds)

    Args:
        duration: Duration string from the feed

    Returns:
        Total seconds, or None for empty or unparseable input

    Example:
        >>> parse_duration("1:01:30")
        3690
        >>> parse_duration("soon") is None
        True
    """
    if duration is None:
        return None

    text = str(duration).strip()
    if not text:
        return None

    parts = text.split(":")
    if len(parts) > 3:
        return None

    try:
        values = [float(part) for part in parts]
    except ValueError:
        return None

    if any(not math.isfinite(value) or value < 0 for value in values):
        return None

    total = 0.0
    for value in values:
        total = total * 60 + value
    if not math.isfinite(total) or total > SQLITE_INT_MAX:
        return None
    return int(total)


def parse_feed_number(value: Optional[str]) -> Optional[int]:
    """
    Read an iTunes episode or season number.

    Only the leading integer counts, so "12" and "12a" are both 12;
    strings without one, or numbers too large to store, are treated
    as absent.
    """
    if value is None:
        return None
    match = _LEADING_INT.match(str(value))
    if not match:
        return None
    number = int(match.group(1))
    if not SQLITE_INT_MIN <= number <= SQLITE_INT_MAX:
        return None
    return number


def to_existing(episodes: Iterable[Any]) -> List[ExistingEpisode]:
    """
    Normalize stored episodes (rows, models or mappings) for comparison.

    Args:
        episodes: Objects or mappings with ``title``, ``episode_number``
            and ``audio_url``

    Returns:
        List of ExistingEpisode
    """
    result = []
    for ep in episodes:
        if isinstance(ep, ExistingEpisode):
            result.append(ep)
            continue
        if hasattr(ep, "keys"):
            title, number, audio_url = ep["title"], ep["episode_number"], ep["audio_url"]
        else:
            title, number, audio_url = ep.title, ep.episode_number, ep.audio_url
        result.append(ExistingEpisode(title=title or "", episode_number=number, audio_url=audio_url))
    return result


def next_episode_number(existing: Sequence[ExistingEpisode]) -> int:
    """Highest stored episode number plus one (1 for an empty podcast)."""
    numbers = [ep.episode_number for ep in existing if ep.episode_number is not None]
    return max(numbers, default=0) + 1


def reconcile_episodes(
    existing: Iterable[Any],
    items: Iterable[FeedItem],
) -> List[NewEpisode]:
    """
    Compute the feed items that are new for a podcast.

    For each item, in feed order:

    1. skip it if it has no title or no enclosure URL;
    2. skip it if its lowercased title or its audio URL is already stored;
    3. take its explicit episode number, or the running counter;
    4. if that number is already stored (or too large to store), skip the
       item and advance the counter (the item is not renumbered);
    5. otherwise accept it and advance the counter.

    Accepted titles and audio URLs count as stored for the rest of the
    run; accepted numbers do not.

    Args:
        existing: The podcast's stored episodes
        items: Parsed feed items

    Returns:
        New episodes to insert, in feed order
    """
    stored = to_existing(existing)

    known_titles = {ep.title.lower() for ep in stored}
    known_numbers = {ep.episode_number for ep in stored}
    known_audio_urls = {ep.audio_url for ep in stored}

    counter = next_episode_number(stored)
    new_episodes: List[NewEpisode] = []

    for item in items:
        if not item.title or not item.enclosure_url:
            continue

        if item.title.lower() in known_titles or item.enclosure_url in known_audio_urls:
            continue

        explicit = parse_feed_number(item.episode)
        episode_number = explicit if explicit is not None else counter

        if episode_number in known_numbers or episode_number > SQLITE_INT_MAX:
            counter += 1
            continue

        season = parse_feed_number(item.season)
        new_episodes.append(
            NewEpisode(
                title=item.title,
                description=item.description or "",
                audio_url=item.enclosure_url,
                duration=parse_duration(item.duration),
                episode_number=episode_number,
                season_number=season if season is not None else 1,
            )
        )
        known_titles.add(item.title.lower())
        known_audio_urls.add(item.enclosure_url)
        counter += 1

    return new_episodes
