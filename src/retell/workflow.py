"""
Podcast workflow modes.

A podcast is managed in one of three modes:

- ``manual``: all podcast data is entered by hand; no feed is attached.
- ``rss``: podcast data is synced from the RSS feed.
- ``hybrid``: the feed is synced, but fields flagged in
  ``manual_overrides`` keep their hand-entered values.

The mode is not stored; it is derived from ``rss_url``,
``rss_sync_enabled`` and ``manual_overrides`` each time it is read.

Example:
    >>> state = get_workflow_state(db, podcast_id)
    >>> state.mode
    <WorkflowMode.MANUAL: 'manual'>
    >>> transition_podcast(db, podcast_id, WorkflowMode.RSS, rss_url=url)
"""

import json
import logging
import sqlite3
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional

from retell.errors import NotFound, PersistenceFailure, ValidationError
from retell.models.database import Database
from retell.models.entities import Podcast
from retell.sync.metadata import OVERRIDE_KEYS

logger = logging.getLogger(__name__)

# Fields an author can pin against feed updates
OVERRIDE_FIELDS = tuple(OVERRIDE_KEYS.values())


class WorkflowMode(str, Enum):
    """How a podcast's data is maintained."""
    MANUAL = "manual"
    RSS = "rss"
    HYBRID = "hybrid"


MODE_DESCRIPTIONS = {
    WorkflowMode.MANUAL: "Manual mode: All podcast data is managed manually",
    WorkflowMode.RSS: "RSS mode: Podcast data is automatically synced from RSS feed",
    WorkflowMode.HYBRID: "Hybrid mode: RSS sync with manual overrides for specific fields",
}


@dataclass(frozen=True)
class WorkflowTransition:
    """
    A permitted mode change.

    Attributes:
        from_mode: Current mode
        to_mode: Target mode
        preserve_data: Whether hand-entered data survives the change
        sync_rss: Whether the feed drives the podcast afterwards
    """

    from_mode: WorkflowMode
    to_mode: WorkflowMode
    preserve_data: bool
    sync_rss: bool

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "from": self.from_mode.value,
            "to": self.to_mode.value,
            "preserveData": self.preserve_data,
            "syncRSS": self.sync_rss,
        }


_TRANSITIONS = {
    WorkflowMode.MANUAL: (
        WorkflowTransition(WorkflowMode.MANUAL, WorkflowMode.RSS, False, True),
        WorkflowTransition(WorkflowMode.MANUAL, WorkflowMode.HYBRID, True, True),
    ),
    WorkflowMode.RSS: (
        WorkflowTransition(WorkflowMode.RSS, WorkflowMode.MANUAL, False, False),
        WorkflowTransition(WorkflowMode.RSS, WorkflowMode.HYBRID, True, True),
    ),
    WorkflowMode.HYBRID: (
        WorkflowTransition(WorkflowMode.HYBRID, WorkflowMode.MANUAL, False, False),
        WorkflowTransition(WorkflowMode.HYBRID, WorkflowMode.RSS, False, True),
    ),
}


@dataclass
class WorkflowState:
    """Workflow-related fields of a podcast plus the derived mode."""

    podcast_id: str
    mode: WorkflowMode
    rss_url: Optional[str]
    rss_sync_enabled: bool
    manual_overrides: Dict[str, bool] = field(default_factory=dict)
    last_rss_sync: Optional[str] = None
    rss_image_url: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "mode": self.mode.value,
            "rss_url": self.rss_url,
            "rss_sync_enabled": self.rss_sync_enabled,
            "manual_overrides": dict(self.manual_overrides),
            "last_rss_sync": self.last_rss_sync,
            "rss_image_url": self.rss_image_url,
        }


def derive_mode(
    rss_url: Optional[str],
    rss_sync_enabled: bool,
    manual_overrides: Optional[Mapping[str, bool]],
) -> WorkflowMode:
    """
    Work out a podcast's mode from its stored fields.

    No feed URL means ``manual``. With a feed URL and sync enabled the
    podcast is ``rss`` unless some field is overridden, in which case it
    is ``hybrid``. A feed URL with sync disabled is also ``hybrid``.
    """
    if not rss_url:
        return WorkflowMode.MANUAL
    if not rss_sync_enabled:
        return WorkflowMode.HYBRID
    if manual_overrides and any(value is True for value in manual_overrides.values()):
        return WorkflowMode.HYBRID
    return WorkflowMode.RSS


def available_transitions(mode: WorkflowMode) -> List[WorkflowTransition]:
    """Transitions that may be requested from ``mode``."""
    return list(_TRANSITIONS.get(WorkflowMode(mode), ()))


def describe_mode(mode: WorkflowMode) -> str:
    """Human-readable description of a mode."""
    return MODE_DESCRIPTIONS.get(WorkflowMode(mode), "Unknown mode")


def validate_transition(
    from_mode: WorkflowMode,
    to_mode: WorkflowMode,
    rss_url: Optional[str] = None,
) -> None:
    """
    Check that a mode change is allowed.

    Args:
        from_mode: Current mode
        to_mode: Requested mode
        rss_url: Feed URL the podcast will have after the change

    Raises:
        ValidationError: Same mode, missing feed URL for rss/hybrid, or
            a transition that is not offered from ``from_mode``
    """
    if from_mode == to_mode:
        raise ValidationError("Cannot transition to the same mode")

    if to_mode in (WorkflowMode.RSS, WorkflowMode.HYBRID) and not rss_url:
        raise ValidationError("RSS URL is required for RSS and hybrid modes")

    if not any(t.to_mode == to_mode for t in available_transitions(from_mode)):
        raise ValidationError(
            f"Invalid transition from {WorkflowMode(from_mode).value} to {WorkflowMode(to_mode).value}"
        )


def parse_mode(value: Any) -> WorkflowMode:
    """Read a mode name from request data."""
    try:
        return WorkflowMode(value)
    except ValueError:
        raise ValidationError(f"Unknown workflow mode: {value}")


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


def _load(db: Database, podcast_id: str) -> Podcast:
    with db.get_connection() as conn:
        row = db.get_podcast(conn, podcast_id)
    if row is None:
        raise NotFound("Podcast not found")
    return Podcast.from_row(row)


def _state_from(podcast: Podcast) -> WorkflowState:
    return WorkflowState(
        podcast_id=podcast.id,
        mode=derive_mode(podcast.rss_url, podcast.rss_sync_enabled, podcast.manual_overrides),
        rss_url=podcast.rss_url,
        rss_sync_enabled=podcast.rss_sync_enabled,
        manual_overrides=dict(podcast.manual_overrides),
        last_rss_sync=podcast.last_rss_sync.isoformat() if podcast.last_rss_sync else None,
        rss_image_url=podcast.rss_image_url,
    )


def get_workflow_state(db: Database, podcast_id: str) -> WorkflowState:
    """
    Load a podcast's workflow state.

    Raises:
        NotFound: No such podcast
    """
    return _state_from(_load(db, podcast_id))


def _save(db: Database, podcast_id: str, updates: Dict[str, Any]) -> None:
    try:
        with db.get_connection() as conn:
            db.update_podcast(conn, podcast_id, updates)
    except sqlite3.Error as exc:
        raise PersistenceFailure(f"Failed to update podcast: {exc}") from exc


def transition_podcast(
    db: Database,
    podcast_id: str,
    to_mode: WorkflowMode,
    rss_url: Optional[str] = None,
    sync_now: bool = False,
    preserve_manual_changes: bool = False,
) -> WorkflowState:
    """
    Move a podcast to another workflow mode.

    Args:
        db: Database
        podcast_id: Podcast to change
        to_mode: Target mode
        rss_url: Feed URL to attach (defaults to the podcast's current one)
        sync_now: For ``rss``, stamp ``last_rss_sync`` immediately
        preserve_manual_changes: For ``manual``, keep the feed URL and
            feed image URL instead of clearing them

    Returns:
        The podcast's workflow state after the change

    Raises:
        NotFound: No such podcast
        ValidationError: The transition is not allowed
        PersistenceFailure: The update could not be written
    """
    to_mode = parse_mode(to_mode)
    current = get_workflow_state(db, podcast_id)
    feed_url = rss_url or current.rss_url
    validate_transition(current.mode, to_mode, feed_url)

    now = _now_iso()
    updates: Dict[str, Any] = {}
    if to_mode == WorkflowMode.MANUAL:
        updates["rss_sync_enabled"] = False
        updates["manual_overrides"] = {}
        if not preserve_manual_changes:
            updates["rss_url"] = None
            updates["rss_image_url"] = None
    elif to_mode == WorkflowMode.RSS:
        updates["rss_url"] = feed_url
        updates["rss_sync_enabled"] = True
        updates["manual_overrides"] = {}
        if sync_now:
            updates["last_rss_sync"] = now
    else:
        updates["rss_url"] = feed_url
        updates["rss_sync_enabled"] = True
    updates["updated_at"] = now

    _save(db, podcast_id, updates)
    logger.info(
        "Podcast %s workflow: %s -> %s", podcast_id, current.mode.value, to_mode.value
    )
    return get_workflow_state(db, podcast_id)


def set_manual_override(
    db: Database,
    podcast_id: str,
    field_name: str,
    value: bool,
) -> WorkflowState:
    """
    Pin (or unpin) a podcast field against feed updates.

    Raises:
        ValidationError: Unknown field or non-boolean value
        NotFound: No such podcast
    """
    if field_name not in OVERRIDE_FIELDS:
        raise ValidationError("Invalid field name")
    if not isinstance(value, bool):
        raise ValidationError("Field and boolean value are required")

    current = get_workflow_state(db, podcast_id)
    overrides = dict(current.manual_overrides)
    overrides[field_name] = value

    _save(db, podcast_id, {"manual_overrides": overrides, "updated_at": _now_iso()})
    logger.info("Podcast %s override %s=%s", podcast_id, field_name, json.dumps(value))
    return get_workflow_state(db, podcast_id)
