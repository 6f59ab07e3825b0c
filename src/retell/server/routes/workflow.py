"""Podcast workflow endpoints: read mode, transition, pin fields."""

from typing import Any, Dict

from fastapi import APIRouter, Body, Depends

from retell.errors import Forbidden, NotFound, ValidationError
from retell.models.database import Database
from retell.models.entities import Role, UserProfile
from retell.server.deps import current_user, get_db
from retell.workflow import (
    available_transitions,
    get_workflow_state,
    parse_mode,
    set_manual_override,
    transition_podcast,
)

router = APIRouter()


def _check_access(db: Database, podcast_id: str, user: UserProfile) -> None:
    with db.get_connection() as conn:
        row = db.get_podcast(conn, podcast_id)
    if row is None:
        raise NotFound("Podcast not found")
    if user.role != Role.ADMIN and row["author_id"] != user.id:
        raise Forbidden("Access denied")


@router.get("/{podcast_id}/workflow")
def get_workflow(
    podcast_id: str,
    user: UserProfile = Depends(current_user),
    db: Database = Depends(get_db),
):
    _check_access(db, podcast_id, user)
    state = get_workflow_state(db, podcast_id)
    return {
        "success": True,
        "workflow": state.to_dict(),
        "availableTransitions": [t.to_dict() for t in available_transitions(state.mode)],
    }


@router.post("/{podcast_id}/workflow")
def post_workflow(
    podcast_id: str,
    body: Dict[str, Any] = Body(...),
    user: UserProfile = Depends(current_user),
    db: Database = Depends(get_db),
):
    """
    Apply a workflow action.

    - ``{"action": "transition", "to": ..., "rss_url"?, "sync_now"?, "preserve_manual_changes"?}``
    - ``{"action": "setOverride", "field": ..., "value": true|false}``
    """
    _check_access(db, podcast_id, user)
    action = body.get("action")

    if action == "transition":
        if not body.get("to"):
            raise ValidationError("Target workflow mode is required")
        to_mode = parse_mode(body["to"])
        previous = get_workflow_state(db, podcast_id).mode
        state = transition_podcast(
            db,
            podcast_id,
            to_mode,
            rss_url=body.get("rss_url"),
            sync_now=bool(body.get("sync_now")),
            preserve_manual_changes=bool(body.get("preserve_manual_changes")),
        )
        return {
            "success": True,
            "message": f"Workflow transitioned from {previous.value} to {to_mode.value}",
            "workflow": state.to_dict(),
            "availableTransitions": [t.to_dict() for t in available_transitions(state.mode)],
        }

    if action == "setOverride":
        field_name, value = body.get("field"), body.get("value")
        if not field_name or not isinstance(value, bool):
            raise ValidationError("Field and boolean value are required")
        state = set_manual_override(db, podcast_id, field_name, value)
        return {
            "success": True,
            "message": f"Override for {field_name} set to {str(value).lower()}",
            "workflow": state.to_dict(),
        }

    raise ValidationError("Invalid action")
