"""Request dependencies: app state and caller identity."""

from typing import Optional

from fastapi import Depends, Header, Request

from retell.config import Config
from retell.errors import Forbidden, Unauthorized
from retell.models.database import Database
from retell.models.entities import Role, UserProfile


def get_config(request: Request) -> Config:
    return request.app.state.config


def get_db(request: Request) -> Database:
    return request.app.state.db


def current_user(
    x_user_id: Optional[str] = Header(default=None),
    db: Database = Depends(get_db),
) -> UserProfile:
    """Resolve the caller from the ``X-User-Id`` header."""
    if not x_user_id:
        raise Unauthorized("Unauthorized")
    with db.get_connection() as conn:
        row = db.get_user_profile(conn, x_user_id)
    if row is None:
        raise Unauthorized("Unauthorized")
    return UserProfile.from_row(row)


def require_author(user: UserProfile = Depends(current_user)) -> UserProfile:
    """Only authors may sync or import feeds."""
    if user.role != Role.AUTHOR:
        raise Forbidden("Only authors can update RSS feeds")
    return user


def require_service_token(
    authorization: Optional[str] = Header(default=None),
    config: Config = Depends(get_config),
) -> None:
    """Check the bearer token of the platform-wide sync caller."""
    expected = config.service_token
    if not expected or authorization != f"Bearer {expected}":
        raise Unauthorized("Unauthorized")
