"""Custom exceptions for RETELL feed sync.

Every exception carries the HTTP status the API answers with when it
escapes a single-podcast operation.
"""


class RetellError(Exception):
    """Base exception for all RETELL errors."""

    status_code = 500


class FeedError(RetellError):
    """RSS feed retrieval or parsing errors."""

    pass


class FeedUnavailable(FeedError):
    """Feed could not be retrieved (network failure, timeout, HTTP error)."""

    status_code = 502


class FeedMalformed(FeedError):
    """Feed was retrieved but could not be parsed."""

    status_code = 400


class PersistenceFailure(RetellError):
    """Database write failed while inserting episodes or updating a podcast."""

    status_code = 500


class AccessError(RetellError):
    """Caller may not perform the requested operation."""

    status_code = 403


class Unauthorized(AccessError):
    """No caller identity, or an unknown one."""

    status_code = 401


class Forbidden(AccessError):
    """Caller is known but lacks the required role."""

    status_code = 403


class NotFound(AccessError):
    """No such podcast or feed, or the caller does not own it."""

    status_code = 404


class ValidationError(RetellError):
    """Request data is missing or invalid."""

    status_code = 400
