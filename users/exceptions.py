"""
users/exceptions.py -- Error taxonomy for account operations.

Every error carries the HTTP status and machine-readable code the API layer
renders, so api/main.py needs a single exception handler for the whole family.
All of them are deterministic given the current stored state; none are retried.
"""

from __future__ import annotations


class UserServiceError(Exception):
    """Base class for account errors that are safe to show to the caller."""

    status_code: int = 400
    code: str = "user_error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class NotFound(UserServiceError):
    """No record matches the request."""

    status_code = 404
    code = "not_found"


class InvalidInput(UserServiceError):
    """The request conflicts with stored data (duplicate username/email, missing authority)."""

    status_code = 400
    code = "invalid_input"


class BadRequest(UserServiceError):
    """A business rule forbids the operation (protected account, last authority holder)."""

    status_code = 400
    code = "bad_request"
