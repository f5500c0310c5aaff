"""Operational error types surfaced to API clients.

Each error is a Werkzeug ``HTTPException`` so the application's single
``HTTPException`` handler formats it. The description is safe to show to
clients verbatim.
"""

from __future__ import annotations

from werkzeug import exceptions


class ValidationError(exceptions.BadRequest):
    description = "Invalid input data."


class DuplicateKey(exceptions.BadRequest):
    description = "Duplicate field value. Please use another value!"


class InvalidOrExpiredToken(exceptions.BadRequest):
    description = "Token is invalid or has expired."


class Unauthenticated(exceptions.Unauthorized):
    description = "You are not logged in! Please log in to get access."


class InvalidToken(exceptions.Unauthorized):
    description = "Invalid token. Please log in again!"


class UserNotFound(exceptions.Unauthorized):
    description = "The user belonging to this token no longer exists."


class StalePassword(exceptions.Unauthorized):
    description = "User recently changed password! Please log in again."


class IncorrectCredentials(exceptions.Unauthorized):
    description = "Incorrect email or password."


class Forbidden(exceptions.Forbidden):
    description = "You do not have permission to perform this action."


class NotFound(exceptions.NotFound):
    description = "No document found with that ID."


class InternalError(exceptions.InternalServerError):
    description = "Something went very wrong!"


def status_for(code: int) -> str:
    """Return the JSON ``status`` value for an HTTP status code."""

    return "fail" if 400 <= code < 500 else "error"
