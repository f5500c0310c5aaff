"""Utilities for validating incoming Flask requests."""

from __future__ import annotations

from typing import Iterable

from flask import Request

from utils.errors import ValidationError


def parse_json_request(
    req: Request,
    *,
    required_keys: Iterable[str] | None = None,
    allow_empty: bool = False,
) -> dict:
    """Return the parsed JSON body or raise a 400 error."""

    if not req.is_json:
        raise ValidationError("Request content type must be application/json.")

    data = req.get_json(silent=True)
    if data is None:
        raise ValidationError("Request JSON body is required.")

    if not isinstance(data, dict):
        raise ValidationError("Request JSON payload must be an object.")

    if not data and not allow_empty:
        raise ValidationError("Request JSON body must not be empty.")

    if required_keys:
        missing = [key for key in required_keys if not data.get(key)]
        if missing:
            raise ValidationError(
                "Missing required fields: {}.".format(", ".join(sorted(missing)))
            )

    return data


def filter_fields(data: dict, *allowed: str) -> dict:
    """Return only the allowed keys of ``data``."""

    return {key: value for key, value in data.items() if key in allowed}
