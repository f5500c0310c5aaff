"""Shared model behaviour for the API resources."""

from __future__ import annotations

from typing import Iterable


class ResourceMixin:
    """Serialization, assignment and visibility shared by API resources.

    ``PUBLIC_FIELDS`` lists the columns clients may read, filter and sort on.
    ``INTERNAL_FIELDS`` are only serialized when a projection names them.
    """

    PUBLIC_FIELDS = ()
    INTERNAL_FIELDS = ("version",)
    WRITABLE_FIELDS = ()

    @classmethod
    def visible_query(cls):
        """Return the base query every lookup starts from."""

        return cls.query

    def serialize(self, expand: Iterable[str] = ()) -> dict:
        raise NotImplementedError

    def to_dict(self, fields: Iterable[str] | None = None, expand: Iterable[str] = ()) -> dict:
        """Serialize the resource, optionally limited to ``fields``."""

        data = self.serialize(expand=expand)
        if not fields:
            return data

        projected = {"id": data.get("id")}
        for name in fields:
            if name in data:
                projected[name] = data[name]
            elif name in self.INTERNAL_FIELDS and hasattr(self, name):
                projected[name] = getattr(self, name)
        return projected

    def assign(self, data: dict, fields: Iterable[str] | None = None) -> None:
        """Copy writable keys of ``data`` onto the instance."""

        allowed = set(fields if fields is not None else self.WRITABLE_FIELDS)
        for key, value in data.items():
            if key in allowed:
                setattr(self, key, value)

    def validate(self) -> list[str]:
        """Return a list of validation messages; empty when valid."""

        return []


def isoformat(value) -> str | None:
    return value.isoformat() if value else None
