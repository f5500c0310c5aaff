"""Query-string driven filtering, sorting, projection and pagination."""

from __future__ import annotations

import operator
import re
from datetime import datetime
from typing import Mapping

from sqlalchemy import inspect as sa_inspect

from utils.errors import ValidationError

RESERVED_PARAMS = ("page", "sort", "limit", "fields")
COMPARISON_OPERATORS = {
    "gte": operator.ge,
    "gt": operator.gt,
    "lte": operator.le,
    "lt": operator.lt,
}
# Fields that may be repeated in the query string (``?difficulty=easy&difficulty=medium``).
MULTI_VALUE_FIELDS = (
    "duration",
    "ratings_quantity",
    "ratings_average",
    "max_group_size",
    "difficulty",
    "price",
)
DEFAULT_PAGE = 1
DEFAULT_LIMIT = 100

_KEY_PATTERN = re.compile(r"^(?P<field>\w+)(?:\[(?P<op>\w+)\])?$")


def _getlist(params: Mapping, key: str) -> list:
    if hasattr(params, "getlist"):
        return params.getlist(key)
    value = params.get(key)
    if isinstance(value, (list, tuple)):
        return list(value)
    return [value]


def _last(params: Mapping, key: str):
    values = [v for v in _getlist(params, key) if v is not None]
    return values[-1] if values else None


def _positive_int(value, default: int) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError):
        return default
    return number if number > 0 else default


class APIFeatures:
    """Builds a SQLAlchemy query from request query-string parameters.

    Each step returns the builder so calls can be chained; the query is only
    executed by the caller.
    """

    def __init__(self, model, query, params: Mapping):
        self.model = model
        self.query = query
        self.params = params
        self.projection: list[str] | None = None
        self._columns = sa_inspect(model).columns

    def _column(self, name: str):
        if name not in self.model.PUBLIC_FIELDS or name not in self._columns:
            return None
        return getattr(self.model, name)

    def _coerce(self, name: str, raw):
        python_type = self._columns[name].type.python_type
        try:
            if python_type is bool:
                lowered = str(raw).strip().lower()
                if lowered in {"1", "true", "yes"}:
                    return True
                if lowered in {"0", "false", "no"}:
                    return False
                raise ValueError(raw)
            if python_type is datetime:
                return datetime.fromisoformat(str(raw).replace("Z", "+00:00")).replace(tzinfo=None)
            if python_type in (int, float):
                number = float(raw)
                if python_type is int and number.is_integer():
                    return int(number)
                return number
            return python_type(raw)
        except (TypeError, ValueError):
            raise ValidationError(f"Invalid {name}: {raw}.")

    def filter(self) -> "APIFeatures":
        for key in self.params.keys():
            if key in RESERVED_PARAMS:
                continue
            match = _KEY_PATTERN.match(key)
            if match is None:
                continue
            name, op = match.group("field"), match.group("op")
            column = self._column(name)
            if column is None:
                continue
            if op is not None and op not in COMPARISON_OPERATORS:
                continue

            values = [v for v in _getlist(self.params, key) if v is not None]
            if not values:
                continue
            if name not in MULTI_VALUE_FIELDS:
                values = values[-1:]
            coerced = [self._coerce(name, value) for value in values]

            if op is None:
                if len(coerced) > 1:
                    self.query = self.query.filter(column.in_(coerced))
                else:
                    self.query = self.query.filter(column == coerced[0])
            else:
                compare = COMPARISON_OPERATORS[op]
                for value in coerced:
                    self.query = self.query.filter(compare(column, value))
        return self

    def sort(self) -> "APIFeatures":
        raw_sort = _last(self.params, "sort")
        ordering = []
        if raw_sort:
            for part in str(raw_sort).split(","):
                part = part.strip()
                descending = part.startswith("-")
                column = self._column(part.lstrip("-"))
                if column is None:
                    continue
                ordering.append(column.desc() if descending else column.asc())
        if not ordering:
            ordering.append(self.model.created_at.desc())
            ordering.append(self.model.id.desc())
        else:
            ordering.append(self.model.id.asc())
        self.query = self.query.order_by(*ordering)
        return self

    def limit_fields(self) -> "APIFeatures":
        raw_fields = _last(self.params, "fields")
        if raw_fields:
            fields = [field.strip() for field in str(raw_fields).split(",") if field.strip()]
            self.projection = fields or None
        return self

    def paginate(self) -> "APIFeatures":
        page = _positive_int(_last(self.params, "page"), DEFAULT_PAGE)
        limit = _positive_int(_last(self.params, "limit"), DEFAULT_LIMIT)
        self.page, self.limit = page, limit
        self.query = self.query.offset((page - 1) * limit).limit(limit)
        return self
