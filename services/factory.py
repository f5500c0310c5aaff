"""Generic CRUD handlers shared by the tour, user and review routes.

Each handler takes the model class it operates on. Models provide
``visible_query()``, ``assign()``, ``validate()`` and ``to_dict()`` (see
``models.base.ResourceMixin``). Optional hooks run the per-resource lifecycle
steps: ``before_save`` once the document is valid, ``after_save`` and
``after_delete`` after the commit.
"""

from __future__ import annotations

from typing import Callable, Iterable, Mapping, Optional

from flask import jsonify

from models import db
from utils.api_features import APIFeatures
from utils.errors import NotFound, ValidationError

Hook = Optional[Callable[[object], None]]


def _find_or_404(model, doc_id: int):
    doc = model.visible_query().filter(model.id == doc_id).first()
    if doc is None:
        raise NotFound()
    return doc


def _raise_if_invalid(doc) -> None:
    errors = doc.validate()
    if errors:
        raise ValidationError("Invalid input data. {}".format(". ".join(errors)))


def _success(payload, status_code: int = 200):
    return jsonify({"status": "success", "data": {"data": payload}}), status_code


def get_all(model, params: Mapping, base_filter: dict | None = None):
    """List documents using the query-string filter/sort/fields/page features."""

    query = model.visible_query()
    if base_filter:
        query = query.filter_by(**base_filter)

    features = APIFeatures(model, query, params).filter().sort().limit_fields().paginate()
    docs = features.query.all()
    return (
        jsonify(
            {
                "status": "success",
                "results": len(docs),
                "data": {"data": [doc.to_dict(fields=features.projection) for doc in docs]},
            }
        ),
        200,
    )


def get_one(model, doc_id: int, expand: Iterable[str] = ()):
    doc = _find_or_404(model, doc_id)
    return _success(doc.to_dict(expand=expand))


def create_one(model, data: dict, before_save: Hook = None, after_save: Hook = None, fields=None):
    doc = model()
    with db.session.no_autoflush:
        doc.assign(data, fields=fields)
        _raise_if_invalid(doc)
        if before_save is not None:
            before_save(doc)

    db.session.add(doc)
    db.session.commit()
    if after_save is not None:
        after_save(doc)
    return _success(doc.to_dict(), 201)


def update_one(
    model,
    doc_id: int,
    data: dict,
    before_save: Hook = None,
    after_save: Hook = None,
    fields=None,
):
    """Apply a partial update and re-validate the whole document."""

    doc = _find_or_404(model, doc_id)
    with db.session.no_autoflush:
        doc.assign(data, fields=fields)
        try:
            _raise_if_invalid(doc)
        except ValidationError:
            db.session.rollback()
            raise
        if before_save is not None:
            before_save(doc)

    db.session.commit()
    if after_save is not None:
        after_save(doc)
    return _success(doc.to_dict())


def delete_one(model, doc_id: int, after_delete: Hook = None):
    doc = _find_or_404(model, doc_id)
    db.session.delete(doc)
    db.session.commit()
    if after_delete is not None:
        after_delete(doc)
    return "", 204
