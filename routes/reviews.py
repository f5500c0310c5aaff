"""Review routes, mounted at ``/reviews`` and nested under ``/tours/<id>/reviews``."""

from __future__ import annotations

from flask import Blueprint, g, request

from models import db
from models.review import Review
from services import factory
from services.auth import authenticate, restrict_to
from services.ratings import recalculate_tour_ratings
from utils.request_validation import parse_json_request

reviews_bp = Blueprint("reviews", __name__)

CREATE_FIELDS = ("review", "rating", "tour_id", "user_id")
UPDATE_FIELDS = ("review", "rating")


def _refresh_ratings(review: Review) -> None:
    recalculate_tour_ratings(review.tour_id)


@reviews_bp.before_request
def _require_login():
    authenticate()


@reviews_bp.route("", methods=["GET"])
def list_reviews(tour_id: int | None = None):
    base_filter = {"tour_id": tour_id} if tour_id is not None else None
    return factory.get_all(Review, request.args, base_filter=base_filter)


@reviews_bp.route("", methods=["POST"])
@restrict_to("user")
def create_review(tour_id: int | None = None):
    """Post a review; the tour comes from the URL and the author from the session."""

    payload = parse_json_request(request)
    payload.setdefault("tour_id", tour_id)
    payload.setdefault("user_id", g.user.id)
    return factory.create_one(
        Review, payload, after_save=_refresh_ratings, fields=CREATE_FIELDS
    )


@reviews_bp.route("/<int:review_id>", methods=["GET"])
def get_review(review_id: int, tour_id: int | None = None):
    return factory.get_one(Review, review_id)


@reviews_bp.route("/<int:review_id>", methods=["PATCH"])
@restrict_to("user", "admin")
def update_review(review_id: int, tour_id: int | None = None):
    payload = parse_json_request(request)
    return factory.update_one(
        Review, review_id, payload, after_save=_refresh_ratings, fields=UPDATE_FIELDS
    )


@reviews_bp.route("/<int:review_id>", methods=["DELETE"])
@restrict_to("user", "admin")
def delete_review(review_id: int, tour_id: int | None = None):
    review = db.session.get(Review, review_id)
    review_tour_id = review.tour_id if review is not None else None

    def refresh_ratings(_review: Review) -> None:
        recalculate_tour_ratings(review_tour_id)

    return factory.delete_one(Review, review_id, after_delete=refresh_ratings)
