"""Tour routes: CRUD, aliases and reports."""

from __future__ import annotations

from flask import Blueprint, jsonify, request

from models.tour import Tour, slugify
from routes.reviews import reviews_bp
from services import factory, reports
from services.auth import protect, restrict_to
from utils.errors import ValidationError
from utils.request_validation import parse_json_request

tours_bp = Blueprint("tours", __name__)
tours_bp.register_blueprint(
    reviews_bp, url_prefix="/<int:tour_id>/reviews", name="tour_reviews"
)

TOP_CHEAP_PARAMS = {
    "limit": "5",
    "sort": "-ratings_average,price",
    "fields": "name,price,ratings_average,summary,difficulty",
}


def _set_slug(tour: Tour) -> None:
    tour.slug = slugify(tour.name)


def _staff_only(view):
    """Require a logged-in admin or lead guide."""

    return protect(restrict_to("admin", "lead-guide")(view))


@tours_bp.route("", methods=["GET"])
def list_tours():
    return factory.get_all(Tour, request.args)


@tours_bp.route("/top-5-cheap", methods=["GET"])
def top_cheap_tours():
    """The five best rated tours, cheapest first on ties."""

    params = request.args.copy()
    for key, value in TOP_CHEAP_PARAMS.items():
        params[key] = value
    return factory.get_all(Tour, params)


@tours_bp.route("/tour-stats", methods=["GET"])
def tour_stats():
    return jsonify({"status": "success", "data": {"stats": reports.tour_stats()}})


@tours_bp.route("/monthly-plan/<int:year>", methods=["GET"])
@protect
@restrict_to("admin", "lead-guide", "guide")
def monthly_plan(year: int):
    return jsonify({"status": "success", "data": {"plan": reports.monthly_plan(year)}})


@tours_bp.route("/tours-within/<distance>/center/<latlng>/unit/<unit>", methods=["GET"])
def tours_within(distance: str, latlng: str, unit: str):
    """Tours starting within ``distance`` (in ``unit``) of ``latlng``."""

    try:
        radius = float(distance)
    except ValueError:
        raise ValidationError("Distance must be a number.")

    tours = reports.tours_within(radius, latlng, unit)
    return jsonify(
        {
            "status": "success",
            "results": len(tours),
            "data": {"data": [tour.to_dict() for tour in tours]},
        }
    )


@tours_bp.route("/distances/<latlng>/unit/<unit>", methods=["GET"])
def distances(latlng: str, unit: str):
    return jsonify({"status": "success", "data": {"data": reports.distances(latlng, unit)}})


@tours_bp.route("/<int:tour_id>", methods=["GET"])
def get_tour(tour_id: int):
    return factory.get_one(Tour, tour_id, expand=("reviews",))


@tours_bp.route("", methods=["POST"])
@_staff_only
def create_tour():
    payload = parse_json_request(request)
    return factory.create_one(Tour, payload, before_save=_set_slug)


@tours_bp.route("/<int:tour_id>", methods=["PATCH"])
@_staff_only
def update_tour(tour_id: int):
    payload = parse_json_request(request)
    return factory.update_one(Tour, tour_id, payload, before_save=_set_slug)


@tours_bp.route("/<int:tour_id>", methods=["DELETE"])
@_staff_only
def delete_tour(tour_id: int):
    return factory.delete_one(Tour, tour_id)
