"""User account routes: the current user's profile and admin management."""

from __future__ import annotations

from flask import Blueprint, g, request

from models import db
from models.review import Review
from models.user import User
from services import factory
from services.auth import authenticate, restrict_to
from services.ratings import recalculate_tour_ratings
from utils.errors import ValidationError
from utils.request_validation import filter_fields, parse_json_request

users_bp = Blueprint("users", __name__)

PASSWORD_FIELDS = ("password", "password_confirm", "current_password", "new_password")
SELF_UPDATE_FIELDS = ("name", "email", "photo")
ADMIN_CREATE_FIELDS = ("name", "email", "photo", "role", "password")
ADMIN_UPDATE_FIELDS = ("name", "email", "photo", "role")


def _hash_password(user: User) -> None:
    user.apply_pending_password()


@users_bp.before_request
def _require_login():
    authenticate()


@users_bp.route("/me", methods=["GET"])
def get_me():
    return factory.get_one(User, g.user.id)


@users_bp.route("/updateMe", methods=["PATCH"])
def update_me():
    """Update the caller's profile; passwords go through /updatePassword."""

    payload = parse_json_request(request)
    if any(key in payload for key in PASSWORD_FIELDS):
        raise ValidationError(
            "This route is not for password updates. Please use /updatePassword."
        )
    return factory.update_one(User, g.user.id, filter_fields(payload, *SELF_UPDATE_FIELDS))


@users_bp.route("/deleteMe", methods=["DELETE"])
def delete_me():
    """Deactivate the caller's account; the record is kept."""

    g.user.active = False
    db.session.commit()
    return "", 204


@users_bp.route("", methods=["GET"])
@restrict_to("admin")
def list_users():
    return factory.get_all(User, request.args)


@users_bp.route("", methods=["POST"])
@restrict_to("admin")
def create_user():
    """Create a user directly, with any role."""

    payload = parse_json_request(request)
    return factory.create_one(
        User, payload, before_save=_hash_password, fields=ADMIN_CREATE_FIELDS
    )


@users_bp.route("/<int:user_id>", methods=["GET"])
@restrict_to("admin")
def get_user(user_id: int):
    return factory.get_one(User, user_id)


@users_bp.route("/<int:user_id>", methods=["PATCH"])
@restrict_to("admin")
def update_user(user_id: int):
    """Admin update; passwords cannot be changed here."""

    payload = parse_json_request(request)
    if any(key in payload for key in PASSWORD_FIELDS):
        raise ValidationError("Passwords cannot be changed through this route.")
    return factory.update_one(User, user_id, payload, fields=ADMIN_UPDATE_FIELDS)


@users_bp.route("/<int:user_id>", methods=["DELETE"])
@restrict_to("admin")
def delete_user(user_id: int):
    """Delete a user together with their reviews."""

    rows = db.session.query(Review.tour_id).filter(Review.user_id == user_id).distinct()
    tour_ids = [tour_id for (tour_id,) in rows]

    def refresh_ratings(_user: User) -> None:
        for tour_id in tour_ids:
            recalculate_tour_ratings(tour_id)

    return factory.delete_one(User, user_id, after_delete=refresh_ratings)
