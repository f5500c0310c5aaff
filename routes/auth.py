"""Authentication blueprint: signup, login, logout and password management."""

from __future__ import annotations

from datetime import datetime, timedelta
from http import HTTPStatus

from flask import Blueprint, current_app, g, jsonify, request, url_for
from flask_jwt_extended import unset_jwt_cookies

from models import db
from models.user import User, hash_reset_token
from services.auth import authenticate, create_send_token
from utils.email import Email, EmailDeliveryError
from utils.errors import (
    IncorrectCredentials,
    InternalError,
    InvalidOrExpiredToken,
    NotFound,
    ValidationError,
)
from utils.request_validation import parse_json_request

auth_bp = Blueprint("auth", __name__)


def _raise_if_invalid(user: User) -> None:
    errors = user.validate()
    if errors:
        raise ValidationError("Invalid input data. {}".format(". ".join(errors)))


@auth_bp.route("/signup", methods=["POST"])
def signup():
    """Register a new user and log them in."""

    payload = parse_json_request(request)
    user = User(name=payload.get("name"), email=payload.get("email"), role="user")
    user.stage_password(payload.get("password"), payload.get("password_confirm"))
    _raise_if_invalid(user)
    user.apply_pending_password()

    db.session.add(user)
    db.session.commit()

    try:
        Email(user, url_for("views.overview", _external=True)).send_welcome()
    except EmailDeliveryError as exc:
        current_app.logger.warning("Welcome email to %s failed: %s", user.email, exc)

    return create_send_token(user, HTTPStatus.CREATED)


@auth_bp.route("/login", methods=["POST"])
def login():
    """Authenticate a user and return a session token."""

    payload = parse_json_request(request)
    email = payload.get("email")
    password = payload.get("password")

    if not email or not password:
        raise ValidationError("Please provide email and password!")

    user = User.find_by_email(email)
    if user is None or not user.check_password(password):
        raise IncorrectCredentials()

    return create_send_token(user, HTTPStatus.OK)


@auth_bp.route("/logout", methods=["GET"])
def logout():
    response = jsonify({"status": "success"})
    unset_jwt_cookies(response)
    return response


@auth_bp.route("/forgotPassword", methods=["POST"])
def forgot_password():
    """Email a one-time password reset link."""

    payload = parse_json_request(request, required_keys=("email",))
    user = User.find_by_email(payload.get("email"))
    if user is None:
        raise NotFound("There is no user with that email address.")

    expires_in = timedelta(minutes=current_app.config["PASSWORD_RESET_EXPIRES_MINUTES"])
    reset_token = user.create_password_reset_token(expires_in)
    db.session.commit()

    reset_url = url_for("auth.reset_password", token=reset_token, _external=True)
    try:
        Email(user, reset_url).send_password_reset()
    except EmailDeliveryError:
        user.clear_password_reset_token()
        db.session.commit()
        raise InternalError("There was an error sending the email. Try again later!")

    return jsonify({"status": "success", "message": "Token sent to email!"})


@auth_bp.route("/resetPassword/<token>", methods=["PATCH"])
def reset_password(token: str):
    """Set a new password using a reset token; the token works once."""

    payload = parse_json_request(request)
    user = (
        User.visible_query()
        .filter(
            User.password_reset_token == hash_reset_token(token),
            User.password_reset_expires > datetime.utcnow(),
        )
        .first()
    )
    if user is None:
        raise InvalidOrExpiredToken()

    user.stage_password(payload.get("password"), payload.get("password_confirm"))
    _raise_if_invalid(user)
    user.apply_pending_password()
    user.clear_password_reset_token()
    db.session.commit()

    return create_send_token(user, HTTPStatus.OK)


@auth_bp.route("/updatePassword", methods=["PATCH"])
def update_password():
    """Change the logged-in user's password after re-checking the current one."""

    authenticate()
    payload = parse_json_request(request)
    user: User = g.user

    current_password = payload.get("current_password")
    new_password = payload.get("new_password")
    if not current_password or not user.check_password(current_password):
        raise IncorrectCredentials("Your current password is wrong.")
    if new_password == current_password:
        raise ValidationError("New password cannot be the same as the current password!")

    user.stage_password(new_password, payload.get("new_password_confirm"))
    _raise_if_invalid(user)
    user.apply_pending_password()
    db.session.commit()

    return create_send_token(user, HTTPStatus.OK)
