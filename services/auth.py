"""Session tokens, request authentication and role checks.

``authenticate`` is the hard check used by API routes (it raises on every
failure); ``is_logged_in`` runs the same checks for rendered pages and never
fails the request. Both leave the resolved user on ``g.user``.
"""

from __future__ import annotations

from functools import wraps
from typing import Callable

from flask import current_app, g, jsonify
from flask_jwt_extended import (
    create_access_token,
    get_jwt,
    get_jwt_identity,
    set_access_cookies,
    verify_jwt_in_request,
)
from flask_jwt_extended.exceptions import JWTExtendedException, NoAuthorizationError
from jwt import PyJWTError

from models.user import User
from utils.errors import (
    Forbidden,
    InvalidToken,
    StalePassword,
    Unauthenticated,
    UserNotFound,
)


def create_send_token(user: User, status_code: int):
    """Sign a token for ``user`` and return it in the body and as a cookie."""

    token = create_access_token(identity=str(user.id))
    response = jsonify({"status": "success", "token": token, "data": {"user": user.to_dict()}})
    response.status_code = status_code
    set_access_cookies(
        response,
        token,
        max_age=int(current_app.config["JWT_COOKIE_EXPIRES_IN"].total_seconds()),
    )
    return response


def _resolve_user() -> User:
    try:
        verify_jwt_in_request()
    except NoAuthorizationError:
        raise Unauthenticated()
    except (JWTExtendedException, PyJWTError):
        raise InvalidToken()

    try:
        user_id = int(get_jwt_identity())
    except (TypeError, ValueError):
        raise InvalidToken()

    user = User.visible_query().filter(User.id == user_id).first()
    if user is None:
        raise UserNotFound()

    if user.changed_password_after(int(get_jwt().get("iat", 0))):
        raise StalePassword()
    return user


def authenticate() -> None:
    """Require a valid session token and attach the user to ``g``."""

    g.user = _resolve_user()


def protect(view: Callable) -> Callable:
    """Decorator form of :func:`authenticate`."""

    @wraps(view)
    def wrapper(*args, **kwargs):
        authenticate()
        return view(*args, **kwargs)

    return wrapper


def is_logged_in() -> None:
    """Attach the logged-in user to ``g`` when there is one; never fails."""

    try:
        g.user = _resolve_user()
    except (Unauthenticated, InvalidToken, UserNotFound, StalePassword):
        g.user = None


def restrict_to(*roles: str) -> Callable:
    """Allow the decorated view only for users holding one of ``roles``.

    Must run after :func:`authenticate`.
    """

    def decorator(view: Callable) -> Callable:
        @wraps(view)
        def wrapper(*args, **kwargs):
            user = g.get("user")
            if user is None:
                raise Unauthenticated()
            if user.role not in roles:
                raise Forbidden()
            return view(*args, **kwargs)

        return wrapper

    return decorator
