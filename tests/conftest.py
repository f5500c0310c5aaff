"""Shared pytest fixtures for the application tests."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Callable

import pytest
from flask import Flask
from flask.testing import FlaskClient

ROOT_DIR = Path(__file__).resolve().parent.parent
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from flask_jwt_extended import create_access_token  # noqa: E402

from app import create_app  # noqa: E402
from config import Config  # noqa: E402
from models import db  # noqa: E402
from models.tour import Tour, slugify  # noqa: E402
from models.user import User  # noqa: E402

DEFAULT_PASSWORD = "test1234"


class _BaseTestConfig(Config):
    TESTING = True
    APP_ENV = "test"
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SECRET_KEY = "test-secret-key-with-enough-length-for-hs256"
    JWT_SECRET_KEY = "test-jwt-secret-key-with-enough-length-for-hs256"
    BCRYPT_LOG_ROUNDS = 4
    MAIL_SUPPRESS_SEND = True
    RATELIMIT_ENABLED = False


def build_app(**overrides) -> Flask:
    """Create an app from the test config with per-test overrides."""

    class TestConfig(_BaseTestConfig):
        pass

    for key, value in overrides.items():
        setattr(TestConfig, key, value)

    return create_app(TestConfig)


@pytest.fixture()
def app() -> Flask:
    """Create a Flask application instance for tests."""

    application = build_app()

    with application.app_context():
        db.create_all()

    yield application

    with application.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(app: Flask) -> FlaskClient:
    """Return a test client for the Flask app."""

    return app.test_client()


@pytest.fixture()
def outbox(app: Flask) -> list:
    """Messages recorded instead of sent while mail is suppressed."""

    return app.extensions.setdefault("mail_outbox", [])


def tour_payload(**overrides) -> dict:
    payload = {
        "name": "The Forest Hiker",
        "duration": 5,
        "max_group_size": 25,
        "difficulty": "easy",
        "price": 397,
        "summary": "Breathtaking hike through the Canadian Banff National Park",
        "image_cover": "tour-1-cover.jpg",
        "start_location": {"type": "Point", "coordinates": [-115.570154, 51.178456]},
    }
    payload.update(overrides)
    return payload


@pytest.fixture()
def make_user(app: Flask) -> Callable[..., int]:
    """Persist a user and return its id."""

    counter = {"n": 0}

    def _make_user(
        role: str = "user",
        *,
        email: str | None = None,
        name: str = "Test User",
        password: str = DEFAULT_PASSWORD,
        active: bool = True,
    ) -> int:
        counter["n"] += 1
        with app.app_context():
            user = User(
                name=name,
                email=email or f"{role}{counter['n']}@example.com",
                role=role,
                active=active,
            )
            user.set_password(password)
            db.session.add(user)
            db.session.commit()
            return user.id

    return _make_user


@pytest.fixture()
def make_tour(app: Flask) -> Callable[..., int]:
    """Persist a tour built from :func:`tour_payload` and return its id."""

    def _make_tour(**overrides) -> int:
        with app.app_context():
            tour = Tour()
            tour.assign(tour_payload(**overrides))
            errors = tour.validate()
            assert not errors, errors
            tour.slug = slugify(tour.name)
            db.session.add(tour)
            db.session.commit()
            return tour.id

    return _make_tour


@pytest.fixture()
def auth_header(app: Flask) -> Callable[[int], dict]:
    """Return an ``Authorization`` header carrying a fresh token for a user id."""

    def _auth_header(user_id: int) -> dict:
        with app.app_context():
            token = create_access_token(identity=str(user_id))
        return {"Authorization": f"Bearer {token}"}

    return _auth_header
