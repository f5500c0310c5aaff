"""Tests for the development data import script."""

from __future__ import annotations

import json

import pytest

from models import db
from models.review import Review
from models.tour import Tour, TourStartDate
from models.user import User
from scripts.import_dev_data import FixtureError, delete_data, import_data, main


def test_import_and_delete_fixtures(app):
    with app.app_context():
        counts = import_data()

        assert counts == {"users": 8, "tours": 3, "reviews": 4}
        admin = User.find_by_email("admin@natours.io")
        assert admin.role == "admin"
        assert admin.check_password("test1234")

        hiker = Tour.query.filter_by(name="The Forest Hiker").one()
        assert hiker.slug == "the-forest-hiker"
        assert hiker.ratings_quantity == 2
        assert hiker.ratings_average == 4.5
        assert {guide.email for guide in hiker.guides} == {
            "eliana@example.com",
            "leo@example.com",
        }
        assert len(hiker.start_dates) == 3

        delete_data()

        assert User.query.count() == 0
        assert Tour.query.count() == 0
        assert Review.query.count() == 0
        assert TourStartDate.query.count() == 0
        assert db.session.execute(db.text("SELECT COUNT(*) FROM tour_guides")).scalar() == 0


def test_import_rejects_unknown_references(app, tmp_path):
    (tmp_path / "users.json").write_text(json.dumps([]))
    (tmp_path / "tours.json").write_text(
        json.dumps([{"name": "The Forest Hiker", "guides": ["ghost@example.com"]}])
    )
    (tmp_path / "reviews.json").write_text(json.dumps([]))

    with app.app_context():
        with pytest.raises(FixtureError):
            import_data(tmp_path)


def test_cli_requires_an_action():
    with pytest.raises(SystemExit):
        main([])
