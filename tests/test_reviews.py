"""Tests for reviews and the tour rating aggregate."""

from __future__ import annotations

import pytest
from flask import Flask
from flask.testing import FlaskClient
from sqlalchemy.orm.exc import StaleDataError

from models import db
from models.review import Review
from models.tour import Tour
from services.ratings import MAX_ATTEMPTS, recalculate_tour_ratings

REVIEWS_URL = "/api/v1/reviews"
TOURS_URL = "/api/v1/tours"


def _post_review(
    client: FlaskClient, tour_id: int, headers: dict, rating: int = 5, text: str = "Loved it"
):
    return client.post(
        f"{TOURS_URL}/{tour_id}/reviews",
        json={"review": text, "rating": rating},
        headers=headers,
    )


def _tour_ratings(app: Flask, tour_id: int) -> tuple[int, float]:
    with app.app_context():
        tour = db.session.get(Tour, tour_id)
        return tour.ratings_quantity, tour.ratings_average


def test_reviews_require_login(client: FlaskClient, make_tour):
    tour_id = make_tour()

    assert client.get(REVIEWS_URL).status_code == 401
    assert client.get(f"{TOURS_URL}/{tour_id}/reviews").status_code == 401


def test_nested_create_uses_path_tour_and_session_user(
    client: FlaskClient, make_tour, make_user, auth_header
):
    tour_id = make_tour()
    user_id = make_user(name="Lourdes Browning")

    response = _post_review(client, tour_id, auth_header(user_id), text="  Amazing views  ")

    assert response.status_code == 201
    data = response.get_json()["data"]["data"]
    assert data["tour_id"] == tour_id
    assert data["review"] == "Amazing views"
    assert data["user"] == {"id": user_id, "name": "Lourdes Browning", "photo": "default.jpg"}


def test_only_regular_users_can_post_reviews(client: FlaskClient, make_tour, make_user, auth_header):
    tour_id = make_tour()

    for role in ("guide", "lead-guide", "admin"):
        response = _post_review(client, tour_id, auth_header(make_user(role)))
        assert response.status_code == 403


def test_one_review_per_user_and_tour(client: FlaskClient, make_tour, make_user, auth_header):
    tour_id = make_tour()
    headers = auth_header(make_user())

    assert _post_review(client, tour_id, headers).status_code == 201
    response = _post_review(client, tour_id, headers, rating=1)

    assert response.status_code == 400
    assert response.get_json()["message"].startswith("Duplicate field value")


@pytest.mark.parametrize(
    "body, message",
    [
        ({"review": "", "rating": 4}, "Review can not be empty"),
        ({"review": "Nice", "rating": 6}, "Rating must be between 1 and 5"),
        ({"review": "Nice"}, "A review must have a rating"),
    ],
)
def test_review_validation(client: FlaskClient, make_tour, make_user, auth_header, body, message):
    tour_id = make_tour()

    response = client.post(
        f"{TOURS_URL}/{tour_id}/reviews", json=body, headers=auth_header(make_user())
    )

    assert response.status_code == 400
    assert message in response.get_json()["message"]


def test_cannot_review_missing_or_secret_tour(client: FlaskClient, make_tour, make_user, auth_header):
    secret_id = make_tour(name="The Secret Lagoon Trip", secret_tour=True)
    headers = auth_header(make_user())

    assert _post_review(client, secret_id, headers).status_code == 400
    response = client.post(REVIEWS_URL, json={"review": "Hi", "rating": 3}, headers=headers)
    assert response.status_code == 400
    assert "Review must belong to a tour" in response.get_json()["message"]


def test_ratings_follow_review_changes(
    client: FlaskClient, app: Flask, make_tour, make_user, auth_header
):
    """Creating, editing and deleting reviews keeps the tour aggregate current."""

    tour_id = make_tour()
    first = auth_header(make_user())
    second = auth_header(make_user())
    assert _tour_ratings(app, tour_id) == (0, 4.5)

    review_id = _post_review(client, tour_id, first, rating=5).get_json()["data"]["data"]["id"]
    _post_review(client, tour_id, second, rating=2)
    assert _tour_ratings(app, tour_id) == (2, 3.5)

    response = client.patch(f"{REVIEWS_URL}/{review_id}", json={"rating": 3}, headers=first)
    assert response.status_code == 200
    assert response.get_json()["data"]["data"]["rating"] == 3
    assert _tour_ratings(app, tour_id) == (2, 2.5)

    assert client.delete(f"{REVIEWS_URL}/{review_id}", headers=first).status_code == 204
    assert _tour_ratings(app, tour_id) == (1, 2.0)

    tour = client.get(f"{TOURS_URL}/{tour_id}").get_json()["data"]["data"]
    assert tour["ratings_quantity"] == 1
    assert [review["rating"] for review in tour["reviews"]] == [2]


def test_average_is_rounded_to_one_decimal(
    client: FlaskClient, app: Flask, make_tour, make_user, auth_header
):
    tour_id = make_tour()
    for rating in (5, 4, 4):
        _post_review(client, tour_id, auth_header(make_user()), rating=rating)

    assert _tour_ratings(app, tour_id) == (3, 4.3)


def test_review_update_cannot_move_review(client: FlaskClient, make_tour, make_user, auth_header):
    tour_id = make_tour()
    other_tour_id = make_tour(name="The Sea Explorer")
    headers = auth_header(make_user())
    review_id = _post_review(client, tour_id, headers).get_json()["data"]["data"]["id"]

    response = client.patch(
        f"{REVIEWS_URL}/{review_id}",
        json={"tour_id": other_tour_id, "review": "Edited"},
        headers=headers,
    )

    data = response.get_json()["data"]["data"]
    assert data["tour_id"] == tour_id
    assert data["review"] == "Edited"


def test_nested_list_is_filtered_by_tour(client: FlaskClient, make_tour, make_user, auth_header):
    tour_a = make_tour()
    tour_b = make_tour(name="The Sea Explorer")
    headers = auth_header(make_user())
    _post_review(client, tour_a, headers)
    _post_review(client, tour_b, headers, rating=3)

    nested = client.get(f"{TOURS_URL}/{tour_b}/reviews", headers=headers).get_json()
    assert nested["results"] == 1
    assert nested["data"]["data"][0]["rating"] == 3

    everything = client.get(f"{REVIEWS_URL}?sort=rating", headers=headers).get_json()
    assert [doc["rating"] for doc in everything["data"]["data"]] == [3, 5]

    filtered = client.get(f"{REVIEWS_URL}?rating[gte]=4", headers=headers).get_json()
    assert filtered["results"] == 1


def test_admin_can_delete_any_review(client: FlaskClient, make_tour, make_user, auth_header):
    tour_id = make_tour()
    review_id = _post_review(client, tour_id, auth_header(make_user())).get_json()["data"]["data"]["id"]
    admin_headers = auth_header(make_user("admin"))

    assert client.get(f"{REVIEWS_URL}/{review_id}", headers=admin_headers).status_code == 200
    assert client.delete(f"{REVIEWS_URL}/{review_id}", headers=admin_headers).status_code == 204
    assert client.get(f"{REVIEWS_URL}/{review_id}", headers=admin_headers).status_code == 404


def test_deleting_tour_removes_its_reviews(
    client: FlaskClient, app: Flask, make_tour, make_user, auth_header
):
    tour_id = make_tour()
    _post_review(client, tour_id, auth_header(make_user()))

    client.delete(f"{TOURS_URL}/{tour_id}", headers=auth_header(make_user("admin")))

    with app.app_context():
        assert Review.query.count() == 0


def test_deleting_user_removes_reviews_and_refreshes_ratings(
    client: FlaskClient, app: Flask, make_tour, make_user, auth_header
):
    tour_id = make_tour()
    author_id = make_user()
    _post_review(client, tour_id, auth_header(author_id), rating=1)
    _post_review(client, tour_id, auth_header(make_user()), rating=5)

    response = client.delete(f"/api/v1/users/{author_id}", headers=auth_header(make_user("admin")))

    assert response.status_code == 204
    assert _tour_ratings(app, tour_id) == (1, 5.0)


def test_rating_update_retries_on_concurrent_tour_write(app: Flask, make_tour, make_user, monkeypatch):
    tour_id = make_tour()
    user_id = make_user()
    with app.app_context():
        db.session.add(Review(review="Great", rating=4, tour_id=tour_id, user_id=user_id))
        db.session.commit()

        session = db.session()
        real_commit = session.commit
        calls = {"n": 0}

        def flaky_commit():
            calls["n"] += 1
            if calls["n"] == 1:
                raise StaleDataError("tour row changed")
            real_commit()

        monkeypatch.setattr(session, "commit", flaky_commit)
        recalculate_tour_ratings(tour_id)

        assert calls["n"] == 2
        tour = db.session.get(Tour, tour_id)
        assert (tour.ratings_quantity, tour.ratings_average) == (1, 4.0)


def test_rating_update_gives_up_after_repeated_conflicts(app: Flask, make_tour, monkeypatch):
    tour_id = make_tour()
    calls = {"n": 0}
    with app.app_context():

        def always_stale():
            calls["n"] += 1
            raise StaleDataError("tour row changed")

        monkeypatch.setattr(db.session(), "commit", always_stale)
        with pytest.raises(StaleDataError):
            recalculate_tour_ratings(tour_id)
    assert calls["n"] == MAX_ATTEMPTS
