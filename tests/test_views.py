"""Tests for the server-rendered pages."""

from __future__ import annotations

from flask.testing import FlaskClient


def test_overview_lists_visible_tours(client: FlaskClient, make_tour):
    make_tour(name="The Forest Hiker")
    make_tour(name="The Secret Lagoon Trip", secret_tour=True)

    response = client.get("/")

    assert response.status_code == 200
    assert response.mimetype == "text/html"
    body = response.get_data(as_text=True)
    assert "The Forest Hiker" in body
    assert "/tour/the-forest-hiker" in body
    assert "The Secret Lagoon Trip" not in body
    assert "Log in" in body


def test_tour_page_by_slug(client: FlaskClient, make_tour, make_user):
    guide_id = make_user("lead-guide", name="Kate Morrison")
    make_tour(name="The Sea Explorer", guides=[guide_id], start_dates=["2031-06-19T09:00:00Z"])

    response = client.get("/tour/the-sea-explorer")

    assert response.status_code == 200
    body = response.get_data(as_text=True)
    assert "The Sea Explorer tour" in body
    assert "Lead guide: Kate Morrison" in body
    assert "June 2031" in body


def test_unknown_tour_renders_error_page(client: FlaskClient):
    response = client.get("/tour/nowhere-at-all")

    assert response.status_code == 404
    assert response.mimetype == "text/html"
    assert "There is no tour with that name." in response.get_data(as_text=True)


def test_login_page(client: FlaskClient):
    response = client.get("/login")

    assert response.status_code == 200
    assert "Log into your account" in response.get_data(as_text=True)


def test_pages_show_logged_in_user(client: FlaskClient, make_user):
    make_user(email="jonas@example.com", name="Jonas Schmedtmann")
    client.post("/api/v1/users/login", json={"email": "jonas@example.com", "password": "test1234"})

    overview = client.get("/").get_data(as_text=True)
    assert "Jonas" in overview
    assert "Log out" in overview

    account = client.get("/me")
    assert account.status_code == 200
    assert "jonas@example.com" in account.get_data(as_text=True)


def test_account_page_requires_login(client: FlaskClient):
    response = client.get("/me")

    assert response.status_code == 401
    assert response.mimetype == "text/html"
    assert "You are not logged in!" in response.get_data(as_text=True)


def test_invalid_cookie_does_not_break_pages(client: FlaskClient):
    client.set_cookie("jwt", "garbage")

    response = client.get("/")

    assert response.status_code == 200
    assert "Log in" in response.get_data(as_text=True)
