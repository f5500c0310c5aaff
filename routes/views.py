"""Server-rendered pages."""

from __future__ import annotations

from flask import Blueprint, g, render_template

from models.tour import Tour
from services.auth import authenticate, is_logged_in
from utils.errors import NotFound

views_bp = Blueprint("views", __name__)


@views_bp.before_request
def _load_user():
    is_logged_in()


@views_bp.route("/", methods=["GET"])
def overview():
    tours = Tour.visible_query().order_by(Tour.created_at.desc(), Tour.id.desc()).all()
    return render_template("overview.html", title="All Tours", tours=tours)


@views_bp.route("/tour/<slug>", methods=["GET"])
def tour_detail(slug: str):
    tour = Tour.visible_query().filter(Tour.slug == slug).first()
    if tour is None:
        raise NotFound("There is no tour with that name.")
    return render_template("tour.html", title=f"{tour.name} Tour", tour=tour)


@views_bp.route("/login", methods=["GET"])
def login_form():
    return render_template("login.html", title="Log into your account")


@views_bp.route("/me", methods=["GET"])
def account():
    authenticate()
    return render_template("account.html", title="Your account", user=g.user)
