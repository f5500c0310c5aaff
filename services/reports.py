"""Fixed analytical reports over tours."""

from __future__ import annotations

import math
from collections import defaultdict
from datetime import MAXYEAR, MINYEAR, datetime

from sqlalchemy import func

from models import db
from models.tour import Tour, TourStartDate
from utils.errors import ValidationError

EARTH_RADIUS_MI = 3963.2
EARTH_RADIUS_KM = 6378.1
EARTH_RADIUS_M = EARTH_RADIUS_KM * 1000
METERS_TO_UNIT = {"mi": 0.000621371, "km": 0.001}
TOP_RATED_THRESHOLD = 4.5


def parse_latlng(latlng: str) -> tuple[float, float]:
    """Parse ``"lat,lng"`` into floats."""

    parts = (latlng or "").split(",")
    try:
        lat, lng = (float(part) for part in parts)
    except ValueError:
        raise ValidationError("Please provide latitude and longitude in the format lat,lng.")
    if not -90 <= lat <= 90 or not -180 <= lng <= 180:
        raise ValidationError("Latitude or longitude is out of range.")
    return lat, lng


def _check_unit(unit: str) -> str:
    if unit not in METERS_TO_UNIT:
        raise ValidationError("Unit must be either mi or km.")
    return unit


def angular_distance(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Central angle in radians between two points (haversine)."""

    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    d_phi = phi2 - phi1
    d_lambda = math.radians(lng2 - lng1)
    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    return 2 * math.asin(min(1.0, math.sqrt(a)))


def _start_point(tour: Tour) -> tuple[float, float] | None:
    location = tour.start_location or {}
    coordinates = location.get("coordinates")
    if not coordinates or len(coordinates) != 2:
        return None
    lng, lat = coordinates
    return lat, lng


def tour_stats() -> list[dict]:
    """Statistics over all well-rated tours, in a single global group."""

    row = (
        db.session.query(
            func.count(Tour.id),
            func.sum(Tour.ratings_quantity),
            func.avg(Tour.ratings_average),
            func.avg(Tour.price),
            func.min(Tour.price),
            func.max(Tour.price),
        )
        .filter(Tour.secret_tour.is_(False), Tour.ratings_average >= TOP_RATED_THRESHOLD)
        .one()
    )
    num_tours, num_ratings, avg_rating, avg_price, min_price, max_price = row
    if not num_tours:
        return []
    return [
        {
            "num_tours": num_tours,
            "num_ratings": int(num_ratings or 0),
            "avg_rating": round(float(avg_rating), 2),
            "avg_price": round(float(avg_price), 2),
            "min_price": min_price,
            "max_price": max_price,
        }
    ]


def monthly_plan(year: int) -> list[dict]:
    """Tour starts per month of ``year``, busiest month first."""

    if not MINYEAR <= year <= MAXYEAR:
        raise ValidationError(f"Year must be between {MINYEAR} and {MAXYEAR}.")

    in_year = [TourStartDate.starts_at >= datetime(year, 1, 1)]
    # The last representable year has no following January to bound it.
    if year < MAXYEAR:
        in_year.append(TourStartDate.starts_at < datetime(year + 1, 1, 1))

    rows = (
        db.session.query(TourStartDate.starts_at, Tour.name)
        .join(Tour, Tour.id == TourStartDate.tour_id)
        .filter(Tour.secret_tour.is_(False), *in_year)
        .order_by(TourStartDate.starts_at)
        .all()
    )

    months: dict[int, list[str]] = defaultdict(list)
    for starts_at, name in rows:
        months[starts_at.month].append(name)

    plan = [
        {"month": month, "num_tour_starts": len(names), "tours": names}
        for month, names in months.items()
    ]
    plan.sort(key=lambda entry: (-entry["num_tour_starts"], entry["month"]))
    return plan[:12]


def tours_within(distance: float, latlng: str, unit: str) -> list[Tour]:
    """Visible tours whose start location lies within ``distance`` of the centre."""

    lat, lng = parse_latlng(latlng)
    unit = _check_unit(unit)
    if distance < 0:
        raise ValidationError("Distance must not be negative.")
    radius = distance / (EARTH_RADIUS_MI if unit == "mi" else EARTH_RADIUS_KM)

    tours = Tour.visible_query().filter(Tour.start_location.isnot(None)).all()
    within = []
    for tour in tours:
        point = _start_point(tour)
        if point is not None and angular_distance(lat, lng, *point) <= radius:
            within.append(tour)
    return within


def distances(latlng: str, unit: str) -> list[dict]:
    """Distance from the given point to every tour start, nearest first.

    Proximity listings cover every tour with a start location, secret ones
    included.
    """

    lat, lng = parse_latlng(latlng)
    multiplier = METERS_TO_UNIT[_check_unit(unit)]

    results = []
    for tour in Tour.query.filter(Tour.start_location.isnot(None)).all():
        point = _start_point(tour)
        if point is None:
            continue
        meters = angular_distance(lat, lng, *point) * EARTH_RADIUS_M
        results.append({"id": tour.id, "name": tour.name, "distance": meters * multiplier})
    results.sort(key=lambda entry: entry["distance"])
    return results
