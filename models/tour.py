"""Tour and tour start date models."""

from __future__ import annotations

import math
import re
from datetime import datetime, timezone

from sqlalchemy.orm import validates

from . import db
from .base import ResourceMixin, isoformat


TOUR_DIFFICULTIES = ("easy", "medium", "difficult")
NAME_MIN_LENGTH = 10
NAME_MAX_LENGTH = 40
DEFAULT_RATINGS_AVERAGE = 4.5

_NON_SLUG_CHARS = re.compile(r"[^a-z0-9]+")

tour_guides = db.Table(
    "tour_guides",
    db.Column("tour_id", db.Integer, db.ForeignKey("tours.id", ondelete="CASCADE"), primary_key=True),
    db.Column("user_id", db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
)


def _is_number(value) -> bool:
    return (
        isinstance(value, (int, float))
        and not isinstance(value, bool)
        and math.isfinite(value)
    )


def slugify(value: str) -> str:
    """Lowercase, hyphen-separated form of a tour name used in page URLs."""

    return _NON_SLUG_CHARS.sub("-", value.lower()).strip("-")


def parse_datetime(value) -> datetime:
    """Parse an ISO 8601 string into a naive UTC datetime."""

    if isinstance(value, datetime):
        parsed = value
    else:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def point_errors(point, label: str) -> list[str]:
    """Validate a GeoJSON point of the form ``{"type": "Point", "coordinates": [lng, lat]}``."""

    if not isinstance(point, dict):
        return [f"{label} must be an object"]
    errors = []
    if point.get("type", "Point") != "Point":
        errors.append(f"{label} type must be Point")
    coordinates = point.get("coordinates")
    if (
        not isinstance(coordinates, (list, tuple))
        or len(coordinates) != 2
        or not all(_is_number(c) for c in coordinates)
    ):
        errors.append(f"{label} coordinates must be [longitude, latitude]")
    else:
        lng, lat = coordinates
        if not -180 <= lng <= 180 or not -90 <= lat <= 90:
            errors.append(f"{label} coordinates are out of range")
    return errors


class TourStartDate(db.Model):
    """A scheduled start of a tour."""

    __tablename__ = "tour_start_dates"

    id = db.Column(db.Integer, primary_key=True)
    tour_id = db.Column(
        db.Integer,
        db.ForeignKey("tours.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    starts_at = db.Column(db.DateTime, nullable=False, index=True)

    tour = db.relationship("Tour", back_populates="start_dates")


class Tour(ResourceMixin, db.Model):
    """A bookable tour."""

    __tablename__ = "tours"

    PUBLIC_FIELDS = (
        "id",
        "name",
        "slug",
        "duration",
        "max_group_size",
        "difficulty",
        "ratings_average",
        "ratings_quantity",
        "price",
        "price_discount",
        "summary",
        "description",
        "image_cover",
        "created_at",
        "secret_tour",
    )
    WRITABLE_FIELDS = (
        "name",
        "duration",
        "max_group_size",
        "difficulty",
        "ratings_average",
        "ratings_quantity",
        "price",
        "price_discount",
        "summary",
        "description",
        "image_cover",
        "images",
        "secret_tour",
        "start_location",
        "locations",
        "start_dates",
        "guides",
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(NAME_MAX_LENGTH), unique=True, nullable=False)
    slug = db.Column(db.String(80), nullable=False, index=True)
    duration = db.Column(db.Integer, nullable=False)
    max_group_size = db.Column(db.Integer, nullable=False)
    difficulty = db.Column(db.Enum(*TOUR_DIFFICULTIES, name="tour_difficulty"), nullable=False)
    ratings_average = db.Column(db.Float, nullable=False, default=DEFAULT_RATINGS_AVERAGE)
    ratings_quantity = db.Column(db.Integer, nullable=False, default=0)
    price = db.Column(db.Float, nullable=False, index=True)
    price_discount = db.Column(db.Float, nullable=True)
    summary = db.Column(db.Text, nullable=False)
    description = db.Column(db.Text, nullable=True)
    image_cover = db.Column(db.String(255), nullable=False)
    images = db.Column(db.JSON, nullable=False, default=list)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    secret_tour = db.Column(
        db.Boolean,
        nullable=False,
        default=False,
        server_default=db.text("false"),
    )
    start_location = db.Column(db.JSON(none_as_null=True), nullable=True)
    locations = db.Column(db.JSON, nullable=False, default=list)
    version = db.Column(db.Integer, nullable=False)

    start_dates = db.relationship(
        "TourStartDate",
        back_populates="tour",
        cascade="all, delete-orphan",
        order_by="TourStartDate.starts_at",
        lazy="selectin",
    )
    guides = db.relationship("User", secondary=tour_guides, lazy="selectin")
    reviews = db.relationship(
        "Review",
        back_populates="tour",
        cascade="all, delete-orphan",
        order_by="Review.created_at",
    )

    __mapper_args__ = {"version_id_col": version}

    _assign_errors = ()

    @classmethod
    def visible_query(cls):
        """Secret tours are hidden from every lookup."""

        return cls.query.filter(cls.secret_tour.is_(False))

    @validates("name", "summary", "description")
    def _strip_text(self, key, value):
        return value.strip() if isinstance(value, str) else value

    @validates("ratings_average")
    def _round_rating(self, key, value):
        if _is_number(value):
            return math.floor(value * 10 + 0.5) / 10
        return value

    @property
    def duration_weeks(self) -> float | None:
        return self.duration / 7 if _is_number(self.duration) else None

    def assign(self, data: dict, fields=None) -> None:
        """Copy writable keys, resolving start dates and guide ids."""

        from .user import User

        allowed = set(fields if fields is not None else self.WRITABLE_FIELDS)
        errors = []
        plain = {k: v for k, v in data.items() if k not in ("start_dates", "guides")}
        super().assign(plain, fields=allowed)

        if "start_dates" in data and "start_dates" in allowed:
            raw_dates = data["start_dates"] or []
            try:
                parsed = [parse_datetime(value) for value in raw_dates]
            except (TypeError, ValueError):
                errors.append("start_dates must be ISO 8601 dates")
            else:
                self.start_dates = [TourStartDate(starts_at=value) for value in parsed]

        if "guides" in data and "guides" in allowed:
            guide_ids = data["guides"] or []
            if not isinstance(guide_ids, list) or not all(
                isinstance(i, int) and not isinstance(i, bool) for i in guide_ids
            ):
                errors.append("guides must be a list of user ids")
            else:
                guides = User.visible_query().filter(User.id.in_(guide_ids)).all() if guide_ids else []
                missing = sorted(set(guide_ids) - {guide.id for guide in guides})
                if missing:
                    errors.append(
                        "Unknown guide id(s): {}".format(", ".join(str(i) for i in missing))
                    )
                else:
                    self.guides = guides

        self._assign_errors = tuple(errors)

    def serialize(self, expand=()) -> dict:
        data = {
            "id": self.id,
            "name": self.name,
            "slug": self.slug,
            "duration": self.duration,
            "duration_weeks": self.duration_weeks,
            "max_group_size": self.max_group_size,
            "difficulty": self.difficulty,
            "ratings_average": self.ratings_average,
            "ratings_quantity": self.ratings_quantity,
            "price": self.price,
            "price_discount": self.price_discount,
            "summary": self.summary,
            "description": self.description,
            "image_cover": self.image_cover,
            "images": list(self.images or []),
            "created_at": isoformat(self.created_at),
            "start_dates": [isoformat(entry.starts_at) for entry in self.start_dates],
            "secret_tour": self.secret_tour,
            "start_location": self.start_location,
            "locations": list(self.locations or []),
            "guides": [
                {
                    "id": guide.id,
                    "name": guide.name,
                    "email": guide.email,
                    "photo": guide.photo,
                    "role": guide.role,
                }
                for guide in self.guides
            ],
        }
        if "reviews" in expand:
            data["reviews"] = [review.to_dict() for review in self.reviews]
        return data

    def validate(self) -> list[str]:
        errors = list(self._assign_errors)

        if not self.name:
            errors.append("A tour must have a name")
        elif not isinstance(self.name, str):
            errors.append("Tour name must be text")
        elif len(self.name) > NAME_MAX_LENGTH:
            errors.append(
                f"A tour name must have less or equal than {NAME_MAX_LENGTH} characters"
            )
        elif len(self.name) < NAME_MIN_LENGTH:
            errors.append(
                f"A tour name must have more or equal than {NAME_MIN_LENGTH} characters"
            )

        for field, label in (("duration", "a duration"), ("max_group_size", "a group size")):
            value = getattr(self, field)
            if value is None:
                errors.append(f"A tour must have {label}")
            elif not isinstance(value, int) or isinstance(value, bool) or value < 1:
                errors.append(f"{field} must be a positive whole number")

        if not self.difficulty:
            errors.append("A tour must have a difficulty")
        elif self.difficulty not in TOUR_DIFFICULTIES:
            errors.append("Difficulty is either: easy, medium, difficult")

        if self.price is None:
            errors.append("A tour must have a price")
        elif not _is_number(self.price) or self.price < 0:
            errors.append("price must be a non-negative number")

        if self.price_discount is not None:
            if not _is_number(self.price_discount):
                errors.append("price_discount must be a number")
            elif _is_number(self.price) and self.price_discount >= self.price:
                errors.append(
                    f"Discount price ({self.price_discount}) should be below regular price"
                )

        if self.ratings_average is not None:
            if not _is_number(self.ratings_average) or not 1 <= self.ratings_average <= 5:
                errors.append("Rating must be between 1.0 and 5.0")
        if self.ratings_quantity is not None and (
            not isinstance(self.ratings_quantity, int) or self.ratings_quantity < 0
        ):
            errors.append("ratings_quantity must be a non-negative whole number")

        if not self.summary:
            errors.append("A tour must have a summary")
        if not self.image_cover:
            errors.append("A tour must have a cover image")
        if self.images is not None and not (
            isinstance(self.images, list) and all(isinstance(i, str) for i in self.images)
        ):
            errors.append("images must be a list of file names")
        if self.secret_tour is not None and not isinstance(self.secret_tour, bool):
            errors.append("secret_tour must be boolean")

        if self.start_location is not None:
            errors.extend(point_errors(self.start_location, "start_location"))
        if self.locations is not None:
            if not isinstance(self.locations, list):
                errors.append("locations must be a list")
            else:
                for index, location in enumerate(self.locations):
                    errors.extend(point_errors(location, f"locations[{index}]"))

        return errors

    def __repr__(self) -> str:  # pragma: no cover - debugging helper
        return f"<Tour {self.name}>"
